"""Import path settings for the JetBrains Protocol Buffers plugin.

Entries written here carry an XML comment holding the owning Go package so
later runs can find and replace them. Entries without a comment are treated
as owned too and get pruned.
"""
from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Iterable, Optional

from .logging import get_logger

IDEA_DIR = ".idea"
SETTINGS_FILE = "protoeditor.xml"
COMPONENT_NAME = "ProtobufLanguageSettings"
DESCRIPTOR_PATH = "google/protobuf/descriptor.proto"
XML_DECLARATION = '<?xml version="1.0" encoding="UTF-8"?>\n'


def find_idea_dir(start: Path) -> Optional[Path]:
    current = Path(start).resolve()
    while True:
        candidate = current / IDEA_DIR
        if candidate.is_dir():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def _is_element(node: ET.Element) -> bool:
    return isinstance(node.tag, str)


def _find_child(parent: ET.Element, tag: str, name: Optional[str] = None) -> Optional[ET.Element]:
    for child in parent:
        if not _is_element(child) or child.tag != tag:
            continue
        if name is None or child.get("name") == name:
            return child
    return None


def _owner(entry: ET.Element) -> str:
    return "".join(child.text or "" for child in entry if child.tag is ET.Comment)


class ProtoEditorSettings:
    def __init__(self, path: Path, root: ET.Element) -> None:
        self.path = path
        self.root = root

    @classmethod
    def open(cls, path: Path) -> "ProtoEditorSettings":
        text = path.read_text(encoding="utf-8") if path.exists() else ""
        if not text.strip():
            return cls(path, ET.Element("project", {"version": "4"}))
        parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
        return cls(path, ET.fromstring(text, parser=parser))

    def configure_import_paths(self, owner: str, search_paths: Iterable[str]) -> None:
        component = _find_child(self.root, "component", COMPONENT_NAME)
        if component is None:
            component = ET.SubElement(self.root, "component", {"name": COMPONENT_NAME})

        self._set_option(component, "autoConfigEnabled", "false")
        self._set_option(component, "descriptorPath", DESCRIPTOR_PATH)

        entries = _find_child(component, "option", "importPathEntries")
        if entries is None:
            entries = ET.SubElement(component, "option")
        entries.attrib.clear()
        entries.set("name", "importPathEntries")

        entry_list = _find_child(entries, "list")
        if entry_list is None:
            entry_list = ET.SubElement(entries, "list")

        for entry in list(entry_list):
            if not _is_element(entry):
                continue
            if _owner(entry) in ("", owner):
                entry_list.remove(entry)

        for search_path in search_paths:
            entry = ET.SubElement(entry_list, "ImportPathEntry")
            ET.SubElement(
                entry,
                "option",
                {"name": "location", "value": "file://" + Path(search_path).as_posix()},
            )
            entry.append(ET.Comment(owner))

    def save(self) -> None:
        ET.indent(self.root, space="  ")
        body = ET.tostring(self.root, encoding="unicode")
        self.path.write_text(XML_DECLARATION + body + "\n", encoding="utf-8")

    @staticmethod
    def _set_option(component: ET.Element, name: str, value: str) -> None:
        option = _find_child(component, "option", name)
        if option is None:
            ET.SubElement(component, "option", {"name": name, "value": value})
        else:
            option.set("value", value)


def configure_proto_editor(package_dir: Path, import_path: str, search_paths: Iterable[str]) -> Optional[Path]:
    logger = get_logger("ide")
    idea_dir = find_idea_dir(package_dir)
    if idea_dir is None:
        logger.debug("ProtoEditor config not found above [%s]", package_dir)
        return None
    settings = ProtoEditorSettings.open(idea_dir / SETTINGS_FILE)
    settings.configure_import_paths(import_path, search_paths)
    settings.save()
    logger.info("ProtoEditor config ok: [%s]", settings.path)
    return settings.path
