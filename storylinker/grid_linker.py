#!/usr/bin/env python3
"""
Asset Grid Linker

Tracks which characters and locations each chapter introduces. A name is
recorded only in the first chapter that needs it, so a chapter's resource
folder carries just the assets the runtime has not loaded yet.

Output: Temp/Bin/AssetsByChapters.json
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from storylinker.errors import UnknownRegistryEntryError
from storylinker.extract import translate_display_name
from storylinker.model import Node, Role
from storylinker.registry import BookMeta

logger = logging.getLogger(__name__)

LOCATION_ASSIGNMENT = 'Location.loc'


@dataclass
class ChapterAssets:
    """Assets first introduced by one chapter, in first-use order."""
    number: int
    character_names: List[str] = field(default_factory=list)
    character_ids: List[str] = field(default_factory=list)
    location_names: List[str] = field(default_factory=list)
    location_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            'CharactersIDs': list(self.character_ids),
            'LocationsIDs': list(self.location_ids),
        }


class AssetGridLinker:
    """Chapter-by-chapter asset introduction table."""

    def __init__(self):
        self.chapters: List[ChapterAssets] = []
        self._characters = set()
        self._locations = set()

    def add_chapter(self) -> ChapterAssets:
        chapter = ChapterAssets(number=len(self.chapters) + 1)
        self.chapters.append(chapter)
        return chapter

    def current_chapter(self) -> ChapterAssets:
        if not self.chapters:
            raise ValueError("No chapter has been added to the asset grid yet")
        return self.chapters[-1]

    def is_character_present(self, name: str) -> bool:
        return name in self._characters

    def is_location_present(self, name: str) -> bool:
        return name in self._locations

    def add_character(self, name: str, asset_id: str) -> None:
        chapter = self.current_chapter()
        if name in self._characters:
            raise ValueError(f"Character '{name}' is already in the asset grid")
        self._characters.add(name)
        chapter.character_names.append(name)
        chapter.character_ids.append(asset_id)

    def add_location(self, name: str, asset_id: str) -> None:
        chapter = self.current_chapter()
        if name in self._locations:
            raise ValueError(f"Location '{name}' is already in the asset grid")
        self._locations.add(name)
        chapter.location_names.append(name)
        chapter.location_ids.append(asset_id)

    def to_manifest(self) -> Dict:
        return {'Chapters': [c.to_dict() for c in self.chapters]}


def parse_location_assignments(raw_script: str) -> List[int]:
    """Numeric location ids assigned in an instruction script.

    "Location.loc = 3; Karma.k += 1" -> [3]
    """
    if not raw_script or LOCATION_ASSIGNMENT not in raw_script:
        return []

    ids = []
    script = raw_script.replace('\\n', '').replace('\\r', '').replace('\n', '').replace('\r', '')
    for statement in script.split(';'):
        if LOCATION_ASSIGNMENT not in statement:
            continue
        parts = statement.split('=')
        if len(parts) < 2:
            raise UnknownRegistryEntryError(f"Malformed location assignment '{statement.strip()}'")
        value = parts[-1].strip()
        try:
            ids.append(int(value))
        except ValueError:
            raise UnknownRegistryEntryError(
                f"Location assignment '{statement.strip()}' does not use a numeric location id"
            )
    return ids


class AssetReferenceResolver:
    """Validates chapter references against the registry and feeds the grid.

    Args:
        nodes: Node map from the extractor
        translations: Base-language key -> text
        meta: Loaded registry (with aids attached)
        linker: Grid that receives the first-use records
        report: Optional ValidationReport for untranslated names
    """

    def __init__(self, nodes: Dict[str, Node], translations: Dict[str, str], meta: BookMeta,
                 linker: AssetGridLinker, report=None):
        self.nodes = nodes
        self.translations = translations
        self.meta = meta
        self.linker = linker
        self.report = report

    def _display_name(self, node: Node) -> str:
        return translate_display_name(node, self.translations, self.report)

    def _node(self, node_id: Optional[str], context: str) -> Node:
        node = self.nodes.get(node_id or '')
        if node is None:
            raise UnknownRegistryEntryError(f"{context} references unknown node '{node_id}'")
        return node

    def add_character(self, node_id: str, context: str = 'Chapter') -> None:
        node = self._node(node_id, context)
        name = self._display_name(node)
        character = self.meta.character_by_name(name)
        if character is None:
            raise UnknownRegistryEntryError(f"No character named '{name}' in Meta.xlsx (node {node_id})")
        # Keyed on the registry row so spacing in translations cannot split an asset
        if not self.linker.is_character_present(character.display_name):
            self.linker.add_character(character.display_name, node_id)

    def add_location(self, node_id: str, context: str = 'Chapter') -> None:
        node = self._node(node_id, context)
        name = self._display_name(node)
        location = self.meta.location_by_name(name)
        if location is None:
            raise UnknownRegistryEntryError(f"No location named '{name}' in Meta.xlsx (node {node_id})")
        if not self.linker.is_location_present(location.display_name):
            self.linker.add_location(location.display_name, node_id)

    def add_location_by_id(self, location_id: int) -> None:
        location = self.meta.location_by_id(location_id)
        if location is None:
            raise UnknownRegistryEntryError(f"No location with id {location_id} in Meta.xlsx")
        if not self.linker.is_location_present(location.display_name):
            self.linker.add_location(location.display_name, location.aid)

    def process_chapter(self, members: List[Node]) -> ChapterAssets:
        """Open a new chapter in the grid and record every reference in members."""
        chapter = self.linker.add_chapter()

        for node in members:
            if node.role is Role.DIALOGUE_LINE:
                if node.speaker:
                    self.add_character(node.speaker, f"Dialogue line {node.id}")
            elif node.role is Role.DIALOGUE:
                for attachment_id in node.attachments:
                    attachment = self._node(attachment_id, f"Dialogue {node.id}")
                    if attachment.role is Role.LOCATION:
                        self.add_location(attachment_id)
                    elif attachment.role is Role.ENTITY:
                        self.add_character(attachment_id)
            elif node.role is Role.INSTRUCTION:
                for location_id in parse_location_assignments(node.expression or ''):
                    self.add_location_by_id(location_id)

        logger.info(f"Chapter {chapter.number} introduces {len(chapter.character_ids)} characters, "
                    f"{len(chapter.location_ids)} locations")
        return chapter
