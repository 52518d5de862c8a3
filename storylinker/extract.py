#!/usr/bin/env python3
"""
Entity Extractor (Stage 1: Flow.json -> node map)

Decodes raw export records into typed Nodes, parses chapter numbers from
translated chapter titles and cross-references Entity/Location nodes with
the registry rows.

Input: Flow.json export + base-language translations
Output: Dict[node_id, Node]
"""

import json
import re
import logging
from pathlib import Path
from typing import Dict, List, Optional

from storylinker.errors import ChapterNumberError, MissingInputError
from storylinker.model import Color, FlowExport, Node, Role, role_for_tag

logger = logging.getLogger(__name__)

CHAPTER_NUMBER_PATTERN = re.compile(r'\d+')
FAKE_LOCATION_AID_PREFIX = 'fake_location_aid'


# =============================================================================
# LOADING
# =============================================================================

def load_flow_export(path: Path) -> FlowExport:
    """Read and decode a Flow.json export."""
    path = Path(path)
    if not path.exists():
        raise MissingInputError(path, "flow export")

    with open(path, 'r', encoding='utf-8-sig') as f:
        data = json.load(f)

    export = FlowExport.from_dict(data)
    logger.info(f"Loaded flow export {path.name}: {len(export.packages)} packages")
    return export


# =============================================================================
# NODE DECODING
# =============================================================================

def decode_node(record: Dict) -> Optional[Node]:
    """Decode one raw model record. Returns None when it has no id."""
    props = record.get('Properties') or {}
    node_id = props.get('Id')
    if not node_id:
        return None

    type_tag = record.get('Type') or ''
    role = role_for_tag(type_tag)
    if role is Role.OTHER:
        logger.info(f"Unknown node type '{type_tag}' for {node_id}, treating as Other")

    return Node(
        id=node_id,
        role=role,
        type_tag=type_tag,
        technical_name=props.get('TechnicalName') or '',
        display_name_key=props.get('DisplayName') or None,
        text_key=props.get('Text') or None,
        menu_text_key=props.get('MenuText') or None,
        stage_directions_key=props.get('StageDirections') or None,
        parent=props.get('Parent') or None,
        speaker=props.get('Speaker') or None,
        color=Color.from_dict(props.get('Color')),
        attachments=list(props.get('Attachments') or []),
        expression=props.get('Expression'),
        target=props.get('Target') or None,
        raw=record,
    )


def parse_chapter_number(title: str) -> Optional[int]:
    """First run of digits in a chapter title ("Chapter 12: Storm" -> 12)."""
    match = CHAPTER_NUMBER_PATTERN.search(title or '')
    if not match:
        return None
    return int(match.group(0))


def extract(raw_export: FlowExport, translations: Dict[str, str]) -> Dict[str, Node]:
    """Build the id -> Node map from a flow export.

    Chapter nodes get their chapter_number from the translated title, since
    writers number chapters in the display text, not in the technical data.

    Args:
        raw_export: Decoded Flow.json
        translations: Base-language key -> text

    Returns:
        Nodes keyed by id, in export order

    Raises:
        ChapterNumberError: A chapter title is untranslated or has no number
    """
    nodes: Dict[str, Node] = {}
    dropped = 0

    for package in raw_export.packages:
        for record in package.get('Models') or []:
            node = decode_node(record)
            if node is None:
                dropped += 1
                logger.warning(f"Dropping {record.get('Type', '?')} record without Id "
                               f"in package '{package.get('Name', '')}'")
                continue
            if node.id in nodes:
                logger.warning(f"Duplicate node id {node.id}, keeping first occurrence")
                continue
            nodes[node.id] = node

    for node in nodes.values():
        if node.role is not Role.CHAPTER:
            continue
        key = node.display_name_key
        if not key or key not in translations:
            raise ChapterNumberError(
                f"Chapter {node.id} title key '{key}' has no translation; "
                f"cannot determine the chapter number"
            )
        number = parse_chapter_number(translations[key])
        if number is None:
            raise ChapterNumberError(
                f"No chapter number in title '{translations[key]}' (key '{key}', node {node.id})"
            )
        node.chapter_number = number

    logger.info(f"Extracted {len(nodes)} nodes ({dropped} dropped)")
    return nodes


def nodes_with_role(nodes: Dict[str, Node], role: Role) -> List[Node]:
    return [n for n in nodes.values() if n.role is role]


# =============================================================================
# REGISTRY CROSS-REFERENCE
# =============================================================================

def translate_display_name(node: Node, translations: Dict[str, str], report=None) -> str:
    """Translated display name, or '' when the key has no translation."""
    key = node.display_name_key or ''
    if key in translations:
        return translations[key]
    message = f"Display name key '{key}' of {node.role.value} {node.id} has no translation"
    if report is not None:
        report.warn('names', message)
    else:
        logger.warning(message)
    return ''


def cross_reference(nodes: Dict[str, Node], translations: Dict[str, str], meta, report=None) -> List[Node]:
    """Attach node ids (aid) to registry rows matched by translated name.

    Returns:
        Shared objects: every Entity and Location node, export order
    """
    shared = []
    for node in nodes.values():
        if node.role not in (Role.ENTITY, Role.LOCATION):
            continue

        name = translate_display_name(node, translations, report)
        if not name:
            shared.append(node)
            continue
        if node.role is Role.ENTITY:
            character = meta.character_by_name(name)
            if character is not None:
                character.aid = node.id
        else:
            location = meta.location_by_name(name)
            if location is not None:
                location.aid = node.id

        shared.append(node)

    for location in meta.locations:
        if not location.aid:
            location.aid = f"{FAKE_LOCATION_AID_PREFIX}{location.id}"

    return shared
