#!/usr/bin/env python3
"""
Hierarchy Resolver (Stage 2: node map -> chapter partition)

Orders chapters by number and assigns every dialogue (subchapter) to the
chapter its parent chain leads to. Parent links come straight from the
authoring tool and may dangle or loop, so every walk is iterative and
bounded by the node count.
"""

import logging
from typing import Dict, List, Set

from storylinker.errors import ChapterCountError, ChapterNumberError
from storylinker.model import Node, Role

logger = logging.getLogger(__name__)


def sorted_chapter_ids(nodes: Dict[str, Node]) -> List[str]:
    """Chapter node ids ordered by chapter number (stable for equal numbers)."""
    chapters = [n for n in nodes.values() if n.role is Role.CHAPTER]
    chapters.sort(key=lambda n: n.chapter_number)
    return [n.id for n in chapters]


def select_chapters(chapter_ids: List[str], nodes: Dict[str, Node], requested: int) -> List[str]:
    """Keep the first ``requested`` chapters and check their numbering.

    Raises:
        ChapterCountError: Fewer chapters than requested
        ChapterNumberError: Kept numbers repeat or skip a value
    """
    if len(chapter_ids) < requested:
        raise ChapterCountError(len(chapter_ids), requested)

    if len(chapter_ids) > requested:
        logger.info(f"Dropping {len(chapter_ids) - requested} chapters beyond the requested {requested}")

    selected = chapter_ids[:requested]
    numbers = [nodes[cid].chapter_number for cid in selected]
    for previous, current in zip(numbers, numbers[1:]):
        if current != previous + 1:
            raise ChapterNumberError(
                f"Chapter numbers must increase by one, got {previous} followed by {current}"
            )
    return selected


def find_chapter(node: Node, nodes: Dict[str, Node], chapter_ids: Set[str], max_steps: int):
    """Walk parent links from node up to the first chapter.

    Returns:
        Chapter id, or None on a dead end, a foreign chapter or a walk that
        exceeds max_steps
    """
    parent = node.parent
    for _ in range(max_steps):
        if parent is None:
            return None
        if parent in chapter_ids:
            return parent
        parent_node = nodes.get(parent)
        if parent_node is None:
            logger.debug(f"Dead end at '{parent}' while resolving {node.id}")
            return None
        if parent_node.role is Role.CHAPTER:
            # Chapter outside the selected range
            return None
        parent = parent_node.parent

    logger.warning(f"Parent chain of {node.id} exceeds {max_steps} steps (cycle?), excluding it")
    return None


def resolve(nodes: Dict[str, Node], chapter_ids: List[str]) -> List[Set[str]]:
    """Partition dialogues into chapters.

    Args:
        nodes: Node map from the extractor
        chapter_ids: Selected chapter ids, in chapter order

    Returns:
        One set per chapter: the chapter id plus the ids of every Dialogue
        node whose parent chain reaches it. Sets are disjoint.
    """
    index = {cid: i for i, cid in enumerate(chapter_ids)}
    partition: List[Set[str]] = [{cid} for cid in chapter_ids]
    max_steps = max(len(nodes), 1)
    excluded = 0

    for node in nodes.values():
        if node.role is not Role.DIALOGUE:
            continue
        chapter = find_chapter(node, nodes, set(index), max_steps)
        if chapter is None:
            excluded += 1
            continue
        partition[index[chapter]].add(node.id)

    if excluded:
        logger.info(f"{excluded} dialogues are not reachable from any selected chapter")
    for cid, node_set in zip(chapter_ids, partition):
        logger.debug(f"Chapter {nodes[cid].chapter_number}: {len(node_set) - 1} dialogues")
    return partition


def chapter_members(nodes: Dict[str, Node], node_set: Set[str]) -> List[Node]:
    """Every node belonging to a chapter: the set itself and direct children."""
    return [n for n in nodes.values() if n.id in node_set or n.parent in node_set]
