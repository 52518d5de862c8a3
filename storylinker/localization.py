#!/usr/bin/env python3
"""
Localization Module

Two halves:

1. Table generation (base language only): walks each chapter's dialogue
   lines and writes the spreadsheets translators work from.

       Localization/<Base>/Chapter_<N>_for_translating.xlsx
       Localization/<Base>/Chapter_<N>_internal.xlsx
       Localization/<Base>/CharacterNames.xlsx

2. Merge: reads the base and translated spreadsheets back, resolves alias
   links, checks completeness against the base language and writes one
   {"Data": {key: text}} document per (language, group).

Alias links: when several keys carry the same base text, the later keys
are rewritten to "*SystemLinkTo*<canonical>*" so translators see the line
once. The merge step copies the canonical translation back in.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from storylinker.bundle import write_json
from storylinker.cache import RunCache
from storylinker.emotions import classify
from storylinker.errors import LocalizationGroupError
from storylinker.extract import translate_display_name
from storylinker.model import LocalizationEntry, Node, Role
from storylinker.report import ValidationReport
from storylinker.tabular import cell, read_rows, write_rows

logger = logging.getLogger(__name__)

SOURCE_COLUMN = 1
TEXT_COLUMN = 3
TRANSLATION_COLUMN = 4
BOOK_DESCRIPTION_FALLBACK_COLUMN = 1

HEADER_KEY = 'ID'
TABLE_HEADER = ['ID', 'Speaker', 'Emotion', 'Text']

ALIAS_SENTINEL = '*SystemLinkTo*'
PLAYER_NAME = '%pname%'
NEXT_CHOICE_MARKER = 'NextChoiceIsTracked'

CHARACTER_NAMES_TABLE = 'CharacterNames'
SHARED_GROUP = 'sharedstrings'
PREVIEW_GROUP = 'previewstrings'


def for_translating_name(chapter_number: int) -> str:
    return f'Chapter_{chapter_number}_for_translating'


def internal_name(chapter_number: int) -> str:
    return f'Chapter_{chapter_number}_internal'


def chapter_group(chapter_number: int) -> str:
    return f'chapter{chapter_number}'


def alias_value(canonical_key: str) -> str:
    return f'{ALIAS_SENTINEL}{canonical_key}*'


def alias_target(value: str) -> Optional[str]:
    """Canonical key of an alias sentinel, or None for ordinary text."""
    if ALIAS_SENTINEL not in value:
        return None
    parts = value.split('*')
    if len(parts) < 3 or not parts[2]:
        return None
    return parts[2]


# =============================================================================
# TEXT HEURISTICS
# =============================================================================

TEXT_PUNCTUATION = '?!.,;:\'"'
KEY_MARKERS = ('.Text', '0x', 'Dfr_')


def looks_like_text(value: str) -> bool:
    """
    Guess whether a localization key is already readable text.

    Some exports inline text where a key is expected. Such values are used
    verbatim instead of being dropped.
    """
    if not value or not value.strip():
        return False
    if ' ' in value:
        return True
    if any(ch in value for ch in TEXT_PUNCTUATION):
        return True
    if value.startswith('DFr_') or any(marker in value for marker in KEY_MARKERS):
        return False
    if value.count('_') >= 2:
        return False
    if (value[0].isdigit() or value[-1].isdigit()) and '_' in value:
        return False
    if any(ch.isalpha() for ch in value) and len(value) > 4:
        technical_id = len(value) > 20 and all(ch.isalnum() or ch in '_-' for ch in value)
        return not technical_id
    return False


def count_words(text: str) -> int:
    return len(text.split())


@dataclass
class AliasPolicy:
    """When duplicated base text is collapsed into an alias link.

    Short duplicates ("Yes.", "No.") usually translate differently in
    context, so only long lines or lines with a marker character qualify.
    """
    min_length: int = 10
    markers: str = '?'

    def qualifies(self, text: str, duplicate_count: int) -> bool:
        if duplicate_count < 1:
            return False
        return len(text) > self.min_length or any(m in text for m in self.markers)


# =============================================================================
# TABULAR SOURCES
# =============================================================================

@dataclass(frozen=True)
class TabularSource:
    """One spreadsheet feeding a localization group.

    mode 'plain' reads key from column 0 and text from ``column``;
    'book_description' reads column 3, falling back to column 1.
    """
    path: Path
    column: int = TEXT_COLUMN
    mode: str = 'plain'

    @property
    def cache_key(self):
        return (str(self.path), self.column, self.mode)


def _row_value(row: Sequence[str], source: TabularSource) -> str:
    if source.mode == 'book_description':
        value = cell(row, TEXT_COLUMN)
        if not value.strip():
            value = cell(row, BOOK_DESCRIPTION_FALLBACK_COLUMN)
        return value
    return cell(row, source.column)


def parse_table(rows: List[List[str]], source: TabularSource,
                report: Optional[ValidationReport] = None) -> Dict[str, str]:
    """Key -> text for one sheet. Header and blank rows are skipped."""
    data: Dict[str, str] = {}
    for row in rows:
        key = cell(row, 0).strip()
        if not key or key == HEADER_KEY:
            continue
        value = _row_value(row, source)
        if not value.strip():
            continue
        if key in data:
            message = f"Duplicate key {key} in {Path(source.path).name}, keeping the first value"
            if report is not None:
                report.warn('tables', message)
            else:
                logger.warning(message)
            continue
        data[key] = value
    return data


def load_source(source: TabularSource, cache: RunCache,
                report: Optional[ValidationReport] = None) -> Dict[str, str]:
    """Parsed table, memoized in the run cache. A missing file yields {}."""
    def loader() -> Dict[str, str]:
        path = Path(source.path)
        if not path.exists():
            message = f"Localization file not found: {path}"
            if report is not None:
                report.warn('tables', message)
            else:
                logger.warning(message)
            return {}
        logger.info(f"Reading {path.name} (column {source.column}, {source.mode})")
        return parse_table(read_rows(path), source, report)

    return cache.table(source.cache_key, loader)


def load_sources(sources: Sequence[TabularSource], cache: RunCache,
                 report: Optional[ValidationReport] = None) -> Dict[str, str]:
    """Merged dictionary of several tables; earlier files win on key clashes."""
    key = (
        tuple(str(s.path) for s in sources),
        tuple(s.column for s in sources),
        tuple(s.mode for s in sources),
    )

    def loader() -> Dict[str, str]:
        merged: Dict[str, str] = {}
        for source in sources:
            for k, v in load_source(source, cache, report).items():
                if k in merged:
                    message = f"Key {k} from {Path(source.path).name} already defined in an earlier file"
                    if report is not None:
                        report.warn('tables', message)
                    else:
                        logger.warning(message)
                    continue
                merged[k] = v
        return merged

    return cache.group(key, loader)


# =============================================================================
# TABLE GENERATION
# =============================================================================

class LocalizationTableBuilder:
    """
    Writes the base-language translation tables for a set of chapters.

    Args:
        nodes: Node map from the extractor
        base_data: Base-language key -> text (from loc_All objects_<code>.xlsx)
        output_dir: Localization/<Base>/
        policy: Alias policy
        cache: Run cache to prime with the written tables
        report: Collects warnings and word counts
    """

    def __init__(self, nodes: Dict[str, Node], base_data: Dict[str, str], output_dir: Path,
                 policy: Optional[AliasPolicy] = None, cache: Optional[RunCache] = None,
                 report: Optional[ValidationReport] = None):
        self.nodes = nodes
        # Run copy; alias rewrites must not leak into the caller's data
        self.data = dict(base_data)
        self.original = base_data
        self.output_dir = Path(output_dir)
        self.policy = policy or AliasPolicy()
        self.cache = cache
        self.report = report or ValidationReport('tables')
        self.aliased: Set[str] = set()
        self.speakers: Dict[str, str] = {}
        self.character_entries: List[LocalizationEntry] = []

    def _speaker_name(self, speaker_id: Optional[str]) -> str:
        if not speaker_id:
            return ''
        if speaker_id in self.speakers:
            return self.speakers[speaker_id]

        speaker = self.nodes.get(speaker_id)
        if speaker is None:
            self.report.warn('tables', f"Speaker {speaker_id} is not in the flow export")
            self.speakers[speaker_id] = ''
            return ''

        name = translate_display_name(speaker, self.original, self.report)
        self.speakers[speaker_id] = name
        if speaker.display_name_key:
            self.character_entries.append(LocalizationEntry(source_key=speaker.display_name_key))
        return name

    def collect_chapter(self, node_set: Set[str]):
        """For-translating and internal entries of one chapter, export order."""
        for_translating: List[LocalizationEntry] = []
        internal: List[LocalizationEntry] = []

        for node in self.nodes.values():
            if node.role is not Role.DIALOGUE_LINE or node.parent not in node_set:
                continue

            speaker_name = self._speaker_name(node.speaker)
            emotion = classify(node.color).value

            for key in (node.text_key, node.menu_text_key):
                if key:
                    for_translating.append(LocalizationEntry(
                        source_key=key,
                        speaker_display_name=speaker_name,
                        emotion=emotion,
                    ))
            if node.stage_directions_key:
                internal.append(LocalizationEntry(
                    source_key=node.stage_directions_key,
                    is_internal=True,
                ))

        return for_translating, internal

    def _resolve(self, key: str) -> Optional[str]:
        if key in self.data:
            return self.data[key]
        if looks_like_text(key):
            logger.info(f"Using inline text '{key}' as its own translation")
            return key
        self.report.warn('tables', f"Key {key} not found in the localization source, skipping")
        return None

    def _alias_duplicates(self, key: str, value: str) -> None:
        if key in self.aliased:
            return
        duplicates = [k for k, v in self.data.items() if v == value and k != key]
        if not self.policy.qualifies(value, len(duplicates)):
            return
        for duplicate in duplicates:
            self.data[duplicate] = alias_value(key)
            self.aliased.add(duplicate)
        logger.debug(f"Aliased {len(duplicates)} keys to {key}")

    def write_table(self, name: str, entries: List[LocalizationEntry],
                    for_translating: bool) -> int:
        """
        Write one table and return its word count.

        Word counts cover for-translating tables only and skip aliased keys,
        since translators never see those lines.
        """
        rows = []
        written: Dict[str, str] = {}
        words = 0

        for entry in entries:
            value = self._resolve(entry.source_key)
            if value is None:
                continue

            if for_translating:
                value = value.replace('pname', PLAYER_NAME).replace('Pname', PLAYER_NAME)
                self._alias_duplicates(entry.source_key, value)

            if not value.strip():
                continue

            rows.append([entry.source_key, entry.speaker_display_name, entry.emotion, value])
            written.setdefault(entry.source_key, value)
            if for_translating and entry.source_key not in self.aliased:
                words += count_words(value)

        path = self.output_dir / f'{name}.xlsx'
        write_rows(path, TABLE_HEADER, rows)
        self.report.record_output(path)
        if self.cache is not None:
            self.cache.prime_table(TabularSource(path, TEXT_COLUMN).cache_key, written)
        return words

    def build(self, partition: List[Set[str]]) -> ValidationReport:
        """Write every chapter table plus CharacterNames."""
        self.output_dir.mkdir(parents=True, exist_ok=True)

        for number, node_set in enumerate(partition, start=1):
            for_translating, internal = self.collect_chapter(node_set)
            words = self.write_table(for_translating_name(number), for_translating, True)
            self.write_table(internal_name(number), internal, False)
            self.report.add_words(chapter_group(number), words)
            logger.info(f"Table {for_translating_name(number)} generated, word count: {words}")

        self.write_table(CHARACTER_NAMES_TABLE, self.character_entries, False)
        logger.info(f"Total word count: {self.report.total_words}")
        return self.report


# =============================================================================
# MERGE
# =============================================================================

class GroupState(Enum):
    UNINITIALIZED = 'uninitialized'
    BASE_LOADED = 'base_loaded'
    MERGED = 'merged'
    VALIDATED = 'validated'
    WRITTEN = 'written'


@dataclass
class MergeResult:
    language: str
    group: str
    data: Dict[str, str]
    output_path: Path
    state: GroupState = GroupState.UNINITIALIZED
    missing: List[str] = field(default_factory=list)
    untranslated: List[str] = field(default_factory=list)
    error: Optional[LocalizationGroupError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LocalizationMerger:
    """
    Builds per-language string documents for localization groups.

    The base language's data for a group is its reference; until the base
    language is merged, the first language seen stands in. Every other
    language is checked against that reference.
    """

    def __init__(self, base_language: str, cache: RunCache,
                 report: Optional[ValidationReport] = None,
                 untranslated_min_length: int = 10):
        self.base_language = base_language
        self.cache = cache
        self.report = report or ValidationReport('build')
        self.untranslated_min_length = untranslated_min_length
        self.references: Dict[str, Dict[str, str]] = {}
        self.accumulators: Dict[str, Dict[str, str]] = {}
        self.states: Dict[tuple, GroupState] = {}

    def state(self, language: str, group: str) -> GroupState:
        return self.states.get((language, group), GroupState.UNINITIALIZED)

    def _set_state(self, language: str, group: str, state: GroupState) -> None:
        self.states[(language, group)] = state

    @staticmethod
    def _linked_value(link: str, data: Dict[str, str], accumulator: Dict[str, str]) -> Optional[str]:
        """Canonical text from the current document, else from earlier groups."""
        for candidates in (data, accumulator):
            value = candidates.get(link)
            if value is not None and value.strip() and ALIAS_SENTINEL not in value:
                return value
        return None

    def _looks_untranslated(self, reference_value: str, value: str) -> bool:
        return (
            len(reference_value) > self.untranslated_min_length
            and value.strip() == reference_value
            and ALIAS_SENTINEL not in reference_value
            and NEXT_CHOICE_MARKER not in reference_value
            and PLAYER_NAME not in reference_value.lower()
        )

    def merge(self, language: str, group: str, sources: Sequence[TabularSource],
              output_path: Path) -> MergeResult:
        """
        Merge one group for one language and write its document.

        Args:
            language: Language folder name
            group: Group id (chapter<N>, sharedstrings, previewstrings)
            sources: Spreadsheets making up the group
            output_path: Destination JSON path

        Returns:
            MergeResult; result.error is set when reference keys are missing
            or blank. The document is written either way.
        """
        data = dict(load_sources(sources, self.cache, self.report))

        is_reference = language == self.base_language or group not in self.references
        if is_reference:
            if language != self.base_language:
                self.report.warn(group, f"No {self.base_language} data for {group}, "
                                        f"using {language} as the reference")
            self.references[group] = dict(data)
        reference = self.references[group]
        self._set_state(language, group, GroupState.BASE_LOADED)

        accumulator = self.accumulators.setdefault(language, {})
        result = MergeResult(language, group, data, Path(output_path))

        for key, reference_value in reference.items():
            reference_value = reference_value.strip()

            # Aliased rows are usually left blank by translators
            link = alias_target(reference_value)
            if link is not None:
                linked = self._linked_value(link, data, accumulator)
                if linked is None:
                    # Sentinel must not reach the runtime; the key counts as missing
                    self.report.warn(group, f"Alias target {link} of {key} not found for {language}")
                    data.pop(key, None)
                    continue
                data[key] = linked
            elif key not in data:
                continue

            value = data[key].replace('Pname', 'pname')
            data[key] = value
            accumulator.setdefault(key, value)

            if not is_reference and link is None and self._looks_untranslated(reference_value, value):
                result.untranslated.append(key)

        self._set_state(language, group, GroupState.MERGED)

        result.missing = [k for k in reference if k not in data or not data[k].strip()]
        if result.missing:
            result.error = LocalizationGroupError(
                group, language, result.missing, [str(s.path) for s in sources]
            )
        if result.untranslated:
            shown = ', '.join(result.untranslated[:5])
            self.report.warn(group, f"{len(result.untranslated)} strings in {language} "
                                    f"look untranslated: {shown}")
        self._set_state(language, group, GroupState.VALIDATED)

        write_json(output_path, {'Data': data})
        self.report.record_output(output_path)
        self._set_state(language, group, GroupState.WRITTEN)
        result.state = GroupState.WRITTEN

        logger.info(f"Merged {group} for {language}: {len(data)} strings, {len(result.missing)} missing")
        return result
