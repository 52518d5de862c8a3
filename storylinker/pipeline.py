#!/usr/bin/env python3
"""
Linker pipeline.

Stages:
1. extract: Flow.json + base localization -> node map (cached per run)
2. hierarchy: chapter order and chapter/subchapter partition
3. registry: Meta.xlsx load, validation and cross-reference
4. grid linking: which chapter introduces which asset
5. localization: table generation or per-language merge
6. bundle: Temp/ documents and chapter resources

Three entry points share these stages: generate_tables(), build_bundle()
and check_atlases(). Every check that can abort a run happens before the
first file is written.
"""

import shutil
import logging
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from storylinker.atlas import AtlasChecker
from storylinker.bundle import BundleWriter
from storylinker.cache import RunCache
from storylinker.config import LinkerConfig, ProjectLayout
from storylinker.errors import MissingInputError
from storylinker.extract import cross_reference, extract, load_flow_export
from storylinker.grid_linker import AssetGridLinker, AssetReferenceResolver
from storylinker.hierarchy import chapter_members, resolve, select_chapters, sorted_chapter_ids
from storylinker.localization import (
    CHARACTER_NAMES_TABLE, PREVIEW_GROUP, SHARED_GROUP, SOURCE_COLUMN, TEXT_COLUMN,
    TRANSLATION_COLUMN, AliasPolicy, LocalizationMerger, LocalizationTableBuilder,
    TabularSource, chapter_group, for_translating_name, internal_name, load_source,
)
from storylinker.model import FlowExport, Node, Role
from storylinker.registry import load_meta, validate_characters, validate_locations
from storylinker.report import ValidationReport

logger = logging.getLogger(__name__)


class LinkerRun:
    """
    One run over one book project.

    Args:
        project_root: Book project directory (contains Raw/)
        config: Run settings, defaults when omitted
        cache: Shared RunCache; a fresh one when omitted
    """

    def __init__(self, project_root: Path, config: Optional[LinkerConfig] = None,
                 cache: Optional[RunCache] = None):
        self.config = config or LinkerConfig()
        self.cache = cache or RunCache()
        self.layout = ProjectLayout(Path(project_root), self.config.base_language)

    # =========================================================================
    # SHARED STAGES
    # =========================================================================

    def base_translations(self) -> Dict[str, str]:
        source_path = self.layout.localization_source
        if not source_path.exists():
            raise MissingInputError(source_path, "base localization source")
        return load_source(TabularSource(source_path, SOURCE_COLUMN), self.cache)

    def load_nodes(self) -> Tuple[FlowExport, Dict[str, Node]]:
        """Flow export and node map, extracted once per (flow, localization) pair."""
        translations = self.base_translations()
        key = (str(self.layout.flow_json), str(self.layout.localization_source))

        def loader():
            export = load_flow_export(self.layout.flow_json)
            return export, extract(export, translations)

        return self.cache.extraction(key, loader)

    def select(self, nodes: Dict[str, Node]) -> Tuple[List[str], List[Set[str]]]:
        chapter_ids = select_chapters(sorted_chapter_ids(nodes), nodes, self.config.chapters)
        return chapter_ids, resolve(nodes, chapter_ids)

    # =========================================================================
    # TABLE GENERATION
    # =========================================================================

    def generate_tables(self) -> ValidationReport:
        """Write the base-language translation tables for the requested chapters."""
        report = ValidationReport('tables')
        _, nodes = self.load_nodes()
        translations = self.base_translations()
        _, partition = self.select(nodes)

        if self.layout.localization.exists():
            shutil.rmtree(self.layout.localization)

        policy = AliasPolicy(self.config.alias_min_length, self.config.alias_markers)
        builder = LocalizationTableBuilder(
            nodes, translations, self.layout.base_tables, policy, self.cache, report
        )
        builder.build(partition)

        report.write(self.layout.base_tables / self.config.report_name)
        return report

    # =========================================================================
    # BUNDLE
    # =========================================================================

    def _check_base_tables(self, chapter_count: int) -> None:
        base = self.layout.base_tables
        required = [base / f'{CHARACTER_NAMES_TABLE}.xlsx']
        for number in range(1, chapter_count + 1):
            required.append(base / f'{for_translating_name(number)}.xlsx')
            required.append(base / f'{internal_name(number)}.xlsx')
        for path in required:
            if not path.exists():
                raise MissingInputError(path, "generated localization table (run 'tables' first)")

    def _table_source(self, language: str, name: str) -> TabularSource:
        if language == self.layout.base_language:
            return TabularSource(self.layout.base_tables / f'{name}.xlsx', TEXT_COLUMN)
        return TabularSource(self.layout.translated_data / language / f'{name}.xlsx', TRANSLATION_COLUMN)

    def _book_description_source(self, language: str) -> TabularSource:
        path = self.layout.book_description_path(language)
        if language == self.layout.base_language:
            return TabularSource(path, mode='book_description')
        return TabularSource(path, TRANSLATION_COLUMN)

    def _merge_chapter(self, merger: LocalizationMerger, writer: BundleWriter, number: int,
                       languages: List[str], report: ValidationReport) -> None:
        group = chapter_group(number)
        internal = TabularSource(self.layout.base_tables / f'{internal_name(number)}.xlsx', TEXT_COLUMN)

        for language in languages:
            main = self._table_source(language, for_translating_name(number))
            if not Path(main.path).exists():
                report.warn(group, f"No {main.path.name} for {language}, skipping the language")
                continue
            result = merger.merge(language, group, [main, internal], writer.chapter_strings(number, language))
            if not result.ok:
                report.error(group, str(result.error))

    def _merge_shared(self, merger: LocalizationMerger, writer: BundleWriter,
                      languages: List[str], report: ValidationReport) -> None:
        for language in languages:
            descriptions = self._book_description_source(language)
            names = self._table_source(language, CHARACTER_NAMES_TABLE)

            shared = merger.merge(language, SHARED_GROUP, [names, descriptions], writer.shared_strings(language))
            if not shared.ok:
                report.error(SHARED_GROUP, str(shared.error))
                raise shared.error

            preview = merger.merge(language, PREVIEW_GROUP, [descriptions], writer.preview_strings(language))
            if not preview.ok:
                report.error(PREVIEW_GROUP, str(preview.error))
                raise preview.error

    def _prepare(self, report: ValidationReport):
        """Everything that can abort the build, run before any output exists."""
        export, nodes = self.load_nodes()
        translations = self.base_translations()

        meta = load_meta(self.layout.meta_xlsx)
        validate_characters(meta, export.namespaces)
        validate_locations(meta)

        chapter_ids, partition = self.select(nodes)
        self._check_base_tables(len(chapter_ids))

        shared = cross_reference(nodes, translations, meta, report)
        linker = AssetGridLinker()
        resolver = AssetReferenceResolver(nodes, translations, meta, linker, report)
        members = [chapter_members(nodes, node_set) for node_set in partition]
        for chapter in members:
            resolver.process_chapter(chapter)

        meta.chapters_entry_points = list(chapter_ids)
        return export, meta, shared, linker, members

    def build_bundle(self) -> ValidationReport:
        """
        Build Temp/ for the requested chapters.

        Returns:
            ValidationReport; chapter localization problems are listed as
            errors without stopping the build

        Raises:
            LinkerError: Registry, chapter or input problems, and incomplete
                shared or preview strings
        """
        report = ValidationReport('build')
        export, meta, shared, linker, members = self._prepare(report)

        writer = BundleWriter(self.layout, meta, report, self.config.copy_assets)
        writer.reset()

        merger = LocalizationMerger(
            self.layout.base_language, self.cache, report, self.config.untranslated_min_length
        )
        languages = [self.layout.base_language] + self.layout.translated_languages()
        logger.info(f"Languages: {', '.join(languages)}")

        for number, chapter in enumerate(members, start=1):
            writer.write_chapter_flow(number, [node.raw for node in chapter])
            assets = linker.chapters[number - 1]
            writer.copy_chapter_assets(number, assets.character_names, assets.location_names)
            self._merge_chapter(merger, writer, number, languages, report)

        # Shared names may alias lines from any chapter
        self._merge_shared(merger, writer, languages, report)

        writer.write_shared(
            export.global_variables,
            [node.raw for node in shared],
            linker.to_manifest(),
        )

        report.write(self.layout.temp / self.config.report_name)
        return report

    # =========================================================================
    # ATLAS CHECK
    # =========================================================================

    def check_atlases(self) -> ValidationReport:
        """Check character atlases against every clothing instruction in the book."""
        report = ValidationReport('check-atlas')
        _, nodes = self.load_nodes()
        meta = load_meta(self.layout.meta_xlsx)

        checker = AtlasChecker(meta)
        checker.build_requirements()
        for node in nodes.values():
            if node.role is Role.INSTRUCTION and node.expression:
                checker.record_clothing_usage(node.expression)

        message = checker.finalize(self.layout.root)
        if message:
            report.error('atlas', message)
        return report
