#!/usr/bin/env python3
"""
Bundle writer.

Owns the Temp/ output tree and the per-run record of which binary assets
have already been copied.

Output:
    Temp/Bin/Base.json, Meta.json, AssetsByChapters.json, SharedStrings/<lang>.json
    Temp/Chapter<N>/Flow.json, Strings/<lang>.json, Resources/*
    Temp/Preview/Strings/<lang>.json
"""

import json
import shutil
import logging
from pathlib import Path
from typing import Dict, List

logger = logging.getLogger(__name__)


def write_json(path: Path, document) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(document, f, indent=2, ensure_ascii=False)
    return path


class BundleWriter:
    """Writes documents and copies assets into Temp/.

    Args:
        layout: ProjectLayout of the book
        meta: Loaded registry
        report: ValidationReport receiving written paths and copy warnings
        copy_assets: When False, Resources/ folders are created but left empty
    """

    def __init__(self, layout, meta, report, copy_assets: bool = True):
        self.layout = layout
        self.meta = meta
        self.report = report
        self.copy_assets = copy_assets
        self.root = layout.temp
        self.bin = self.root / 'Bin'
        self.preview = self.root / 'Preview'
        self.copied_atlases = set()
        self.copied_location_sprites = set()
        self.copied_idles = set()

    # =========================================================================
    # FOLDERS
    # =========================================================================

    def reset(self) -> None:
        """Start from an empty Temp/ tree."""
        if self.root.exists():
            shutil.rmtree(self.root)
        (self.bin / 'SharedStrings').mkdir(parents=True)
        (self.preview / 'Strings').mkdir(parents=True)
        logger.info(f"Output folder reset: {self.root}")

    def chapter_dir(self, number: int) -> Path:
        return self.root / f'Chapter{number}'

    def chapter_strings(self, number: int, language: str) -> Path:
        return self.chapter_dir(number) / 'Strings' / f'{language}.json'

    def shared_strings(self, language: str) -> Path:
        return self.bin / 'SharedStrings' / f'{language}.json'

    def preview_strings(self, language: str) -> Path:
        return self.preview / 'Strings' / f'{language}.json'

    def _write(self, path: Path, document) -> Path:
        write_json(path, document)
        self.report.record_output(path)
        return path

    # =========================================================================
    # DOCUMENTS
    # =========================================================================

    def write_chapter_flow(self, number: int, raw_objects: List[Dict]) -> Path:
        chapter = self.chapter_dir(number)
        (chapter / 'Resources').mkdir(parents=True, exist_ok=True)
        (chapter / 'Strings').mkdir(parents=True, exist_ok=True)
        return self._write(chapter / 'Flow.json', {'Objects': raw_objects})

    def write_shared(self, global_variables: List[Dict], shared_objects: List[Dict],
                     manifest: Dict) -> None:
        self._write(self.bin / 'Base.json', {
            'GlobalVariables': global_variables,
            'SharedObjs': shared_objects,
        })
        self._write(self.bin / 'Meta.json', self.meta.to_document())
        self._write(self.bin / 'AssetsByChapters.json', manifest)

    # =========================================================================
    # ASSETS
    # =========================================================================

    def _copy(self, source: Path, destination: Path) -> None:
        if not source.exists():
            self.report.warn('assets', f"Asset file not found: {source}")
            return
        shutil.copyfile(source, destination)
        self.report.record_output(destination)

    def copy_chapter_assets(self, number: int, character_names: List[str],
                            location_names: List[str]) -> None:
        """Copy atlases, location sprites and idle sounds first needed in this chapter."""
        if not self.copy_assets:
            return
        resources = self.chapter_dir(number) / 'Resources'
        resources.mkdir(parents=True, exist_ok=True)
        art = self.layout.characters_art

        for name in character_names:
            character = self.meta.character_by_name(name)
            if character is None or character.base_name_in_atlas == '-':
                continue
            for atlas in character.atlases:
                if atlas == '-' or atlas in self.copied_atlases:
                    continue
                self.copied_atlases.add(atlas)
                if 'Sec_' not in atlas:
                    self._copy(art / f'{atlas}.png', resources / f'{atlas}.png')
                    self._copy(art / f'{atlas}.tpsheet', resources / f'{atlas}.tpsheet')
                else:
                    # Secondary sprites are stored under the book's sprite prefix
                    source_name = atlas.replace('Sec_', self.meta.sprite_prefix)
                    self._copy(art / 'Secondary' / f'{source_name}.png', resources / f'{atlas}.png')

        for name in location_names:
            location = self.meta.location_by_name(name)
            if location is None:
                continue
            if location.sprite_name not in self.copied_location_sprites:
                self.copied_location_sprites.add(location.sprite_name)
                self._copy(self.layout.locations_art / f'{location.sprite_name}.png',
                           resources / f'{location.sprite_name}.png')
            if location.idle_sound == '-' or location.idle_sound in self.copied_idles:
                continue
            self.copied_idles.add(location.idle_sound)
            self._copy(self.layout.idles_audio / f'{location.idle_sound}.mp3',
                       resources / f'{location.idle_sound}.mp3')
