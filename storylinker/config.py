#!/usr/bin/env python3
"""
Run configuration and project layout.

Defaults live here as module constants. A project may carry a
storylinker.json next to its Raw/ folder; CLI flags override both.
"""

import json
import os
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "storylinker.json"
LOG_LEVEL = os.getenv("STORYLINKER_LOG_LEVEL", "INFO")

# Localization source suffix -> language folder name, in lookup order
LANGUAGE_CODES = {
    'en': 'English',
    'ru': 'Russian',
    'pl': 'Polish',
    'de': 'Deutsch',
    'fr': 'French',
    'es': 'Spanish',
    'jp': 'Japan',
}
DEFAULT_BASE_LANGUAGE = 'Russian'


@dataclass
class LinkerConfig:
    """Settings for one linker run."""
    chapters: int = 1
    base_language: Optional[str] = None
    alias_min_length: int = 10
    alias_markers: str = "?"
    untranslated_min_length: int = 10
    copy_assets: bool = True
    report_name: str = "validation_report.txt"

    @classmethod
    def load(cls, project_root: Path, **overrides) -> 'LinkerConfig':
        """Build a config from storylinker.json (if present) plus overrides.

        Overrides with a value of None are ignored so argparse defaults do
        not clobber file settings.
        """
        values: Dict = {}
        config_path = Path(project_root) / CONFIG_FILE_NAME
        if config_path.exists():
            with open(config_path, 'r', encoding='utf-8') as f:
                file_values = json.load(f)
            known = {f.name for f in fields(cls)}
            for key, value in file_values.items():
                if key in known:
                    values[key] = value
                else:
                    logger.warning(f"Ignoring unknown setting '{key}' in {config_path}")
            logger.info(f"Loaded config from {config_path}")

        values.update({k: v for k, v in overrides.items() if v is not None})
        config = cls(**values)
        if config.chapters < 1:
            raise ValueError(f"Chapter count must be positive, got {config.chapters}")
        return config


class ProjectLayout:
    """Paths inside a book project directory."""

    def __init__(self, root: Path, base_language: Optional[str] = None):
        self.root = Path(root)
        self.raw = self.root / 'Raw'
        self.flow_json = self.raw / 'Flow.json'
        self.meta_xlsx = self.raw / 'Meta.xlsx'
        self.book_descriptions = self.raw / 'BookDescriptions'
        self.localization = self.root / 'Localization'
        self.translated_data = self.root / 'TranslatedData'
        self.temp = self.root / 'Temp'
        self.characters_art = self.root / 'Art' / 'Characters'
        self.locations_art = self.root / 'Art' / 'Locations'
        self.idles_audio = self.root / 'Audio' / 'Idles'

        self.localization_source = self._find_localization_source()
        self.base_language = base_language or self._detect_base_language()

    def _find_localization_source(self) -> Path:
        for code in LANGUAGE_CODES:
            path = self.raw / f'loc_All objects_{code}.xlsx'
            if path.exists():
                return path
        return self.raw / 'loc_All objects_ru.xlsx'

    def _detect_base_language(self) -> str:
        name = self.localization_source.name
        for code, language in LANGUAGE_CODES.items():
            if name.endswith(f'_{code}.xlsx'):
                return language
        return DEFAULT_BASE_LANGUAGE

    @property
    def base_tables(self) -> Path:
        return self.localization / self.base_language

    def book_description_path(self, language: str) -> Path:
        """Translated folder copy wins over Raw/BookDescriptions for non-base languages."""
        if language != self.base_language:
            translated = self.translated_data / language / f'{language}.xlsx'
            if translated.exists():
                return translated
        return self.book_descriptions / f'{language}.xlsx'

    def translated_languages(self) -> List[str]:
        if not self.translated_data.is_dir():
            return []
        return sorted(
            d.name for d in self.translated_data.iterdir()
            if d.is_dir() and d.name != self.base_language
        )

    def language_tables(self, language: str) -> Path:
        if language == self.base_language:
            return self.base_tables
        return self.translated_data / language
