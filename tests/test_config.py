#!/usr/bin/env python3
"""
Tests for storylinker/config.py
"""

import sys
import json
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from storylinker.config import LinkerConfig, ProjectLayout


class TestLinkerConfig:
    def test_defaults(self, tmp_path):
        config = LinkerConfig.load(tmp_path)
        assert config.chapters == 1
        assert config.base_language is None
        assert config.copy_assets is True

    def test_file_and_overrides(self, tmp_path):
        (tmp_path / 'storylinker.json').write_text(json.dumps({
            'chapters': 4,
            'alias_min_length': 20,
            'mystery': True,
        }))
        config = LinkerConfig.load(tmp_path, chapters=2, base_language=None)
        assert config.chapters == 2
        assert config.alias_min_length == 20
        assert not hasattr(config, 'mystery')

    def test_non_positive_chapters(self, tmp_path):
        with pytest.raises(ValueError):
            LinkerConfig.load(tmp_path, chapters=0)


class TestProjectLayout:
    def test_base_language_from_source_suffix(self, tmp_path):
        (tmp_path / 'Raw').mkdir()
        (tmp_path / 'Raw' / 'loc_All objects_pl.xlsx').write_bytes(b'')
        layout = ProjectLayout(tmp_path)
        assert layout.base_language == 'Polish'
        assert layout.base_tables == tmp_path / 'Localization' / 'Polish'

    def test_default_base_language(self, tmp_path):
        layout = ProjectLayout(tmp_path)
        assert layout.base_language == 'Russian'
        assert layout.localization_source.name == 'loc_All objects_ru.xlsx'

    def test_explicit_base_language(self, tmp_path):
        assert ProjectLayout(tmp_path, 'Deutsch').base_language == 'Deutsch'

    def test_translated_languages_exclude_base(self, tmp_path):
        for name in ('Russian', 'English', 'Polish'):
            (tmp_path / 'TranslatedData' / name).mkdir(parents=True)
        (tmp_path / 'TranslatedData' / 'notes.txt').write_text('')
        layout = ProjectLayout(tmp_path, 'English')
        assert layout.translated_languages() == ['Polish', 'Russian']

    def test_book_description_prefers_translated_copy(self, tmp_path):
        layout = ProjectLayout(tmp_path, 'English')
        assert layout.book_description_path('Russian') == tmp_path / 'Raw' / 'BookDescriptions' / 'Russian.xlsx'
        translated = tmp_path / 'TranslatedData' / 'Russian' / 'Russian.xlsx'
        translated.parent.mkdir(parents=True)
        translated.write_bytes(b'')
        assert layout.book_description_path('Russian') == translated
        assert layout.book_description_path('English') == tmp_path / 'Raw' / 'BookDescriptions' / 'English.xlsx'


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
