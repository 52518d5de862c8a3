#!/usr/bin/env python3
"""
End-to-end tests for storylinker/pipeline.py on the sample book project.
"""

import sys
import json
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from conftest import SAMPLE_TRANSLATIONS, add_translation, meta_sheets, write_workbook
from storylinker.config import LinkerConfig
from storylinker.errors import (
    ChapterCountError, DuplicateRegistryNameError, LocalizationGroupError, MissingInputError,
)
from storylinker.pipeline import LinkerRun
from storylinker.tabular import read_rows, write_rows


def load(path):
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def run(project, chapters=2, **settings):
    return LinkerRun(project, LinkerConfig(chapters=chapters, **settings))


@pytest.fixture
def translated(project):
    """Project with tables generated and a Russian translation in place."""
    run(project).generate_tables()
    add_translation(project, 'Russian')
    return project


# =============================================================================
# TABLES
# =============================================================================

class TestGenerateTables:
    def test_tables_and_report(self, project):
        report = run(project).generate_tables()
        base = project / 'Localization' / 'English'
        assert (base / 'Chapter_1_for_translating.xlsx').exists()
        assert (base / 'Chapter_2_internal.xlsx').exists()
        assert (base / 'CharacterNames.xlsx').exists()
        assert (base / 'validation_report.txt').exists()
        assert report.total_words == 13

    def test_previous_tables_removed(self, project):
        stale = project / 'Localization' / 'English' / 'Chapter_9_for_translating.xlsx'
        stale.parent.mkdir(parents=True)
        stale.write_bytes(b'old')
        run(project).generate_tables()
        assert not stale.exists()

    def test_too_many_chapters_writes_nothing(self, project):
        with pytest.raises(ChapterCountError):
            run(project, chapters=5).generate_tables()
        assert not (project / 'Localization').exists()

    def test_missing_base_source(self, project):
        (project / 'Raw' / 'loc_All objects_en.xlsx').unlink()
        with pytest.raises(MissingInputError):
            run(project).generate_tables()


# =============================================================================
# BUNDLE
# =============================================================================

class TestBuildBundle:
    def test_output_tree(self, translated):
        report = run(translated).build_bundle()
        temp = translated / 'Temp'

        assert report.ok, [e.message for e in report.errors]
        for path in (
            'Bin/Base.json', 'Bin/Meta.json', 'Bin/AssetsByChapters.json',
            'Bin/SharedStrings/English.json', 'Bin/SharedStrings/Russian.json',
            'Preview/Strings/English.json', 'Preview/Strings/Russian.json',
            'Chapter1/Flow.json', 'Chapter1/Strings/English.json', 'Chapter1/Strings/Russian.json',
            'Chapter2/Flow.json', 'Chapter2/Strings/Russian.json',
            'validation_report.txt',
        ):
            assert (temp / path).exists(), path
        assert not (temp / 'Chapter3').exists()

    def test_chapter_flow_objects(self, translated):
        run(translated).build_bundle()
        objects = load(translated / 'Temp' / 'Chapter1' / 'Flow.json')['Objects']
        ids = [o['Properties']['Id'] for o in objects]
        assert ids == ['CH1', 'D1', 'DF1', 'DF2', 'D1_SUB', 'DF4']

    def test_base_and_meta(self, translated):
        run(translated).build_bundle()
        bin_dir = translated / 'Temp' / 'Bin'

        base = load(bin_dir / 'Base.json')
        assert [ns['Namespace'] for ns in base['GlobalVariables']] == ['Clothes', 'Location']
        shared_ids = {o['Properties']['Id'] for o in base['SharedObjs']}
        assert {'E_MAIN', 'E_GUNN', 'L_PORT', 'L_SHIP'} <= shared_ids

        meta = load(bin_dir / 'Meta.json')
        assert meta['ChaptersEntryPoints'] == ['CH1', 'CH2']
        assert meta['Characters'][0]['Aid'] == 'E_MAIN'
        assert meta['Locations'][1]['Aid'] == 'L_SHIP'

    def test_assets_manifest(self, translated):
        run(translated).build_bundle()
        manifest = load(translated / 'Temp' / 'Bin' / 'AssetsByChapters.json')
        assert manifest == {'Chapters': [
            {'CharactersIDs': ['E_MAIN', 'E_GUNN'], 'LocationsIDs': ['L_PORT']},
            {'CharactersIDs': [], 'LocationsIDs': ['L_SHIP']},
        ]}

    def test_resources_copied_once(self, translated):
        run(translated).build_bundle()
        first = translated / 'Temp' / 'Chapter1' / 'Resources'
        second = translated / 'Temp' / 'Chapter2' / 'Resources'
        assert sorted(p.name for p in first.iterdir()) == [
            'Bk_Main.png', 'Bk_Main.tpsheet', 'Sec_Gunn.png', 'port_bg.png', 'seagulls.mp3',
        ]
        assert sorted(p.name for p in second.iterdir()) == ['ship_bg.png']

    def test_no_assets(self, translated):
        run(translated, copy_assets=False).build_bundle()
        resources = translated / 'Temp' / 'Chapter1' / 'Resources'
        assert resources.is_dir()
        assert list(resources.iterdir()) == []

    def test_strings(self, translated):
        run(translated).build_bundle()
        temp = translated / 'Temp'

        english = load(temp / 'Chapter1' / 'Strings' / 'English.json')['Data']
        assert english['DF1_Text'] == 'Where is %pname% going?'
        assert english['DF1_Stage'] == '(shouting)'

        russian = load(temp / 'Chapter2' / 'Strings' / 'Russian.json')['Data']
        assert russian['DF3_Text'] == 'RU Arr, welcome aboard.'
        # Alias resolved from chapter 1
        assert russian['DF5_Text'] == 'RU Hello there, friend.'
        assert load(temp / 'Chapter2' / 'Strings' / 'English.json')['Data']['DF5_Text'] == 'Hello there, friend.'

    def test_shared_and_preview_strings(self, translated):
        run(translated).build_bundle()
        temp = translated / 'Temp'
        assert load(temp / 'Bin' / 'SharedStrings' / 'English.json')['Data'] == {
            'Main_Name': 'Hero',
            'Gunn_Name': 'Gunn',
            'BookTitle': 'Pirates of the Sea',
            'BookDesc': 'A story about the sea',
        }
        assert load(temp / 'Preview' / 'Strings' / 'Russian.json')['Data'] == {
            'BookTitle': 'RU Pirates of the Sea',
            'BookDesc': 'RU A story about the sea',
        }

    def test_character_name_aliased_to_later_chapter_line(self, project):
        translations = dict(SAMPLE_TRANSLATIONS, Gunn_Name='Gunn the Terrible', DF3_Text='Gunn the Terrible')
        write_workbook(project / 'Raw' / 'loc_All objects_en.xlsx', {
            'Data': [['ID', 'Text']] + [[k, v] for k, v in translations.items()],
        })
        write_workbook(project / 'Raw' / 'Meta.xlsx', meta_sheets(characters=[
            ['Hero', 'hero', 'Bk_Main', 'Main'],
            ['Gunn the Terrible', '-', 'Sec_Gunn', 'Sec_Gunn'],
        ]))
        run(project).generate_tables()
        names = read_rows(project / 'Localization' / 'English' / 'CharacterNames.xlsx')
        assert ['Gunn_Name', '', '', '*SystemLinkTo*DF3_Text*'] in names
        add_translation(project, 'Russian')

        report = run(project).build_bundle()
        assert report.ok, [e.message for e in report.errors]
        shared = project / 'Temp' / 'Bin' / 'SharedStrings'
        assert load(shared / 'English.json')['Data']['Gunn_Name'] == 'Gunn the Terrible'
        assert load(shared / 'Russian.json')['Data']['Gunn_Name'] == 'RU Gunn the Terrible'

    def test_rebuild_replaces_temp(self, translated):
        stale = translated / 'Temp' / 'Chapter7' / 'Flow.json'
        stale.parent.mkdir(parents=True)
        stale.write_text('{}')
        run(translated).build_bundle()
        assert not stale.exists()


class TestBuildFailures:
    def test_chapter_shortfall_leaves_no_output(self, translated):
        with pytest.raises(ChapterCountError):
            run(translated, chapters=5).build_bundle()
        assert not (translated / 'Temp').exists()

    def test_duplicate_character_leaves_no_output(self, translated):
        write_workbook(translated / 'Raw' / 'Meta.xlsx', meta_sheets(characters=[
            ['Hero', 'hero', 'Bk_Main', 'Main'],
            ['Gunn', '-', 'Sec_Gunn', 'Sec_Gunn'],
            ['Gunn', '-', 'Sec_Gunn2', 'Sec_Gunn2'],
        ]))
        with pytest.raises(DuplicateRegistryNameError) as exc:
            run(translated).build_bundle()
        assert 'Gunn' in str(exc.value)
        assert not (translated / 'Temp').exists()

    def test_tables_required(self, project):
        with pytest.raises(MissingInputError):
            run(project).build_bundle()

    def test_missing_chapter_key_is_reported(self, translated):
        table = translated / 'TranslatedData' / 'Russian' / 'Chapter_1_for_translating.xlsx'
        rows = read_rows(table)
        write_rows(table, rows[0], [r for r in rows[1:] if r[0] != 'DF4_Text'])

        report = run(translated).build_bundle()
        assert not report.ok
        errors = report.errors_for('chapter1')
        assert len(errors) == 1
        assert 'DF4_Text' in errors[0].message
        # Other chapters still built
        assert (translated / 'Temp' / 'Chapter2' / 'Strings' / 'Russian.json').exists()

    def test_missing_translated_chapter_skips_language(self, translated):
        (translated / 'TranslatedData' / 'Russian' / 'Chapter_2_for_translating.xlsx').unlink()
        report = run(translated).build_bundle()
        assert report.ok
        assert (translated / 'Temp' / 'Chapter2' / 'Strings' / 'English.json').exists()
        assert not (translated / 'Temp' / 'Chapter2' / 'Strings' / 'Russian.json').exists()
        assert any(w.group == 'chapter2' for w in report.warnings)

    def test_incomplete_shared_strings_abort(self, translated):
        write_workbook(translated / 'TranslatedData' / 'Russian' / 'Russian.xlsx', {
            'Data': [['ID', '', '', 'Text', 'Translation'], ['BookTitle', '', '', '', 'RU Title']],
        })
        with pytest.raises(LocalizationGroupError) as exc:
            run(translated).build_bundle()
        assert exc.value.group == 'sharedstrings'
        assert 'BookDesc' in exc.value.keys


# =============================================================================
# ATLAS CHECK
# =============================================================================

def test_check_atlases_reports_missing_sprite(project):
    report = run(project).check_atlases()
    assert not report.ok
    message = report.errors[0].message
    assert message.startswith('Sprite Bk_Main_')
    assert 'Bk_Main.tpsheet' in message


def test_check_atlases_complete(project):
    from storylinker.atlas import POSES
    sprites = [f'Bk_Main_{pose}' for pose in POSES] + ['Bk_Main_Pirate']
    (project / 'Art' / 'Characters' / 'Bk_Main.tpsheet').write_text('\n'.join(sprites), encoding='utf-8')
    assert run(project).check_atlases().ok


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
