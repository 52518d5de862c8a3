"""
Shared fixtures: a small three-chapter book project on disk.

Layout of the sample flow:

    CH1 "Chapter 1"            CH2 "Chapter 2"          CH3 "Chapter 3"
      D1 [Port]                  D2 [Gunn]                D3
        DF1 Hero (red)             DF3 Gunn
        DF2 Gunn                   DF5 Hero  (same text as DF2)
        D1_SUB                     I1 Location.loc = 2; Clothes.hero = 1
          DF4 Hero
"""

import sys
import json
from pathlib import Path

import pandas as pd
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))


def model(type_tag, node_id, **props):
    properties = {'Id': node_id}
    properties.update(props)
    return {'Type': type_tag, 'Properties': properties}


def sample_flow():
    return {
        'GlobalVariables': [
            {'Namespace': 'Clothes', 'Description': '', 'Variables': [
                {'Variable': 'hero', 'Type': 'Integer', 'Value': '0', 'Description': ''},
            ]},
            {'Namespace': 'Location', 'Description': '', 'Variables': [
                {'Variable': 'loc', 'Type': 'Integer', 'Value': '0', 'Description': ''},
            ]},
        ],
        'Packages': [{
            'Name': 'Main',
            'Models': [
                model('DefaultMainCharacterTemplate', 'E_MAIN', DisplayName='Main_Name'),
                model('Entity', 'E_GUNN', DisplayName='Gunn_Name'),
                model('Location', 'L_PORT', DisplayName='Port_Name'),
                model('Location', 'L_SHIP', DisplayName='Ship_Name'),
                model('FlowFragment', 'CH2', DisplayName='Ch2_Title'),
                model('FlowFragment', 'CH1', DisplayName='Ch1_Title'),
                model('FlowFragment', 'CH3', DisplayName='Ch3_Title'),
                model('Dialogue', 'D1', Parent='CH1', Attachments=['L_PORT']),
                model('DialogueFragment', 'DF1', Parent='D1', Speaker='E_MAIN', Text='DF1_Text',
                      StageDirections='DF1_Stage', Color={'R': 1.0, 'G': 0.0, 'B': 0.0, 'A': 1.0}),
                model('DialogueFragment', 'DF2', Parent='D1', Speaker='E_GUNN', Text='DF2_Text',
                      MenuText='DF2_Menu'),
                model('Dialogue', 'D1_SUB', Parent='D1'),
                model('DialogueFragment', 'DF4', Parent='D1_SUB', Speaker='E_MAIN', Text='DF4_Text'),
                model('Dialogue', 'D2', Parent='CH2', Attachments=['E_GUNN']),
                model('DialogueFragment', 'DF3', Parent='D2', Speaker='E_GUNN', Text='DF3_Text'),
                model('DialogueFragment', 'DF5', Parent='D2', Speaker='E_MAIN', Text='DF5_Text'),
                model('Instruction', 'I1', Parent='D2', Expression='Location.loc = 2;Clothes.hero = 1'),
                model('Dialogue', 'D3', Parent='CH3'),
                model('DialogueFragment', 'DF6', Parent='D3', Speaker='E_MAIN', Text='DF6_Text'),
            ],
        }],
    }


SAMPLE_TRANSLATIONS = {
    'Main_Name': 'Hero',
    'Gunn_Name': 'Gunn',
    'Port_Name': 'Port',
    'Ship_Name': 'Ship',
    'Ch1_Title': 'Chapter 1: Arrival',
    'Ch2_Title': 'Chapter 2',
    'Ch3_Title': 'Chapter 3: Storm',
    'DF1_Text': 'Where is Pname going?',
    'DF1_Stage': '(shouting)',
    'DF2_Text': 'Hello there, friend.',
    'DF2_Menu': 'Hi',
    'DF3_Text': 'Arr, welcome aboard.',
    'DF4_Text': "Let's go.",
    'DF5_Text': 'Hello there, friend.',
    'DF6_Text': 'The storm is coming.',
}


def write_workbook(path, sheets):
    """Write {sheet_name: rows} to an .xlsx file, no header inference."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine='openpyxl') as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=name, header=False, index=False)
    return path


def meta_sheets(characters=None, locations=None, settings=None):
    base = [['Key', 'Value']]
    values = {
        'UniqueID': 'Pirates_2',
        'SpritePrefix': 'Bk_',
        'VersionBin': '3',
        'VersionPreview': '1',
        'VersionBaseResources': '2',
        'StandartizedUI': '1',
        'UITextBlockFontSize': '28',
        'KarmaCurrency': 'karma',
        'KarmaBadBorder': '-5',
        'RacesList': '-',
        'ClothesSpriteNames': 'Casual,Pirate',
        'UITextColor': '255,255,255',
        'MainHeroHasDifferentGenders': '0',
        'CustomClothesCount': '0',
        'CustomHairsCount': '0',
    }
    values.update(settings or {})
    base.extend([k, v] for k, v in values.items())

    if characters is None:
        characters = [
            ['Hero', 'hero', 'Bk_Main', 'Main'],
            ['Gunn', '-', 'Sec_Gunn', 'Sec_Gunn'],
        ]
    if locations is None:
        locations = [
            ['1', 'Port', 'port_bg', 'seagulls', '1'],
            ['2', 'Ship', 'ship_bg', '-', '0'],
        ]
    return {
        'Base': base,
        'Characters': [['DisplayName', 'ClothesVariable', 'Atlas', 'BaseName']] + characters,
        'Locations': [['Id', 'DisplayName', 'Sprite', 'Idle', 'Intro']] + locations,
    }


def touch(path, content=b'data'):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


@pytest.fixture
def project(tmp_path):
    """Sample book project with English as the base language."""
    root = tmp_path / 'book'
    raw = root / 'Raw'
    raw.mkdir(parents=True)

    with open(raw / 'Flow.json', 'w', encoding='utf-8') as f:
        json.dump(sample_flow(), f)

    write_workbook(raw / 'loc_All objects_en.xlsx', {
        'Data': [['ID', 'Text']] + [[k, v] for k, v in SAMPLE_TRANSLATIONS.items()],
    })
    write_workbook(raw / 'Meta.xlsx', meta_sheets())
    write_workbook(raw / 'BookDescriptions' / 'English.xlsx', {
        'Data': [
            ['ID', 'Short', '', 'Text'],
            ['BookTitle', 'Pirates', '', 'Pirates of the Sea'],
            ['BookDesc', 'A story about the sea', '', None],
        ],
    })

    touch(root / 'Art' / 'Characters' / 'Bk_Main.png')
    touch(root / 'Art' / 'Characters' / 'Bk_Main.tpsheet', b'Bk_Main_Base Bk_Main_Emotions_Angry')
    touch(root / 'Art' / 'Characters' / 'Secondary' / 'Bk_Gunn.png')
    touch(root / 'Art' / 'Locations' / 'port_bg.png')
    touch(root / 'Art' / 'Locations' / 'ship_bg.png')
    touch(root / 'Audio' / 'Idles' / 'seagulls.mp3')
    return root


def add_translation(project_root, language, base_language='English', prefix='RU '):
    """Create TranslatedData/<language>/ from the generated base tables.

    Every row gets prefix + base text in column 4; alias rows stay blank.
    """
    from storylinker.tabular import read_rows, write_rows

    base = Path(project_root) / 'Localization' / base_language
    target = Path(project_root) / 'TranslatedData' / language
    target.mkdir(parents=True, exist_ok=True)

    for table in base.glob('*.xlsx'):
        if 'internal' in table.name:
            continue
        rows = read_rows(table)
        translated = []
        for row in rows[1:]:
            text = row[3]
            translation = '' if '*SystemLinkTo*' in text else prefix + text
            translated.append(row[:4] + [translation])
        write_rows(target / table.name, ['ID', 'Speaker', 'Emotion', 'Text', 'Translation'], translated)

    write_workbook(target / f'{language}.xlsx', {
        'Data': [
            ['ID', 'Short', '', 'Text', 'Translation'],
            ['BookTitle', '', '', 'Pirates of the Sea', prefix + 'Pirates of the Sea'],
            ['BookDesc', '', '', '', prefix + 'A story about the sea'],
        ],
    })
    return target
