#!/usr/bin/env python3
"""
Registry Module (Meta.xlsx)

Loads the book registry maintained by the art and content team and checks
it for ambiguities before anything is written.

Input:
    - Raw/Meta.xlsx
        Sheet 1 (Base): key/value settings, header in row 1
        Sheet 2 (Characters): DisplayName, ClothesVariable, AtlasFileName(s), BaseNameInAtlas
        Sheet 3 (Locations): Id, DisplayName, SpriteName, IdleSound, IntroFlag

Output:
    - BookMeta (in-memory), echoed as Temp/Bin/Meta.json
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from storylinker.errors import DuplicateRegistryNameError, MissingInputError, RegistryError
from storylinker.model import Namespace
from storylinker.tabular import Rows, cell, read_sheets

logger = logging.getLogger(__name__)

NO_VALUE = '-'
SECONDARY_PREFIX = 'Sec_'
CLOTHES_NAMESPACE = 'Clothes'
MAIN_HERO_BASE_NAME = 'Main'

CHARACTER_COLUMNS = 4
LOCATION_COLUMNS = 5


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class CharacterMeta:
    display_name: str
    clothes_variable: str
    atlas_file_names: str
    base_name_in_atlas: str
    aid: str = ''

    @property
    def atlases(self) -> List[str]:
        """Atlas file names; a cell may list several separated by commas."""
        return [a.strip() for a in self.atlas_file_names.split(',') if a.strip()]

    @property
    def is_secondary(self) -> bool:
        return SECONDARY_PREFIX in self.atlas_file_names or SECONDARY_PREFIX in self.base_name_in_atlas

    @property
    def is_main_hero(self) -> bool:
        return self.base_name_in_atlas == MAIN_HERO_BASE_NAME

    def to_dict(self) -> Dict:
        return {
            'Aid': self.aid,
            'DisplayName': self.display_name,
            'ClothesVariableName': self.clothes_variable,
            'AtlasFileName': self.atlas_file_names,
            'BaseNameInAtlas': self.base_name_in_atlas,
        }


@dataclass
class LocationMeta:
    id: int
    display_name: str
    sprite_name: str
    idle_sound: str
    aid: str = ''

    def to_dict(self) -> Dict:
        return {
            'Aid': self.aid,
            'Id': self.id,
            'DisplayName': self.display_name,
            'SpriteName': self.sprite_name,
            'SoundIdleName': self.idle_sound,
        }


@dataclass
class BookMeta:
    """Parsed Meta.xlsx."""
    unique_id: str = ''
    sprite_prefix: str = ''
    version_bin: str = ''
    version_preview: str = ''
    version_base_resources: str = ''

    clothes_sprite_names: List[str] = field(default_factory=list)
    undefined_clothes_func_variant: int = 0
    exceptions_weapon_layer: bool = False

    standartized_ui: bool = False
    ui_text_block_font_size: int = 0
    ui_choice_block_font_size: int = 0

    karma_currency: str = ''
    karma_bad_border: int = 0
    karma_good_border: int = 0
    karma_top_limit: int = 0

    ui_text_plate_limits: List[int] = field(default_factory=list)
    ui_paint_first_letter_in_red_exception: bool = False
    ui_text_plate_offset: int = 0
    ui_overrided_text_color: bool = False
    ui_text_color: List[int] = field(default_factory=list)
    ui_blocked_text_color: List[int] = field(default_factory=list)
    ui_ch_name_text_color: List[int] = field(default_factory=list)
    ui_outline_color: List[int] = field(default_factory=list)
    ui_res_text_color: List[int] = field(default_factory=list)

    wardrobe_enabled: bool = False
    main_hero_has_different_genders: bool = False
    main_hero_has_splitted_hair_sprite: bool = False

    intro_location: int = 0
    custom_clothes_count: int = 0
    custom_hair_count: int = 0

    currencies_in_order_of_ui: List[str] = field(default_factory=list)
    races_list: List[str] = field(default_factory=list)
    chapters_entry_points: List[str] = field(default_factory=list)

    characters: List[CharacterMeta] = field(default_factory=list)
    locations: List[LocationMeta] = field(default_factory=list)

    def character_by_name(self, name: str) -> Optional[CharacterMeta]:
        name = name.strip()
        for character in self.characters:
            if character.display_name.strip() == name:
                return character
        return None

    def location_by_name(self, name: str) -> Optional[LocationMeta]:
        name = name.strip()
        for location in self.locations:
            if location.display_name.strip() == name:
                return location
        return None

    def location_by_id(self, location_id: int) -> Optional[LocationMeta]:
        for location in self.locations:
            if location.id == location_id:
                return location
        return None

    def to_document(self) -> Dict:
        """Meta.json document for the runtime."""
        return {
            'UniqueId': self.unique_id,
            'SpritePrefix': self.sprite_prefix,
            'Version': {
                'BinVersion': self.version_bin,
                'PreviewVersion': self.version_preview,
                'BaseResourcesVersion': self.version_base_resources,
            },
            'ClothesSpriteNames': list(self.clothes_sprite_names),
            'UndefinedClothesFuncVariant': self.undefined_clothes_func_variant,
            'ExceptionsWeaponLayer': self.exceptions_weapon_layer,
            'StandartizedUi': self.standartized_ui,
            'UiTextBlockFontSize': self.ui_text_block_font_size,
            'UiChoiceBlockFontSize': self.ui_choice_block_font_size,
            'KarmaCurrency': self.karma_currency,
            'KarmaBadBorder': self.karma_bad_border,
            'KarmaGoodBorder': self.karma_good_border,
            'KarmaTopLimit': self.karma_top_limit,
            'UiTextPlateLimits': list(self.ui_text_plate_limits),
            'UiPaintFirstLetterInRedException': self.ui_paint_first_letter_in_red_exception,
            'UiTextPlateOffset': self.ui_text_plate_offset,
            'UiOverridedTextColor': self.ui_overrided_text_color,
            'UiTextColor': list(self.ui_text_color),
            'UiBlockedTextColor': list(self.ui_blocked_text_color),
            'UiChNameTextColor': list(self.ui_ch_name_text_color),
            'UiOutlineColor': list(self.ui_outline_color),
            'UiResTextColor': list(self.ui_res_text_color),
            'WardrobeEnabled': self.wardrobe_enabled,
            'MainHeroHasDifferentGenders': self.main_hero_has_different_genders,
            'MainHeroHasSplittedHairSprite': self.main_hero_has_splitted_hair_sprite,
            'IntroLocation': self.intro_location,
            'CustomClothesCount': self.custom_clothes_count,
            'CustomHairCount': self.custom_hair_count,
            'CurrenciesInOrderOfUi': list(self.currencies_in_order_of_ui),
            'RacesList': list(self.races_list),
            'ChaptersEntryPoints': list(self.chapters_entry_points),
            'Characters': [c.to_dict() for c in self.characters],
            'Locations': [l.to_dict() for l in self.locations],
        }


# =============================================================================
# VALUE PARSING
# =============================================================================

def _parse_int(key: str, value: str) -> int:
    text = value.strip()
    try:
        return int(text)
    except ValueError:
        pass
    # openpyxl hands integer cells back as floats in some files
    try:
        number = float(text)
    except ValueError:
        raise RegistryError(f"Setting {key} in Meta.xlsx must be an integer, got '{value}'")
    if not number.is_integer():
        raise RegistryError(f"Setting {key} in Meta.xlsx must be an integer, got '{value}'")
    return int(number)


def _parse_flag(value: str) -> bool:
    return value.strip() in ('1', '1.0')


def _parse_int_list(key: str, value: str) -> List[int]:
    return [_parse_int(key, part) for part in value.split(',')]


def _parse_str_list(value: str) -> List[str]:
    return value.split(',')


# Setting key -> (attribute, parser)
SETTINGS = {
    'UniqueID': ('unique_id', None),
    'SpritePrefix': ('sprite_prefix', None),
    'VersionBin': ('version_bin', None),
    'VersionPreview': ('version_preview', None),
    'VersionBaseResources': ('version_base_resources', None),
    'StandartizedUI': ('standartized_ui', 'flag'),
    'UITextBlockFontSize': ('ui_text_block_font_size', 'int'),
    'UIChoiceBlockFontSize': ('ui_choice_block_font_size', 'int'),
    'KarmaCurrency': ('karma_currency', None),
    'KarmaBadBorder': ('karma_bad_border', 'int'),
    'KarmaGoodBorder': ('karma_good_border', 'int'),
    'KarmaTopLimit': ('karma_top_limit', 'int'),
    'CurrenciesInOrderOfUI': ('currencies_in_order_of_ui', 'list'),
    'RacesList': ('races_list', 'races'),
    'ClothesSpriteNames': ('clothes_sprite_names', 'list'),
    'UndefinedClothesFuncVariant': ('undefined_clothes_func_variant', 'int'),
    'ExceptionsWeaponLayer': ('exceptions_weapon_layer', 'flag'),
    'UITextPlateLimits': ('ui_text_plate_limits', 'int_list'),
    'UIPaintFirstLetterInRedException': ('ui_paint_first_letter_in_red_exception', 'flag'),
    'UITextPlateOffset': ('ui_text_plate_offset', 'int'),
    'UIOverridedTextColor': ('ui_overrided_text_color', 'flag'),
    'UITextColor': ('ui_text_color', 'int_list'),
    'UIBlockedTextColor': ('ui_blocked_text_color', 'int_list'),
    'UIChNameTextColor': ('ui_ch_name_text_color', 'int_list'),
    'UIOutlineColor': ('ui_outline_color', 'int_list'),
    'UIResTextColor': ('ui_res_text_color', 'int_list'),
    'WardrobeEnabled': ('wardrobe_enabled', 'flag'),
    'MainHeroHasDifferentGenders': ('main_hero_has_different_genders', 'flag'),
    'MainHeroHasSplittedHairSprite': ('main_hero_has_splitted_hair_sprite', 'flag'),
    'CustomClothesCount': ('custom_clothes_count', 'int'),
    'CustomHairsCount': ('custom_hair_count', 'int'),
}


def _convert(key: str, kind: Optional[str], value: str):
    if kind == 'int':
        return _parse_int(key, value)
    if kind == 'flag':
        return _parse_flag(value)
    if kind == 'list':
        return _parse_str_list(value)
    if kind == 'int_list':
        return _parse_int_list(key, value)
    if kind == 'races':
        return [] if value.strip() == NO_VALUE else _parse_str_list(value)
    return value


# =============================================================================
# LOADING
# =============================================================================

def _data_rows(rows: Rows, width: int, sheet_name: str):
    """Yield (row_number, cells) for filled rows after the header.

    Row numbers are 1-based spreadsheet rows so errors point at the cell
    the content team has to fix.
    """
    for index, row in enumerate(rows[1:], start=2):
        cells = [cell(row, i).strip() for i in range(width)]
        if not any(cells):
            continue
        if not all(cells):
            raise RegistryError(
                f"Row {index} of sheet {sheet_name} in Meta.xlsx has empty fields: {cells}"
            )
        yield index, cells


def _apply_settings(meta: BookMeta, rows: Rows) -> None:
    for row in rows[1:]:
        key = cell(row, 0).strip()
        if not key:
            continue
        if key not in SETTINGS:
            logger.debug(f"Ignoring unknown Meta.xlsx setting '{key}'")
            continue
        attribute, kind = SETTINGS[key]
        setattr(meta, attribute, _convert(key, kind, cell(row, 1).strip()))


def load_meta(path: Path) -> BookMeta:
    """
    Load Meta.xlsx.

    Args:
        path: Path to Raw/Meta.xlsx

    Returns:
        BookMeta with settings, characters and locations

    Raises:
        MissingInputError: If the workbook does not exist
        RegistryError: If it has fewer than three sheets or a partially filled row
    """
    path = Path(path)
    if not path.exists():
        raise MissingInputError(path, "registry spreadsheet")

    sheets = read_sheets(path)
    if len(sheets) < 3:
        raise RegistryError(f"Meta.xlsx must have Base, Characters and Locations sheets, found {len(sheets)}")

    meta = BookMeta()
    _apply_settings(meta, sheets[0])

    for _, cells in _data_rows(sheets[1], CHARACTER_COLUMNS, 'Characters'):
        meta.characters.append(CharacterMeta(
            display_name=cells[0],
            clothes_variable=cells[1],
            atlas_file_names=cells[2],
            base_name_in_atlas=cells[3],
        ))

    for row_number, cells in _data_rows(sheets[2], LOCATION_COLUMNS, 'Locations'):
        meta.locations.append(LocationMeta(
            id=_parse_int(f'Locations row {row_number} Id', cells[0]),
            display_name=cells[1],
            sprite_name=cells[2],
            idle_sound=cells[3],
        ))
        if cells[4] in ('1', '1.0'):
            meta.intro_location = row_number - 1

    logger.info(f"Loaded Meta.xlsx: {len(meta.characters)} characters, {len(meta.locations)} locations")
    return meta


# =============================================================================
# VALIDATION
# =============================================================================

def _characters_clash(a: CharacterMeta, b: CharacterMeta) -> bool:
    """Two rows clash when the runtime could not tell them apart."""
    if a.display_name == b.display_name:
        return True
    same_base = a.base_name_in_atlas == b.base_name_in_atlas and a.base_name_in_atlas != NO_VALUE
    same_clothes = a.clothes_variable == b.clothes_variable and a.clothes_variable.strip() != NO_VALUE
    return same_base and same_clothes


def validate_characters(meta: BookMeta, global_variables: List[Namespace]) -> None:
    """
    Check the Characters sheet against itself and the flow's variables.

    Raises:
        DuplicateRegistryNameError: Two rows share a display name, or the
            same (base name, clothes variable) pair
        RegistryError: Secondary atlas naming is inconsistent, or a clothes
            variable is not declared in the Clothes namespace
    """
    clothes = next((ns for ns in global_variables if ns.name == CLOTHES_NAMESPACE), None)

    for i, character in enumerate(meta.characters):
        for j, other in enumerate(meta.characters):
            if i != j and _characters_clash(character, other):
                raise DuplicateRegistryNameError(
                    'character', other.display_name,
                    f"clashes with '{character.display_name}': base name "
                    f"'{other.base_name_in_atlas}', clothes '{other.clothes_variable}'"
                )

        if character.is_secondary and character.atlas_file_names != character.base_name_in_atlas:
            raise RegistryError(
                f"Secondary character {character.display_name} must have identical "
                f"AtlasFileName and BaseNameInAtlas, got '{character.atlas_file_names}' "
                f"and '{character.base_name_in_atlas}'"
            )

        variable = character.clothes_variable.strip()
        if variable == NO_VALUE:
            continue
        if clothes is None or not clothes.has_variable(variable):
            raise RegistryError(
                f"Variable {CLOTHES_NAMESPACE}.{variable} used by {character.display_name} "
                f"is not declared in the flow export"
            )


def validate_locations(meta: BookMeta) -> None:
    """Raises DuplicateRegistryNameError on a repeated display or sprite name."""
    seen_names: Dict[str, LocationMeta] = {}
    seen_sprites: Dict[str, LocationMeta] = {}
    for location in meta.locations:
        if location.display_name in seen_names:
            raise DuplicateRegistryNameError('location', location.display_name)
        if location.sprite_name in seen_sprites:
            raise DuplicateRegistryNameError(
                'location', location.display_name,
                f"sprite '{location.sprite_name}' already used by "
                f"'{seen_sprites[location.sprite_name].display_name}'"
            )
        seen_names[location.display_name] = location
        seen_sprites[location.sprite_name] = location
