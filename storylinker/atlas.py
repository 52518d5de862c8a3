#!/usr/bin/env python3
"""
Atlas Completeness Checker

Verifies that every sprite a character can show is packed into one of its
atlases. Requirements come from the registry (base pose, emotions, races,
genders, hair) and from clothing assignments found in instruction scripts.

Input:
    - BookMeta (registry)
    - Instruction scripts ("Clothes.hero = 2; Karma.k += 1")
    - Art/Characters/<atlas>.tpsheet manifests

Output:
    - '' when complete, otherwise the first missing-sprite message
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from storylinker.registry import NO_VALUE, SECONDARY_PREFIX, BookMeta, CharacterMeta

logger = logging.getLogger(__name__)

CLOTHES_PREFIX = 'Clothes.'
GENDER_PREFIXES = ['Male_', 'Female_']
POSES = [
    'Base',
    'Emotions_Angry',
    'Emotions_Happy',
    'Emotions_Standart',
    'Emotions_Surprised',
    'Emotions_Sad',
]
HAIR_SPRITES = ['Hair1', 'Hair2', 'Hair3']


# =============================================================================
# INSTRUCTION PARSING
# =============================================================================

class Action(Enum):
    MINUS = '-='
    PLUS = '+='
    DIVIDE = '/='
    EQUAL = '='


class VarType(Enum):
    INTEGER = 'int'
    BOOLEAN = 'bool'


# Compound operators first, otherwise '=' would match inside them
OPERATOR_ORDER = [Action.MINUS, Action.PLUS, Action.DIVIDE, Action.EQUAL]


@dataclass
class ClothingInstruction:
    variable: str = ''
    value: int = 0
    action: Action = Action.EQUAL
    var_type: VarType = VarType.INTEGER
    bad_parse: bool = False


def parse_instruction(statement: str) -> ClothingInstruction:
    """
    Parse one assignment statement.

    Args:
        statement: e.g. "Clothes.hero = 2" or "Flags.met += 1;"

    Returns:
        ClothingInstruction; bad_parse is set when no operator is found, the
        value is neither an integer nor true/false, or a boolean is combined
        with a compound operator
    """
    text = statement.strip().rstrip(';').replace(';', '')
    result = ClothingInstruction()

    action = next((a for a in OPERATOR_ORDER if a.value in text), None)
    if action is None:
        logger.warning(f"No assignment operator in instruction '{text}'")
        result.bad_parse = True
        return result

    variable, _, value = text.partition(action.value)
    result.action = action
    result.variable = variable.strip()
    value = value.strip()

    try:
        result.value = int(value)
        result.var_type = VarType.INTEGER
    except ValueError:
        if value in ('true', 'false'):
            result.var_type = VarType.BOOLEAN
            result.value = 1 if value == 'true' else 0
        else:
            result.bad_parse = True

    if result.var_type is VarType.BOOLEAN and action is not Action.EQUAL:
        result.bad_parse = True

    if result.bad_parse:
        logger.warning(f"Could not parse instruction '{text}'")
    return result


# =============================================================================
# REQUIREMENTS
# =============================================================================

@dataclass
class CharacterRequirements:
    """Sprites one character needs: name -> fallback name ('' for none)."""
    character: CharacterMeta
    sprite_prefix: str
    two_genders: bool = False
    required: Dict[str, str] = field(default_factory=dict)

    def add_clothes(self, index: int, clothes_names: List[str]) -> None:
        if str(index) in self.required:
            return

        clothes_name = clothes_names[index] if 0 <= index < len(clothes_names) else ''

        if self.two_genders:
            if f'Male_{clothes_name}' in self.required:
                return
            for gender in GENDER_PREFIXES:
                self.required[f'{gender}{clothes_name}'] = f'{gender}{clothes_name}'
        else:
            self.required[str(index)] = clothes_name


class AtlasChecker:
    """Collects sprite requirements and checks them against atlas manifests."""

    def __init__(self, meta: BookMeta):
        self.meta = meta
        self.characters: List[CharacterRequirements] = []

    def build_requirements(self) -> List[CharacterRequirements]:
        self.characters = []
        for character in self.meta.characters:
            if character.atlas_file_names == NO_VALUE or SECONDARY_PREFIX in character.atlas_file_names:
                continue

            main_hero = character.is_main_hero
            two_genders = main_hero and self.meta.main_hero_has_different_genders

            if two_genders:
                prefix = f'{self.meta.sprite_prefix}Main'
                genders = GENDER_PREFIXES
            else:
                prefix = f'{self.meta.sprite_prefix}{character.base_name_in_atlas}_'
                genders = ['']

            requirements = CharacterRequirements(character, prefix, two_genders)
            races = [f'{race}_' for race in self.meta.races_list] if main_hero else []

            for gender in genders:
                for variant in [''] + races:
                    for pose in POSES:
                        requirements.required[f'{gender}{variant}{pose}'] = ''

            if main_hero and self.meta.custom_hair_count > 0:
                for hair in HAIR_SPRITES:
                    requirements.required[hair] = ''

            self.characters.append(requirements)

        logger.info(f"Atlas check covers {len(self.characters)} characters")
        return self.characters

    def _requirements_for(self, variable: str) -> Optional[CharacterRequirements]:
        for requirements in self.characters:
            if f'{CLOTHES_PREFIX}{requirements.character.clothes_variable}' == variable:
                return requirements
        return None

    def record_clothing_usage(self, raw_script: str) -> None:
        """Register clothes sprites assigned by an instruction script."""
        if not raw_script:
            return
        script = raw_script.replace('\\n', '').replace('\\r', '').replace('\n', '').replace('\r', '')

        for statement in script.split(';'):
            if not statement or CLOTHES_PREFIX not in statement:
                continue
            instruction = parse_instruction(statement)
            if instruction.bad_parse:
                continue
            requirements = self._requirements_for(instruction.variable)
            if requirements is None:
                logger.debug(f"No atlas-checked character uses {instruction.variable}")
                continue
            requirements.add_clothes(instruction.value, self.meta.clothes_sprite_names)

    def finalize(self, project_root: Path) -> str:
        """
        Look up every requirement in the character's atlas manifests.

        Manifests are searched in the order the registry lists them; a sprite
        only counts as missing once the last atlas has been searched.

        Args:
            project_root: Book project directory (contains Art/Characters)

        Returns:
            '' when every sprite is found, otherwise a message naming the
            primary sprite, its fallback and the atlas path
        """
        art = Path(project_root) / 'Art' / 'Characters'

        for requirements in self.characters:
            character = requirements.character
            atlases = character.atlases
            found = set()

            for i, atlas in enumerate(atlases):
                atlas_path = art / f'{atlas}.tpsheet'
                if not atlas_path.exists():
                    return f"Atlas manifest {atlas_path} for {character.display_name} not found"
                with open(atlas_path, 'r', encoding='utf-8', errors='replace') as f:
                    manifest = f.read()

                last_atlas = i + 1 >= len(atlases)
                for sprite, fallback in requirements.required.items():
                    if sprite in found:
                        continue
                    primary_name = requirements.sprite_prefix + sprite
                    fallback_name = requirements.sprite_prefix + fallback
                    if primary_name in manifest:
                        found.add(sprite)
                    elif fallback and fallback_name in manifest:
                        found.add(sprite)
                    elif character.is_main_hero and self.meta.custom_clothes_count > 0:
                        # Outfit is picked at game start, sprites vary per player
                        continue
                    elif last_atlas:
                        return f"Sprite {primary_name}/{fallback_name} not found in {atlas_path}"

        return ''
