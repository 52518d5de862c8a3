#!/usr/bin/env python3
"""
Flow graph data model.

The export is a forest of authoring-tool objects linked by parent ids.
Each raw record is decoded once into a Node with a closed Role; everything
downstream switches on Role, never on the raw type tag.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


# =============================================================================
# ROLES
# =============================================================================

class Role(Enum):
    CHAPTER = "Chapter"
    DIALOGUE = "Dialogue"
    ENTITY = "Entity"
    LOCATION = "Location"
    DIALOGUE_LINE = "DialogueLine"
    INSTRUCTION = "Instruction"
    CONDITION = "Condition"
    JUMP = "Jump"
    OTHER = "Other"


# Raw export type tag -> Role
TYPE_TAGS = {
    'FlowFragment': Role.CHAPTER,
    'Dialogue': Role.DIALOGUE,
    'Entity': Role.ENTITY,
    'DefaultSupportingCharacterTemplate': Role.ENTITY,
    'DefaultMainCharacterTemplate': Role.ENTITY,
    'Location': Role.LOCATION,
    'DialogueFragment': Role.DIALOGUE_LINE,
    'Instruction': Role.INSTRUCTION,
    'Condition': Role.CONDITION,
    'Jump': Role.JUMP,
}


def role_for_tag(type_tag: Optional[str]) -> Role:
    """Decode a raw type tag. Unknown tags map to Role.OTHER."""
    return TYPE_TAGS.get(type_tag or '', Role.OTHER)


# =============================================================================
# COLORS
# =============================================================================

@dataclass(frozen=True)
class Color:
    """RGBA color on the 0-1 scale."""
    r: float
    g: float
    b: float
    a: float = 1.0

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional['Color']:
        if not data:
            return None
        color = cls(
            float(data.get('R', 0.0)),
            float(data.get('G', 0.0)),
            float(data.get('B', 0.0)),
            float(data.get('A', 1.0)),
        )
        return color.normalized()

    def normalized(self) -> 'Color':
        """Scale 0-255 components down to 0-1."""
        if max(self.r, self.g, self.b, self.a) <= 1.0:
            return self
        return Color(self.r / 255.0, self.g / 255.0, self.b / 255.0, self.a / 255.0)

    def is_unset(self) -> bool:
        return self.r == 0 and self.g == 0 and self.b == 0


# =============================================================================
# NODES
# =============================================================================

@dataclass
class Node:
    """One authoring-tool object.

    The *_key fields are references into the localization source, not
    resolved text. ``raw`` is the untouched export record; output documents
    echo it so the runtime sees the original shape.
    """
    id: str
    role: Role
    type_tag: str = ''
    technical_name: str = ''
    display_name_key: Optional[str] = None
    text_key: Optional[str] = None
    menu_text_key: Optional[str] = None
    stage_directions_key: Optional[str] = None
    parent: Optional[str] = None
    speaker: Optional[str] = None
    color: Optional[Color] = None
    attachments: List[str] = field(default_factory=list)
    expression: Optional[str] = None
    target: Optional[str] = None
    chapter_number: Optional[int] = None
    raw: Dict = field(default_factory=dict, repr=False)


@dataclass
class Variable:
    name: str
    type: str
    value: str = ''
    description: str = ''


@dataclass
class Namespace:
    name: str
    description: str = ''
    variables: List[Variable] = field(default_factory=list)

    def has_variable(self, name: str) -> bool:
        return any(v.name == name for v in self.variables)


@dataclass
class FlowExport:
    """Parsed Flow.json document.

    ``global_variables`` keeps the raw declaration list for Base.json;
    ``namespaces`` is the decoded view used for validation.
    """
    global_variables: List[Dict]
    packages: List[Dict]
    namespaces: List[Namespace] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> 'FlowExport':
        global_variables = data.get('GlobalVariables') or []
        namespaces = []
        for ns in global_variables:
            variables = [
                Variable(
                    name=v.get('Variable', ''),
                    type=v.get('Type', ''),
                    value=str(v.get('Value', '')),
                    description=v.get('Description', '') or '',
                )
                for v in ns.get('Variables') or []
            ]
            namespaces.append(Namespace(
                name=ns.get('Namespace', ''),
                description=ns.get('Description', '') or '',
                variables=variables,
            ))
        return cls(
            global_variables=global_variables,
            packages=data.get('Packages') or [],
            namespaces=namespaces,
        )

    def namespace(self, name: str) -> Optional[Namespace]:
        for ns in self.namespaces:
            if ns.name == name:
                return ns
        return None


@dataclass
class LocalizationEntry:
    """One row of a generated localization table.

    ``is_internal`` marks stage directions: kept for the runtime, never
    sent to translators.
    """
    source_key: str
    text: str = ''
    speaker_display_name: str = ''
    emotion: str = ''
    is_internal: bool = False
