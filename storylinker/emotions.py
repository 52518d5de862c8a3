#!/usr/bin/env python3
"""
Emotion classification from dialogue color tags.

Writers tag each dialogue line with a color. Two versions of the authoring
tool ship different default palettes, so a color is matched exactly against
both palettes first, then by nearest RGB distance.
"""

import math
from enum import Enum
from typing import Dict, Optional, Tuple

from storylinker.model import Color


class Emotion(Enum):
    ANGRY = "Angry"
    HAPPY = "Happy"
    SAD = "Sad"
    SURPRISED = "Surprised"
    NEUTRAL = "IsntSetOrNeutral"


EXACT_TOLERANCE = 0.01

# Palette of the legacy authoring tool (checked first, wins ties)
LEGACY_PALETTE: Dict[Emotion, Color] = {
    Emotion.ANGRY: Color(1.0, 0.0, 0.0),
    Emotion.HAPPY: Color(0.0, 0.434153676, 0.08021983),
    Emotion.NEUTRAL: Color(0.577580452, 0.7605245, 0.7991027),
    Emotion.SAD: Color(0.162029386, 0.0295568351, 0.351532638),
    Emotion.SURPRISED: Color(1.0, 0.527115166, 0.0),
}

# Palette of the current authoring tool
CURRENT_PALETTE: Dict[Emotion, Color] = {
    Emotion.ANGRY: Color(1.0, 0.0, 0.0),
    Emotion.HAPPY: Color(0.0, 0.6901961, 0.31373255),
    Emotion.NEUTRAL: Color(0.78431374, 0.8862745, 0.90588236),
    Emotion.SAD: Color(0.4392157, 0.1882353, 0.627451),
    Emotion.SURPRISED: Color(1.0, 0.7529412, 0.0),
}

PALETTES = (LEGACY_PALETTE, CURRENT_PALETTE)


def color_distance(c1: Color, c2: Color) -> float:
    """Euclidean distance in RGB, alpha ignored."""
    return math.sqrt((c1.r - c2.r) ** 2 + (c1.g - c2.g) ** 2 + (c1.b - c2.b) ** 2)


def colors_match(c1: Color, c2: Color, tolerance: float = EXACT_TOLERANCE) -> bool:
    return (abs(c1.r - c2.r) <= tolerance and
            abs(c1.g - c2.g) <= tolerance and
            abs(c1.b - c2.b) <= tolerance)


def find_exact(color: Color, palette: Dict[Emotion, Color]) -> Optional[Emotion]:
    for emotion, reference in palette.items():
        if colors_match(color, reference):
            return emotion
    return None


def find_closest(color: Color, palette: Dict[Emotion, Color]) -> Tuple[Emotion, float]:
    """Return (emotion, distance) of the nearest palette color.

    On equal distances the earlier palette entry wins.
    """
    closest = Emotion.NEUTRAL
    best = math.inf
    for emotion, reference in palette.items():
        distance = color_distance(color, reference)
        if distance < best:
            best = distance
            closest = emotion
    return closest, best


def classify(color: Optional[Color]) -> Emotion:
    """Map a line's color tag to an emotion.

    Pure black is the authoring tool's "no color" state and always means
    neutral, even though it is close to other dark palette entries.

    Args:
        color: RGBA color (0-1 or 0-255 scale), or None when untagged

    Returns:
        The recognized Emotion
    """
    if color is None:
        return Emotion.NEUTRAL

    color = color.normalized()
    if color.is_unset():
        return Emotion.NEUTRAL

    for palette in PALETTES:
        exact = find_exact(color, palette)
        if exact is not None:
            return exact

    legacy_emotion, legacy_distance = find_closest(color, LEGACY_PALETTE)
    current_emotion, current_distance = find_closest(color, CURRENT_PALETTE)

    return legacy_emotion if legacy_distance <= current_distance else current_emotion
