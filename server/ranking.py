# =============================================================================
# Person Narrator - Person Ranker
# =============================================================================
# Filters the detected objects of the best result frame down to confident
# "person" detections, derives a left/center/right position from the box
# center, and orders them by apparent salience (box area x confidence).
# =============================================================================

import math
from typing import Any, Dict, List, Optional

from shared.schemas import PersonRecord, Position

PERSON_LABEL = "person"
MIN_PERSON_CONFIDENCE = 0.35

# Center-fraction thresholds; both boundaries themselves classify as center.
LEFT_THRESHOLD = 0.4
RIGHT_THRESHOLD = 0.6


def as_float(value: Any, fallback: float = 0.0) -> float:
    """Coerce ``value`` to a finite float, returning ``fallback`` otherwise."""
    if isinstance(value, bool):
        return float(value)
    try:
        number = float(value)
    except (TypeError, ValueError):
        return fallback
    return number if math.isfinite(number) else fallback


def normalized_label(value: Any) -> str:
    return str(value if value is not None else "").strip().lower()


def classify_position(x: float, width: float, source_width: Any) -> Position:
    """
    Classify a box into the left, center or right third of the frame.

    Args:
        x:            Left edge of the box in source pixels.
        width:        Box width in source pixels.
        source_width: Frame width; missing or zero yields CENTER.

    Returns:
        LEFT when the center fraction is below 0.4, RIGHT when above 0.6,
        CENTER otherwise (including exactly 0.4 and 0.6).
    """
    frame_width = as_float(source_width)
    if not frame_width:
        return Position.CENTER

    fraction = (as_float(x) + as_float(width) / 2) / frame_width
    if fraction < LEFT_THRESHOLD:
        return Position.LEFT
    if fraction > RIGHT_THRESHOLD:
        return Position.RIGHT
    return Position.CENTER


def is_person(obj: Dict[str, Any]) -> bool:
    label = obj.get("classLabel") or obj.get("label")
    return (
        normalized_label(label) == PERSON_LABEL
        and as_float(obj.get("confidence")) >= MIN_PERSON_CONFIDENCE
    )


def rank_people(frame: Optional[Dict[str, Any]], source_width: Any = None) -> List[PersonRecord]:
    """
    Turn the best result frame into a ranked list of person records.

    Args:
        frame:        Best result frame (or None when the stream was empty).
        source_width: Declared frame width; defaults to ``frame["source_width"]``.

    Returns:
        PersonRecords sorted by descending ``width * height * confidence``.
        Equal scores keep detection order. Gender and activity are unset.
    """
    if not frame:
        return []

    objects = frame.get("objects")
    if not isinstance(objects, list):
        return []

    if source_width is None:
        source_width = frame.get("source_width")

    people = []
    for obj in objects:
        if not isinstance(obj, dict) or not is_person(obj):
            continue
        x = as_float(obj.get("x"))
        width = as_float(obj.get("width"))
        people.append(
            PersonRecord(
                confidence=as_float(obj.get("confidence")),
                x=x,
                y=as_float(obj.get("y")),
                width=width,
                height=as_float(obj.get("height")),
                position=classify_position(x, width, source_width),
            )
        )

    # sorted() is stable, including with reverse=True
    return sorted(people, key=lambda person: person.score, reverse=True)
