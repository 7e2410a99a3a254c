# =============================================================================
# Person Narrator - Narration Phrases
# =============================================================================
# Turns gateway responses into short spoken sentences plus a haptic pattern.
# Speech is kept brief on purpose: directions are summarized for the three
# most salient people only.
# =============================================================================

from collections import Counter
from dataclasses import dataclass
from typing import Optional, Tuple

from shared.schemas import InferResponse, PersonRecord

# Vibration patterns in milliseconds (on, off, on, ...).
HAPTIC_NONE: Tuple[int, ...] = (60,)
HAPTIC_ONE: Tuple[int, ...] = (120,)
HAPTIC_MANY: Tuple[int, ...] = (120, 80, 120)
HAPTIC_DETAIL: Tuple[int, ...] = (60, 40, 60, 40, 60)
HAPTIC_ERROR: Tuple[int, ...] = (400,)
HAPTIC_TOGGLE: Tuple[int, ...] = (40, 40, 40)

INTRO_TEXT = (
    "Person narrator ready. Tap to describe who is in front of you. "
    "Double tap to start or stop automatic mode. "
    "Press and hold for details about the nearest person."
)
REMINDER_TEXT = "Automatic mode is on. Double tap to stop."
AUTO_ON_TEXT = "Automatic mode on."
AUTO_OFF_TEXT = "Automatic mode off."
ERROR_TEXT = "Error."

MAX_DIRECTIONS = 3


@dataclass(frozen=True)
class Narration:
    text: str
    haptic_pattern: Tuple[int, ...] = ()


def describe_people(response: InferResponse) -> Narration:
    """
    Summarize how many people are visible and where.

    Args:
        response: Gateway response with people sorted by salience.

    Returns:
        Narration such as "Person ahead, left." or
        "3 people detected: 1 left, 2 center."
    """
    people = response.people
    if not people:
        return Narration("No person detected.", HAPTIC_NONE)

    if len(people) == 1:
        return Narration(f"Person ahead, {people[0].position.value}.", HAPTIC_ONE)

    counts = Counter(person.position.value for person in people[:MAX_DIRECTIONS])
    parts = [f"{counts[side]} {side}" for side in ("left", "center", "right") if counts[side]]
    return Narration(f"{len(people)} people detected: {', '.join(parts)}.", HAPTIC_MANY)


def describe_details(response: InferResponse) -> Narration:
    """Summary plus gender and activity of the nearest person, when known."""
    summary = describe_people(response)
    if not response.people:
        return summary

    details = _person_details(response.people[0])
    text = f"{summary.text} {details}" if details else f"{summary.text} No details available."
    return Narration(text, HAPTIC_DETAIL)


def _person_details(person: PersonRecord) -> Optional[str]:
    parts = []
    if person.gender:
        parts.append(f"{person.gender.capitalize()}.")
    if person.activity:
        parts.append(f"{person.activity.capitalize()}.")
    return " ".join(parts) or None


def describe_error() -> Narration:
    return Narration(ERROR_TEXT, HAPTIC_ERROR)
