# =============================================================================
# Person Narrator - Attribute Extractor
# =============================================================================
# Mines the detailed (visual-intelligence) response for the nearest person's
# gender and activity. The response is a natural-language answer loosely
# wrapped in structure whose shape drifts between model versions, so the
# extractor walks it as a generic tree and tries a cascade of strategies:
#
#   1. Harvest every entry of every "classes" array, at any depth.
#   2. Pick the best entry whose category names the attribute.
#   3. Normalize that entry's label through alias tables.
#   4. Scan the joined label text of all entries for known terms.
#   5. Scan every string anywhere in the response for known terms.
#
# Each later strategy only fills attributes the earlier ones left empty.
# Nothing is guessed: an attribute nobody mentions stays None.
# =============================================================================

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from server.ranking import as_float, normalized_label
from shared.schemas import ViDebug

logger = logging.getLogger(__name__)

MAX_DEPTH = 64
MAX_NODES = 20000

CATEGORY_FIELDS = ("category", "categoryName", "category_name", "name")
LABEL_FIELDS = ("classLabel", "label", "name")

GENDERS = ("female", "male")
GENDER_ALIASES: Dict[str, Tuple[str, ...]] = {
    "female": ("female", "woman", "women", "girl", "lady", "feminine"),
    "male": ("male", "man", "men", "boy", "gentleman", "masculine"),
}

# Priority order matters: the first keyword found wins.
ACTIVITIES = (
    "walking",
    "running",
    "sitting",
    "standing",
    "exercising",
    "eating",
    "talking",
    "working",
    "playing",
    "other",
)
ACTIVITY_ALIASES: Dict[str, Tuple[str, ...]] = {
    "walking": ("walking", "walks", "strolling"),
    "running": ("running", "jogging", "sprinting"),
    "sitting": ("sitting", "seated"),
    "standing": ("standing",),
    "exercising": ("exercising", "workout", "working out"),
    "eating": ("eating",),
    "talking": ("talking", "speaking", "chatting"),
    "working": ("working",),
    "playing": ("playing",),
    "other": ("other",),
}

_FEMALE_WORD = re.compile(r"\bfemale\b")
_MALE_WORD = re.compile(r"\bmale\b")
_WORD = re.compile(r"[a-z]+")


# ---------------------------------------------------------------------------
# Generic tree walk
# ---------------------------------------------------------------------------


class NodeKind(Enum):
    OBJECT = "object"
    ARRAY = "array"
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    NULL = "null"


def node_kind(value: Any) -> NodeKind:
    """Tag a decoded JSON value with its node kind (unknown types count as NULL)."""
    if isinstance(value, dict):
        return NodeKind.OBJECT
    if isinstance(value, (list, tuple)):
        return NodeKind.ARRAY
    if isinstance(value, str):
        return NodeKind.STRING
    if isinstance(value, bool):
        return NodeKind.BOOLEAN
    if isinstance(value, (int, float)):
        return NodeKind.NUMBER
    return NodeKind.NULL


@dataclass(frozen=True)
class Node:
    kind: NodeKind
    value: Any
    key: Optional[str]
    depth: int


def walk(root: Any, max_depth: int = MAX_DEPTH, max_nodes: int = MAX_NODES) -> Iterator[Node]:
    """
    Depth-first, pre-order traversal of a decoded JSON tree.

    Children are visited in key/index order. Containers deeper than
    ``max_depth`` are not descended into and the walk stops after
    ``max_nodes`` nodes; both cases are logged, neither raises.

    Args:
        root:      Decoded JSON value.
        max_depth: Deepest level whose children are still visited.
        max_nodes: Total node budget.

    Yields:
        Node for every visited value, root first.
    """
    stack: List[Tuple[Any, Optional[str], int]] = [(root, None, 0)]
    visited = 0
    depth_limited = False

    while stack:
        if visited >= max_nodes:
            logger.warning("Response walk stopped after %d nodes", max_nodes)
            return
        value, key, depth = stack.pop()
        visited += 1

        kind = node_kind(value)
        yield Node(kind, value, key, depth)

        if kind is NodeKind.OBJECT:
            children = [(child, str(name), depth + 1) for name, child in value.items()]
        elif kind is NodeKind.ARRAY:
            children = [(child, None, depth + 1) for child in value]
        else:
            continue

        if depth >= max_depth:
            if children and not depth_limited:
                logger.warning("Response nested deeper than %d levels; ignoring the rest", max_depth)
                depth_limited = True
            continue

        stack.extend(reversed(children))


# ---------------------------------------------------------------------------
# Harvesting
# ---------------------------------------------------------------------------


@dataclass
class Evidence:
    """Everything the extraction strategies look at, gathered in one walk."""

    classes: List[Dict[str, Any]] = field(default_factory=list)
    strings: List[str] = field(default_factory=list)
    gender_entry: Optional[Dict[str, Any]] = None
    activity_entry: Optional[Dict[str, Any]] = None

    @property
    def label_text(self) -> str:
        return " | ".join(label for label in map(entry_label, self.classes) if label)


def harvest(response: Any) -> Evidence:
    """Collect ``classes`` entries and every string value from the response."""
    evidence = Evidence()
    for node in walk(response):
        if node.kind is NodeKind.STRING:
            evidence.strings.append(node.value)
        elif node.kind is NodeKind.OBJECT:
            classes = node.value.get("classes")
            if isinstance(classes, list):
                evidence.classes.extend(entry for entry in classes if isinstance(entry, dict))

    evidence.gender_entry = best_by_category(evidence.classes, "gender")
    evidence.activity_entry = best_by_category(evidence.classes, "activity")
    return evidence


def entry_category(entry: Dict[str, Any]) -> str:
    for name in CATEGORY_FIELDS:
        category = normalized_label(entry.get(name))
        if category:
            return category
    return ""


def entry_label(entry: Optional[Dict[str, Any]]) -> Optional[str]:
    if not entry:
        return None
    for name in LABEL_FIELDS:
        label = entry.get(name)
        if isinstance(label, str) and label:
            return label
    return None


def best_by_category(classes: Sequence[Dict[str, Any]], wanted: str) -> Optional[Dict[str, Any]]:
    """
    Highest-confidence entry whose category equals or contains ``wanted``.

    Earlier entries win ties.
    """
    wanted = wanted.lower()
    best = None
    for entry in classes:
        category = entry_category(entry)
        if not category or wanted not in category:
            continue
        if best is None or as_float(entry.get("confidence")) > as_float(best.get("confidence")):
            best = entry
    return best


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def normalize_gender(label: Optional[str]) -> Optional[str]:
    """Map a free-form gender label to "male"/"female", or None."""
    if not isinstance(label, str):
        return None
    words = set(_WORD.findall(label.lower()))
    for gender in GENDERS:
        if words.intersection(GENDER_ALIASES[gender]):
            return gender
    return None


def normalize_activity(label: Optional[str]) -> Optional[str]:
    """Map a free-form activity label to a canonical activity, or None."""
    if not isinstance(label, str):
        return None
    text = label.strip().lower()
    for activity in ACTIVITIES:
        if any(alias in text for alias in ACTIVITY_ALIASES[activity]):
            return activity
    return None


def scan_text(text: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Look for gender words and activity keywords in free text.

    "female" is checked before "male" (as whole words); activities are
    plain substrings tried in priority order.
    """
    text = (text or "").lower()

    gender = None
    if _FEMALE_WORD.search(text):
        gender = "female"
    elif _MALE_WORD.search(text):
        gender = "male"

    activity = next((keyword for keyword in ACTIVITIES if keyword in text), None)
    return gender, activity


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

Strategy = Callable[[Evidence], Tuple[Optional[str], Optional[str]]]


def categorized_labels(evidence: Evidence) -> Tuple[Optional[str], Optional[str]]:
    return (
        normalize_gender(entry_label(evidence.gender_entry)),
        normalize_activity(entry_label(evidence.activity_entry)),
    )


def class_label_text(evidence: Evidence) -> Tuple[Optional[str], Optional[str]]:
    return scan_text(evidence.label_text)


def all_strings_text(evidence: Evidence) -> Tuple[Optional[str], Optional[str]]:
    return scan_text(" | ".join(evidence.strings))


STRATEGIES: Tuple[Strategy, ...] = (categorized_labels, class_label_text, all_strings_text)


@dataclass
class ExtractionResult:
    gender: Optional[str] = None
    gender_confidence: float = 0.0
    activity: Optional[str] = None
    activity_confidence: float = 0.0
    debug: Optional[ViDebug] = None


def extract_attributes(response: Any, include_debug: bool = False) -> ExtractionResult:
    """
    Resolve gender and activity from a detailed-mode result frame.

    Args:
        response:      Best result frame of the detailed pass (any JSON shape, or None).
        include_debug: Attach a :class:`ViDebug` describing what was harvested.

    Returns:
        ExtractionResult; unresolved attributes are None. Confidences come
        from the categorized entries when such entries exist, else 0.
    """
    evidence = harvest(response)

    gender = activity = None
    for strategy in STRATEGIES:
        if gender and activity:
            break
        found_gender, found_activity = strategy(evidence)
        gender = gender or found_gender
        activity = activity or found_activity

    result = ExtractionResult(
        gender=gender,
        gender_confidence=as_float((evidence.gender_entry or {}).get("confidence")),
        activity=activity,
        activity_confidence=as_float((evidence.activity_entry or {}).get("confidence")),
    )
    logger.debug(
        "Extracted gender=%s activity=%s from %d class entries",
        gender, activity, len(evidence.classes),
    )

    if include_debug:
        result.debug = ViDebug(
            vi_keys=[str(key) for key in response] if isinstance(response, dict) else [],
            classes_len=len(evidence.classes),
            sample_classes=evidence.classes[:8],
            label_text=evidence.label_text,
            strings_sample=evidence.strings[:30],
        )
    return result
