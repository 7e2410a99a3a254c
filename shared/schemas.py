# =============================================================================
# Person Narrator - Shared API Schemas
# =============================================================================
# Pydantic models defining the data contracts between the narration client
# and the inference gateway. These schemas are used for response validation
# and serialization across the HTTP API boundary.
#
# Wire field names match the browser client contract, so person records
# use camelCase for the attribute confidences while the envelope keeps
# snake_case (source_width, source_height, vi_debug).
# =============================================================================

from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Position(str, Enum):
    """Horizontal third of the frame a person's box center falls into."""

    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"


class PersonRecord(BaseModel):
    """
    One detected person, ranked by apparent size and confidence.

    Attributes:
        confidence:         Detector confidence in [0, 1].
        x, y:               Top-left corner of the bounding box in source pixels.
        width, height:      Bounding box size in source pixels.
        position:           left / center / right third of the frame.
        gender:             "male", "female" or None when unresolved.
        genderConfidence:   Confidence of the categorized gender entry (0 if none).
        activity:           One of the canonical activities or None.
        activityConfidence: Confidence of the categorized activity entry (0 if none).
    """

    model_config = ConfigDict(populate_by_name=True)

    confidence: float
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0
    position: Position = Position.CENTER
    gender: Optional[str] = None
    gender_confidence: float = Field(default=0.0, alias="genderConfidence")
    activity: Optional[str] = None
    activity_confidence: float = Field(default=0.0, alias="activityConfidence")

    @property
    def score(self) -> float:
        """Ranking score: box area weighted by confidence."""
        return self.width * self.height * self.confidence


class ViDebug(BaseModel):
    """Diagnostics describing how gender/activity were extracted."""

    vi_keys: List[str] = Field(default_factory=list)
    classes_len: int = 0
    sample_classes: List[Dict[str, Any]] = Field(default_factory=list)
    label_text: str = ""
    strings_sample: List[str] = Field(default_factory=list)


class InferResponse(BaseModel):
    """
    Response body of ``POST /api/infer``.

    Attributes:
        source_width:  Width of the image as seen by the detector (None if unknown).
        source_height: Height of the image as seen by the detector (None if unknown).
        people:        Person records sorted by descending score.
        vi_debug:      Extraction diagnostics, present only for ``mode=vi&debug=1``.
    """

    source_width: Optional[Union[int, float]] = None
    source_height: Optional[Union[int, float]] = None
    people: List[PersonRecord] = Field(default_factory=list)
    vi_debug: Optional[ViDebug] = None

    def to_wire(self) -> Dict[str, Any]:
        """Serialize with wire aliases, omitting ``vi_debug`` when absent."""
        payload = self.model_dump(mode="json", by_alias=True)
        if payload.get("vi_debug") is None:
            payload.pop("vi_debug", None)
        return payload


class ErrorResponse(BaseModel):
    """Error body returned with every non-2xx status."""

    error: str
