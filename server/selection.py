# =============================================================================
# Person Narrator - Result Selector
# =============================================================================
# Reduces the stream of result frames produced for a single image to one
# canonical frame. The inference service may emit intermediate, improving
# results before converging, so the frame with the most detected objects is
# kept as the "most complete" one. Ties keep the earlier frame.
# =============================================================================

from typing import Any, AsyncIterable, Dict, Optional


def object_count(frame: Optional[Dict[str, Any]]) -> int:
    """Number of detected objects in a frame; malformed ``objects`` counts as 0."""
    if not isinstance(frame, dict):
        return 0
    objects = frame.get("objects")
    return len(objects) if isinstance(objects, list) else 0


async def select_best_frame(frames: AsyncIterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Consume a (possibly empty) async stream of frames and keep the fullest one.

    Args:
        frames: Result frames in the order the service emitted them.

    Returns:
        The first frame with the strictly greatest object count, or None if
        the stream produced no frames.
    """
    best = None
    best_count = -1
    async for frame in frames:
        count = object_count(frame)
        if count > best_count:
            best, best_count = frame, count
    return best
