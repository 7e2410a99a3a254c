# =============================================================================
# Person Narrator - Client Package
# =============================================================================
# This package contains the narration client: camera capture, the gesture
# state machine driven by a single physical control, the auto-repeat loop,
# and the ordered speech/haptic announcement queue.
# =============================================================================
