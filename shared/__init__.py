# =============================================================================
# Person Narrator - Shared Package
# =============================================================================
# Wire schemas used on both sides of the HTTP boundary between the narration
# client and the inference gateway server.
# =============================================================================
