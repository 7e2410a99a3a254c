# =============================================================================
# Person Narrator - Server Package
# =============================================================================
# This package contains the inference gateway: session management for the
# hosted EyePop endpoints, best-result selection, person ranking, attribute
# extraction, and the FastAPI application exposing /api/infer.
# =============================================================================
