# =============================================================================
# Person Narrator - Centralized Configuration
# =============================================================================
# Provides a single Config dataclass containing all tunable parameters for
# both the narration client and the inference gateway server. Parameters are
# overridable via environment variables with the NARRATOR_ prefix (e.g.,
# NARRATOR_AUTO_REPEAT_INTERVAL_SECONDS=3.0). EyePop credentials are read
# from EYEPOP_SECRET_KEY and EYEPOP_POP_ID, optionally via a local .env file.
# =============================================================================

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or invalid."""


@dataclass
class Config:
    """
    Centralized configuration for the Person Narrator system.

    All fields can be overridden via environment variables prefixed with
    NARRATOR_. The two credential fields additionally honour the plain
    EYEPOP_SECRET_KEY / EYEPOP_POP_ID variables.
    """

    # -- Networking --
    server_host: str = "127.0.0.1"
    server_port: int = 5173

    # -- Inference service (EyePop) --
    eyepop_secret_key: str = field(default_factory=lambda: os.environ.get("EYEPOP_SECRET_KEY", ""))
    eyepop_pop_id: str = field(default_factory=lambda: os.environ.get("EYEPOP_POP_ID", ""))
    detailed_ability: str = "eyepop.image-contents:latest"

    # -- Upload limits --
    max_upload_bytes: int = 12 * 1024 * 1024

    # -- Client camera --
    camera_index: int = 0
    capture_max_width: int = 640
    jpeg_quality: int = 85
    preview_interval_seconds: float = 0.03
    request_timeout_seconds: float = 60.0

    # -- Client interaction timing --
    long_press_ms: int = 650
    double_tap_ms: int = 260
    auto_repeat_interval_seconds: float = 2.5

    # -- Speech --
    speech_rate: int = 180

    # -- Derived (computed post-init) --
    server_url: str = field(init=False)

    def __post_init__(self):
        """Apply environment variable overrides and compute derived fields."""
        self._apply_env_overrides()
        self.server_url = f"http://{self.server_host}:{self.server_port}"

    def _apply_env_overrides(self):
        """
        Override config fields from environment variables.

        Looks for NARRATOR_<FIELD_NAME_UPPERCASE> environment variables and
        applies them with appropriate type conversion.
        """
        field_types = {
            "server_host": str,
            "server_port": int,
            "eyepop_secret_key": str,
            "eyepop_pop_id": str,
            "detailed_ability": str,
            "max_upload_bytes": int,
            "camera_index": int,
            "capture_max_width": int,
            "jpeg_quality": int,
            "preview_interval_seconds": float,
            "request_timeout_seconds": float,
            "long_press_ms": int,
            "double_tap_ms": int,
            "auto_repeat_interval_seconds": float,
            "speech_rate": int,
        }
        for field_name, field_type in field_types.items():
            env_key = f"NARRATOR_{field_name.upper()}"
            env_value = os.environ.get(env_key)
            if env_value is not None:
                setattr(self, field_name, field_type(env_value))

    def missing_server_settings(self) -> List[str]:
        """Return the names of required server credentials that are unset."""
        missing = []
        if not self.eyepop_secret_key:
            missing.append("EYEPOP_SECRET_KEY")
        if not self.eyepop_pop_id:
            missing.append("EYEPOP_POP_ID")
        return missing

    def validate_server(self) -> None:
        """
        Ensure the gateway server has everything it needs to start.

        Raises:
            ConfigError: If the API credential or the detection pop id is absent.
        """
        missing = self.missing_server_settings()
        if missing:
            raise ConfigError(f"Missing {' or '.join(missing)} (set them in the environment or .env)")


# ---------------------------------------------------------------------------
# Singleton accessor
# ---------------------------------------------------------------------------
_config_instance: Optional[Config] = None


def get_config() -> Config:
    """
    Return the singleton Config instance, creating it on first call.

    A ``.env`` file in the working directory is loaded first; variables that
    are already set in the process environment take precedence.

    Returns:
        Config: The global configuration object.
    """
    global _config_instance
    if _config_instance is None:
        load_dotenv()
        _config_instance = Config()
    return _config_instance
