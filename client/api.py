# =============================================================================
# Person Narrator - Gateway HTTP Client
# =============================================================================
# Provides the InferenceClient class responsible for uploading a captured
# JPEG frame to the gateway's /api/infer endpoint and parsing the ranked
# people it returns. Failed requests are not retried: in an interactive
# narration loop a stale answer is worse than a quick error cue.
# =============================================================================

import logging
import time

import requests

from shared.schemas import InferResponse

logger = logging.getLogger(__name__)


class InferenceError(RuntimeError):
    """Raised when the gateway answers with an error status."""

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.status_code = status_code


class InferenceClient:
    """
    HTTP client for the inference gateway.

    Args:
        server_url: Base URL of the gateway (e.g., "http://127.0.0.1:5173").
        timeout:    Per-request timeout in seconds.
    """

    def __init__(self, server_url: str, timeout: float = 60.0):
        self._server_url = server_url.rstrip("/")
        self._timeout = timeout
        self._session = requests.Session()

    def infer(self, image: bytes, mode: str = "detect", debug: bool = False) -> InferResponse:
        """
        Upload one JPEG frame and return the gateway's analysis.

        Args:
            image: JPEG-encoded frame.
            mode:  "detect" for people only, "vi" to also resolve gender/activity.
            debug: Ask the gateway for extraction diagnostics (vi mode only).

        Returns:
            InferResponse: The parsed response body.

        Raises:
            InferenceError: When the gateway answers with a non-2xx status.
            requests.exceptions.RequestException: On transport failures.
        """
        url = f"{self._server_url}/api/infer"
        params = {"mode": mode, "debug": "1" if debug else "0"}
        files = {"file": ("photo.jpg", image, "image/jpeg")}

        start = time.time()
        response = self._session.post(url, params=params, files=files, timeout=self._timeout)

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.ok:
            message = payload.get("error") if isinstance(payload, dict) else None
            raise InferenceError(message or "Inference failed", status_code=response.status_code)

        result = InferResponse.model_validate(payload)
        logger.info(
            "Inference (%s) → %d person(s) (%.1fms, %d KB)",
            mode, len(result.people), (time.time() - start) * 1000.0, len(image) // 1024,
        )
        return result

    def wait_for_server(self, timeout: int = 120, poll_interval: float = 2.0) -> bool:
        """
        Block until the gateway's /health endpoint reports a connected session.

        Args:
            timeout:       Maximum seconds to wait for the server.
            poll_interval: Seconds between health check polls.

        Returns:
            True if the server is ready, False if timeout expired.
        """
        url = f"{self._server_url}/health"
        start = time.time()

        logger.info("Waiting for gateway at %s (timeout=%ds)...", url, timeout)

        while (time.time() - start) < timeout:
            try:
                response = self._session.get(url, timeout=5)
                if response.status_code == 200:
                    data = response.json()
                    if data.get("detect_connected", False):
                        logger.info("Gateway is ready.")
                        return True
                    else:
                        logger.info("Gateway responded but detect session not yet connected...")
            except requests.exceptions.ConnectionError:
                logger.debug("Gateway not reachable yet...")
            except Exception:
                logger.debug("Health check error", exc_info=True)

            time.sleep(poll_interval)

        logger.error("Timed out waiting for gateway after %ds.", timeout)
        return False

    def close(self) -> None:
        self._session.close()
