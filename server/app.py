# =============================================================================
# Person Narrator - FastAPI Server Application
# =============================================================================
# Defines the HTTP API of the inference gateway. A single endpoint accepts
# an uploaded photo, runs it through the detect (and optionally detailed)
# EyePop sessions, and returns ranked people as JSON. The lifespan handler
# owns the session context: it connects the detect session at startup and
# disconnects both sessions on shutdown (uvicorn maps SIGINT/SIGTERM to a
# lifespan shutdown).
# =============================================================================

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from config import Config, get_config
from server.eyepop_client import EyePopConnector
from server.gateway import InferenceGateway
from server.sessions import EndpointConnector, SessionContext
from shared.schemas import ErrorResponse, InferResponse

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message).model_dump())


def create_app(
    config: Optional[Config] = None,
    connector: Optional[EndpointConnector] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Args:
        config:    Configuration to use; defaults to the global singleton.
        connector: Inference connector; defaults to the EyePop connector built
                   from the configured credentials.

    Returns:
        A FastAPI app whose lifespan manages the inference sessions.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Application lifespan handler — initializes and tears down sessions.

        On startup:
            - Validates the EyePop credentials (only for the real connector).
            - Connects the detect session eagerly.

        On shutdown:
            - Disconnects both sessions; a failure on one does not skip the other.
        """
        cfg = config or get_config()
        active_connector = connector
        if active_connector is None:
            cfg.validate_server()
            active_connector = EyePopConnector(
                secret_key=cfg.eyepop_secret_key,
                pop_id=cfg.eyepop_pop_id,
                detailed_ability=cfg.detailed_ability,
            )

        sessions = SessionContext(active_connector)
        app.state.config = cfg
        app.state.sessions = sessions
        app.state.gateway = InferenceGateway(sessions)
        app.state.start_time = time.time()

        logger.info("Starting gateway — connecting detect endpoint...")
        await sessions.start()
        logger.info("Gateway ready — accepting requests.")
        yield

        logger.info("Shutting down gateway...")
        await sessions.close()

    app = FastAPI(
        title="Person Narrator Gateway",
        description=(
            "Receives photos from the narration client, detects people with a "
            "hosted EyePop pop, optionally characterizes the nearest person "
            "with a visual-intelligence pass, and returns ranked results."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    def health_check(request: Request):
        """Report session state and uptime."""
        sessions: SessionContext = request.app.state.sessions
        start_time = request.app.state.start_time
        return {
            "status": "ok" if sessions.detect.is_connected else "starting",
            "detect_connected": sessions.detect.is_connected,
            "detailed_connected": sessions.detailed.is_connected,
            "uptime_seconds": round(time.time() - start_time, 2),
        }

    @app.post(
        "/api/infer",
        response_model=InferResponse,
        responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def infer(
        request: Request,
        mode: str = Query(default="detect"),
        debug: str = Query(default="0"),
        file: Optional[UploadFile] = File(default=None),
    ):
        """
        Detect people in an uploaded photo.

        ``mode=vi`` additionally runs the visual-intelligence pass and fills
        gender/activity of the top-ranked person; ``debug=1`` adds
        ``vi_debug`` diagnostics to that response.
        """
        try:
            if file is None:
                return _error(400, "No file uploaded")

            cfg: Config = request.app.state.config
            image = await file.read()
            if len(image) > cfg.max_upload_bytes:
                return _error(413, "File too large")

            gateway: InferenceGateway = request.app.state.gateway
            mime_type = file.content_type or "image/jpeg"

            if mode.lower() != "vi":
                result = await gateway.detect(image, mime_type)
            else:
                result = await gateway.detailed(image, mime_type, debug=debug == "1")
            return JSONResponse(content=result.to_wire())

        except Exception as exc:
            logger.exception("Inference request failed")
            return _error(500, str(exc))

    return app


app = create_app()
