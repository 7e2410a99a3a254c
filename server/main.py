# =============================================================================
# Person Narrator - Server Entry Point
# =============================================================================
# CLI entry point for starting the FastAPI inference gateway. Refuses to
# start when the EyePop credentials are missing.
# =============================================================================

import argparse
import logging
import sys

import uvicorn

from config import ConfigError, get_config

logger = logging.getLogger(__name__)


def main():
    """Parse CLI arguments, apply overrides, validate, and start the server."""
    parser = argparse.ArgumentParser(
        description="Person Narrator — inference gateway",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", type=str, default=None, help="Server bind address")
    parser.add_argument("--port", type=int, default=None, help="Server bind port")
    parser.add_argument("--pop-id", type=str, default=None, help="EyePop person-detection pop id")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = get_config()

    if args.host is not None:
        config.server_host = args.host
    if args.port is not None:
        config.server_port = args.port
    if args.pop_id is not None:
        config.eyepop_pop_id = args.pop_id

    try:
        config.validate_server()
    except ConfigError as exc:
        logger.error("%s", exc)
        sys.exit(1)

    config.server_url = f"http://{config.server_host}:{config.server_port}"

    print("\n" + "=" * 60)
    print("  Person Narrator — Inference Gateway")
    print("=" * 60)
    print(f"  Detect pop : {config.eyepop_pop_id}")
    print(f"  VI ability : {config.detailed_ability}")
    print(f"  Max upload : {config.max_upload_bytes // (1024 * 1024)} MB")
    print(f"  Listening  : {config.server_host}:{config.server_port}")
    print("=" * 60 + "\n")

    uvicorn.run(
        "server.app:app",
        host=config.server_host,
        port=config.server_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()
