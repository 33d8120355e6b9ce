"""
Main entry point for the Ordinals indexer.
"""

import structlog
import uvicorn

from .config import settings
from .utils.logging import setup_logging

RUN_MODES = ("default", "readonly", "writeonly")


def start_event_server():
    """Starts the chainhook event server."""
    from .api.event_server import app as event_app

    structlog.get_logger().info("Starting event server...", host=settings.EVENT_HOST, port=settings.EVENT_PORT)
    uvicorn.run(event_app, host=settings.EVENT_HOST, port=settings.EVENT_PORT)


def start_api_server():
    """Starts the read API server."""
    from .api.main import app as api_app

    structlog.get_logger().info("Starting API server...", host=settings.API_HOST, port=settings.API_PORT)
    uvicorn.run(api_app, host=settings.API_HOST, port=settings.API_PORT)


def main(run_mode=None, debug=False):
    """Main application entry point"""
    setup_logging("DEBUG" if debug else None)
    logger = structlog.get_logger()

    run_mode = run_mode or settings.RUN_MODE
    if run_mode not in RUN_MODES:
        raise ValueError(f"Unknown RUN_MODE {run_mode!r}, expected one of {', '.join(RUN_MODES)}")

    logger.info(
        "Starting Ordinals indexer",
        run_mode=run_mode,
        network=settings.BITCOIN_NETWORK,
        version=settings.INDEXER_VERSION,
    )

    if run_mode == "readonly":
        start_api_server()
    elif run_mode == "writeonly":
        start_event_server()
    else:
        import multiprocessing

        event_process = multiprocessing.Process(target=start_event_server)
        event_process.start()
        try:
            start_api_server()
        finally:
            event_process.terminate()
            event_process.join()


if __name__ == "__main__":
    main()
