"""Standalone launcher for the asset server."""

import logging
import signal
import sys
import time
from typing import Optional, Sequence

from app_config import AppConfigurationError, load_app_config, resolve_config_path

from .config import AssetServerConfig, ServerConfigurationError
from .file_map import FileMapError, build_file_map
from .service import AssetServer


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure logging for the application."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("asset_server")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the asset server process until interrupted."""
    args = list(sys.argv[1:] if argv is None else argv)
    config_arg = args[0] if args else None
    logger = setup_logging()

    try:
        app_config = load_app_config(config_arg)
        logger.setLevel(app_config.server.log_level)
        logger.info("Loaded runtime config: %s", resolve_config_path(config_arg))
        config = AssetServerConfig.from_settings(app_config.server)
        file_map = build_file_map(
            (mapping.path, mapping.src) for mapping in app_config.mappings
        )
    except (AppConfigurationError, ServerConfigurationError, FileMapError) as error:
        logger.error("Asset server configuration error: %s", error)
        return 1

    if not config.enabled:
        logger.info("Asset server disabled via server.enabled=false")
        return 0

    server = AssetServer(config=config, file_map=file_map, logger=logger)

    try:
        server.start()
    except RuntimeError as error:
        logger.error("Asset server failed to start: %s", error)
        server.stop()
        return 1

    try:
        logger.info("Serving %d mapped path(s). Press Ctrl+C to stop.", len(file_map))

        shutdown = False

        def handle_signal(signum, frame) -> None:
            del frame
            nonlocal shutdown
            logger.info("Signal %s received, stopping.", signal.Signals(signum).name)
            shutdown = True

        signal.signal(signal.SIGINT, handle_signal)
        signal.signal(signal.SIGTERM, handle_signal)

        while not shutdown:
            time.sleep(0.2)

    except KeyboardInterrupt:
        logger.info("Stopping by user request.")
    finally:
        server.stop()

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
