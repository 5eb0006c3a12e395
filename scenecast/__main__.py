"""
SceneCast Main Entry Point

Run the SceneCast API server.
"""

import argparse
import sys

from scenecast.core.env_loader import ensure_env_loaded
from scenecast.core.logging_config import LogLevel, get_logger, setup_logging


def main():
    """Main entry point for the SceneCast server."""
    parser = argparse.ArgumentParser(
        description="SceneCast - stories to cinematic scenes and images"
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host interface for the API server (default: from settings)"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the API server (default: from settings)"
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Use the verbose log format"
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging and auto-reload"
    )

    parser.add_argument(
        "--skip-validation",
        action="store_true",
        help="Skip API key validation at startup"
    )

    args = parser.parse_args()

    ensure_env_loaded()
    from scenecast.core.config import get_settings
    from scenecast.core.startup import validate_environment

    settings = get_settings()

    if args.debug or settings.debug:
        log_level = LogLevel.DEBUG
    else:
        log_level = LogLevel.from_name(settings.log_level)
    setup_logging(level=log_level, log_file=settings.log_file, verbose=args.verbose)

    logger = get_logger("main")
    logger.info("Starting SceneCast...")

    if not args.skip_validation:
        validation_result = validate_environment(settings)
        if not validation_result.valid:
            logger.error("Environment validation failed:")
            for error in validation_result.errors:
                logger.error(f"  - {error}")
            print("\nEnvironment validation failed. Missing required configuration:")
            for error in validation_result.errors:
                print(f"  ✗ {error}")
            if validation_result.warnings:
                print("\nWarnings:")
                for warning in validation_result.warnings:
                    print(f"  ⚠ {warning}")
            print("\nRun with --skip-validation to bypass (not recommended)")
            sys.exit(1)

        for warning in validation_result.warnings:
            logger.warning(warning)

    from scenecast.api.main import start_server

    host = args.host or settings.host
    port = args.port or settings.port
    logger.info(f"API server on http://{host}:{port}")
    start_server(host=host, port=port, reload=args.debug)


if __name__ == "__main__":
    main()
