"""neo-quota-controller entry point."""

import logging

import uvicorn

from .config.logging_config import setup_logging
from .config.settings import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the controller and its API."""
    from .app import create_app

    setup_logging()
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} on {settings.host}:{settings.port}")

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level="info" if settings.is_production else "debug",
        access_log=True,
    )


if __name__ == "__main__":
    main()
