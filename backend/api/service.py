"""
``khokho-api`` entrypoint: serves api.app:app with uvicorn.

uvicorn's own logging config is disabled so its error log goes through the
structlog handler set up here. PORT, when the platform sets it, wins over
KK_API_PORT.
"""
from __future__ import annotations

import os

import uvicorn

from shared.config import get_settings
from shared.utils.logging import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    settings = get_settings()
    setup_logging("api")
    port = int(os.environ.get("PORT", settings.api_port))
    logger.info("api_service_launching", host=settings.api_host, port=port)

    uvicorn.run(
        "api.app:app",
        host=settings.api_host,
        port=port,
        log_config=None,
        access_log=False,
        # Timer sockets are long-lived; keep dead viewers from holding sessions open.
        ws_ping_interval=20.0,
        ws_ping_timeout=10.0,
    )


if __name__ == "__main__":
    main()
