"""Launch the relay under uvicorn."""
from __future__ import annotations
import logging
import sys

import uvicorn

from gemini_relay.common.config import load_settings
from gemini_relay.common.errors import ConfigurationError
from gemini_relay.common.logging_setup import setup_logging
from gemini_relay.serve.fastapi_app import create_app

LOGGER = logging.getLogger("gemini_relay.serve.run")

def main() -> None:
    setup_logging()
    try:
        settings = load_settings()
        setup_logging(settings.log_level)
        app = create_app(settings)
    except ConfigurationError as e:
        LOGGER.critical("FATAL ERROR: %s", e)
        sys.exit(1)

    LOGGER.info("Server running in %s mode on port %s", settings.app_env, settings.port)
    LOGGER.info("API base URL: http://localhost:%s/api", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)

if __name__ == "__main__":
    main()
