import logging

import uvicorn

from .core import config
from .main import create_app

logger = logging.getLogger(__name__)


def main():
    settings = config.get_settings()
    app = create_app(settings)

    logger.info("Starting proverbs API on %s:%s", settings.HOST, settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
