# pakket_server/app/main.py
import logging

import uvicorn

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(level=level or settings.log_level, format=LOG_FORMAT)


def run():
    configure_logging()
    logging.getLogger(__name__).info("starting %s on %s:%d", settings.app_name, settings.host, settings.port)
    uvicorn.run('pakket_server.app.api:app', host=settings.host, port=settings.port,
                log_level=settings.log_level.lower())


if __name__ == '__main__':
    run()
