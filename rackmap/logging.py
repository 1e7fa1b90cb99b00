import logging
import logging.config

from .config import settings

_configured = False


def configure_logging(level: str | None = None) -> None:
    """Set up root logging once for the application process."""
    global _configured
    if _configured:
        return
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {
                "handlers": ["console"],
                "level": (level or settings.log_level).upper(),
            },
            "loggers": {
                # uvicorn installs its own handlers
                "uvicorn.access": {"propagate": False},
            },
        }
    )
    _configured = True
