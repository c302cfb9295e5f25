from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set the level for the `sitepanel` logger tree.

    Notes:
    - Plain stdlib logging; uvicorn installs the handlers.
    - Set `SITEPANEL_LOG_LEVEL=DEBUG` to see every gate decision, not only redirects.
    """

    normalized = level.upper()
    logging.getLogger("sitepanel").setLevel(normalized)
    logging.getLogger("sitepanel").propagate = True
