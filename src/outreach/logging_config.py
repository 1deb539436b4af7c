from __future__ import annotations

import logging

from outreach.config import get_settings

_NOISY_LOGGERS = ("urllib3", "google.auth", "httpx", "openai")
_configured = False


def configure_logging(level: str | None = None) -> None:
    global _configured
    if _configured:
        return

    settings = get_settings()
    resolved = (level or settings.log_level).upper()
    logging.basicConfig(
        level=getattr(logging, resolved, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # upstream client libraries log request URLs, which carry the Gemini key
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True
