"""Logging for the LogRat tools.

Modules call ``get_logger(__name__)``. The first call installs one stderr
handler on the root logger at ``Settings().log_level``, or at the level named
by ``LOGRAT_LOG_LEVEL`` when that is set. ``configure_logging(settings)``
re-applies the level once a settings file has been loaded.
"""

import logging
import os
from typing import Optional, Union

from settings_schema import Settings

_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
_handler: Optional[logging.Handler] = None


def _level_of(source: Union[Settings, str, int, None]) -> Union[str, int]:
    if source is None:
        source = os.getenv("LOGRAT_LOG_LEVEL") or Settings()
    if isinstance(source, Settings):
        source = source.log_level
    return source.upper() if isinstance(source, str) else source


def configure_logging(source: Union[Settings, str, int, None] = None) -> None:
    """Attach the LogRat handler if needed and set the root level from ``source``."""
    global _handler
    root = logging.getLogger()
    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(_FORMAT))
        root.addHandler(_handler)
    root.setLevel(_level_of(source))


def get_logger(name: str) -> logging.Logger:
    if _handler is None:
        configure_logging()
    return logging.getLogger(name)
