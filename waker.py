"""Platform wake mechanism: bring the companion app forward via its URL scheme."""

from __future__ import annotations

import logging
from typing import Callable, Optional
from urllib.parse import urlsplit

try:
    from PySide6.QtCore import QUrl
    from PySide6.QtGui import QDesktopServices
except Exception:  # pragma: no cover
    QUrl = None  # type: ignore
    QDesktopServices = None  # type: ignore

logger = logging.getLogger(__name__)

ACTIVATION_SCHEME = "voicedictation"
START_ACTION = "start"
DEFAULT_WAKE_URL = f"{ACTIVATION_SCHEME}://{START_ACTION}"


def parse_activation_url(url: str) -> Optional[str]:
    """Return the action of a ``voicedictation://<action>`` URL, else None."""
    parts = urlsplit(url)
    if parts.scheme != ACTIVATION_SCHEME or not parts.netloc:
        return None
    return parts.netloc


def is_start_url(url: str) -> bool:
    return parse_activation_url(url) == START_ACTION


class QtUrlWaker:
    def wake(self, url: str, completion: Optional[Callable[[bool], None]] = None) -> None:
        if QDesktopServices is None or QUrl is None:
            raise RuntimeError("PySide6 is not installed")
        opened = bool(QDesktopServices.openUrl(QUrl(url)))
        if not opened:
            logger.warning("Activation request for %s was not handled", url)
        if completion is not None:
            completion(opened)
