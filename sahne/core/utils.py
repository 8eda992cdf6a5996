import inspect
import logging
import os
import sys
from pathlib import Path
from typing import Any, Optional


class SahneLogger:
    """Thin wrapper keeping the mitmproxy-style `warn` spelling next to stdlib logging"""
    def __init__(self, name: str = "sahne"):
        self.name = name
        self._logger = logging.getLogger(name)

    def info(self, msg: str):
        self._logger.info(msg)

    def warn(self, msg: str):
        self._logger.warning(msg)

    def warning(self, msg: str):
        self.warn(msg)

    def error(self, msg: str):
        self._logger.error(msg)

    def debug(self, msg: str):
        self._logger.debug(msg)


_LOG_INITIALIZED = False


def _running_under_mitmproxy() -> bool:
    return any(Path(arg).name.startswith("mitm") for arg in sys.argv)


def _apply_level(level: str) -> None:
    logging.getLogger("sahne").setLevel(getattr(logging, level.upper(), logging.INFO))


def setup_logging(level: Optional[str] = None) -> SahneLogger:
    """Shared sahne logger. `level` (usually `Settings.log_level`) overrides the current level."""
    global _LOG_INITIALIZED

    logger = SahneLogger("sahne")
    if _LOG_INITIALIZED:
        if level:
            _apply_level(level)
        return logger

    sahne_logger = logging.getLogger("sahne")
    _apply_level(level or os.environ.get("SAHNE_LOG_LEVEL", "INFO"))

    # mitmdump / mitmweb install their own handlers on the root logger
    root = logging.getLogger()
    if not root.handlers and not sahne_logger.handlers and not _running_under_mitmproxy():
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(asctime)s [%(levelname)s] %(message)s', datefmt='%H:%M:%S')
        handler.setFormatter(formatter)
        sahne_logger.addHandler(handler)

    # Reduce noise from the transport libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    _LOG_INITIALIZED = True
    logger.debug("sahne logger initialized")
    return logger


async def maybe_await(value: Any) -> Any:
    """Resolve values returned by callbacks that may be sync or async"""
    if inspect.isawaitable(value):
        return await value
    return value


def get_mime_type(file_path: str) -> str:
    """Detect MIME type from file extension"""
    ext = Path(file_path).suffix.lower()
    mime_types = {
        # Text
        '.html': 'text/html; charset=utf-8',
        '.htm': 'text/html; charset=utf-8',
        '.css': 'text/css; charset=utf-8',
        '.js': 'application/javascript; charset=utf-8',
        '.mjs': 'application/javascript; charset=utf-8',
        '.map': 'application/json; charset=utf-8',
        '.json': 'application/json; charset=utf-8',
        '.xml': 'application/xml; charset=utf-8',
        '.txt': 'text/plain; charset=utf-8',
        '.csv': 'text/csv; charset=utf-8',
        # Images
        '.jpg': 'image/jpeg',
        '.jpeg': 'image/jpeg',
        '.png': 'image/png',
        '.gif': 'image/gif',
        '.svg': 'image/svg+xml',
        '.webp': 'image/webp',
        '.ico': 'image/x-icon',
        # Fonts
        '.woff': 'font/woff',
        '.woff2': 'font/woff2',
        '.ttf': 'font/ttf',
        '.otf': 'font/otf',
        # Media
        '.mp4': 'video/mp4',
        '.webm': 'video/webm',
        '.mp3': 'audio/mpeg',
        '.wav': 'audio/wav',
        '.wasm': 'application/wasm',
        '.pdf': 'application/pdf',
    }
    # Mocks without a known extension are served as text
    return mime_types.get(ext, 'text/plain; charset=utf-8')
