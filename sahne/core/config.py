import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional
from urllib.parse import urlparse

from .utils import setup_logging

DEFAULT_PROXY_TIMEOUT = 30.0

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Process-level settings read from the environment"""
    rules_file: Optional[Path] = None
    upstream_proxy: Optional[str] = None
    proxy_timeout: float = DEFAULT_PROXY_TIMEOUT
    verify_tls: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        logger = setup_logging()

        rules_file = env.get("SAHNE_RULES_FILE") or None

        timeout = DEFAULT_PROXY_TIMEOUT
        raw_timeout = env.get("SAHNE_PROXY_TIMEOUT", "")
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                logger.warn(f"Settings: invalid SAHNE_PROXY_TIMEOUT {raw_timeout!r}, using {DEFAULT_PROXY_TIMEOUT}s")

        return cls(
            rules_file=Path(rules_file).expanduser() if rules_file else None,
            upstream_proxy=parse_upstream_proxy(env.get("SAHNE_UPSTREAM_PROXY", "")),
            proxy_timeout=timeout,
            verify_tls=env.get("SAHNE_VERIFY_TLS", "").strip().lower() in _TRUTHY,
            log_level=env.get("SAHNE_LOG_LEVEL", "INFO").upper(),
        )


def parse_upstream_proxy(proxy_url: str) -> Optional[str]:
    """Normalize an upstream proxy URL; returns None when unset or unusable"""
    proxy_url = proxy_url.strip()
    if not proxy_url:
        return None

    # Handle cases without scheme (default to http)
    if "://" not in proxy_url:
        proxy_url = "http://" + proxy_url

    parsed = urlparse(proxy_url)
    if not parsed.hostname or not parsed.port:
        setup_logging().warn(f"Settings: invalid upstream proxy URL (missing hostname or port): {proxy_url}")
        return None
    return proxy_url
