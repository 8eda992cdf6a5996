import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Union

import httpx

from .config import DEFAULT_PROXY_TIMEOUT, Settings
from .rules.models import RequestOptions
from .utils import setup_logging

# Hop-by-hop and length headers are recomputed by the transport
_STRIPPED_REQUEST_HEADERS = {
    "host", "content-length", "connection", "keep-alive", "proxy-connection",
    "transfer-encoding", "upgrade", "te", "trailer",
}
# The body handed back is already decoded and re-framed by the request source
_STRIPPED_RESPONSE_HEADERS = {"content-encoding", "content-length", "transfer-encoding", "connection"}


@dataclass(frozen=True)
class FetchResult:
    status: int
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    content_type: str = ""
    url: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def normalize_response_headers(headers: httpx.Headers) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key in headers.keys():
        if key.lower() in _STRIPPED_RESPONSE_HEADERS:
            continue
        values = headers.get_list(key)
        # Cookies cannot be comma-joined
        separator = "\n" if key.lower() == "set-cookie" else ", "
        result[key] = separator.join(values)
    return result


class HttpClient:
    """Outbound fetches for proxied rules. Transport failures surface as httpx.HTTPError."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None, settings: Optional[Settings] = None):
        self.logger = setup_logging()
        self.settings = settings or Settings.from_env()
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            kwargs = {
                "timeout": self.settings.proxy_timeout or DEFAULT_PROXY_TIMEOUT,
                "verify": self.settings.verify_tls,
                "follow_redirects": False,
                # Requests must not loop back through an intercepting proxy from the environment
                "trust_env": False,
            }
            if self.settings.upstream_proxy:
                kwargs["proxy"] = self.settings.upstream_proxy
                self.logger.info(f"HttpClient: upstream proxy -> {self.settings.upstream_proxy}")
            self._client = httpx.AsyncClient(**kwargs)
        return self._client

    async def fetch(self, url: str, options: RequestOptions) -> FetchResult:
        headers = {k: v for k, v in options.headers.items() if k.lower() not in _STRIPPED_REQUEST_HEADERS}
        body = options.body
        if isinstance(body, str):
            body = body.encode("utf-8")

        response = await self._get_client().request(options.method, url, headers=headers, content=body or None)
        return FetchResult(
            status=response.status_code,
            headers=normalize_response_headers(response.headers),
            body=response.content,
            content_type=response.headers.get("content-type", ""),
            url=str(response.url),
        )

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None


class LocalByteStore:
    """Reads files backing file rules; relative paths resolve against `root`"""

    def __init__(self, root: Union[str, Path, None] = None):
        self.root = Path(root) if root is not None else None

    def resolve(self, path: Union[str, Path]) -> Path:
        file_path = Path(path).expanduser()
        if self.root is not None and not file_path.is_absolute():
            file_path = self.root / file_path
        return file_path

    async def read_file(self, path: Union[str, Path]) -> bytes:
        file_path = self.resolve(path)
        if not file_path.is_file():
            raise FileNotFoundError(f"No such file: {file_path}")
        return await asyncio.to_thread(file_path.read_bytes)
