from typing import Any, Dict, List, Optional, Tuple

from sahne.core.rules.models import NormalizedResponse, RequestOptions
from sahne.core.transport import FetchResult


class FakeRequestSource:
    """In-memory request source recording every terminal operation"""

    def __init__(self, url: str = "http://x/foo", method: str = "GET",
                 headers: Optional[Dict[str, str]] = None, body: Optional[bytes] = None):
        self._url = url
        self._method = method
        self._headers = headers if headers is not None else {"accept": "*/*", "user-agent": "test"}
        self._body = body
        self.calls: List[Tuple[str, Optional[NormalizedResponse]]] = []

    def url(self) -> str:
        return self._url

    def method(self) -> str:
        return self._method

    def headers(self) -> Dict[str, str]:
        return dict(self._headers)

    def body(self) -> Optional[bytes]:
        return self._body

    async def abort(self) -> None:
        self.calls.append(("abort", None))

    async def continue_(self) -> None:
        self.calls.append(("continue", None))

    async def respond(self, response: NormalizedResponse) -> None:
        self.calls.append(("respond", response))

    def is_already_resolved(self) -> bool:
        return bool(self.calls)

    @property
    def terminal(self) -> Optional[str]:
        return self.calls[0][0] if self.calls else None

    @property
    def response(self) -> Optional[NormalizedResponse]:
        return self.calls[0][1] if self.calls else None


class FakeHttpClient:
    def __init__(self, status: int = 200, body: bytes = b"proxied", headers: Optional[Dict[str, str]] = None,
                 content_type: str = "text/plain", error: Optional[BaseException] = None):
        self.status = status
        self.body = body
        self.headers = headers if headers is not None else {"x-upstream": "1"}
        self.content_type = content_type
        self.error = error
        self.requests: List[Tuple[str, RequestOptions]] = []
        self.closed = False

    async def fetch(self, url: str, options: RequestOptions) -> FetchResult:
        self.requests.append((url, options))
        if self.error is not None:
            raise self.error
        return FetchResult(
            status=self.status,
            headers=dict(self.headers),
            body=self.body,
            content_type=self.content_type,
            url=url,
        )

    async def aclose(self) -> None:
        self.closed = True


class FakeStore:
    def __init__(self, files: Optional[Dict[str, bytes]] = None):
        self.files = files or {}
        self.reads: List[str] = []

    def read_file(self, path: str) -> bytes:
        self.reads.append(path)
        if path not in self.files:
            raise FileNotFoundError(f"No such file: {path}")
        return self.files[path]


class CallRecorder:
    """Callable recording its arguments and returning a fixed value"""

    def __init__(self, result: Any = None):
        self.result = result
        self.calls: List[Tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> Any:
        self.calls.append(args)
        return self.result
