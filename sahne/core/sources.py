from typing import Any, Dict, Optional, Protocol, runtime_checkable

from mitmproxy import http

from .rules.models import NormalizedResponse
from .utils import setup_logging


@runtime_checkable
class RequestSource(Protocol):
    """One intercepted request plus the operations that settle it"""

    def url(self) -> str: ...

    def method(self) -> str: ...

    def headers(self) -> Dict[str, str]: ...

    def body(self) -> Optional[bytes]: ...

    def abort(self) -> Any: ...

    def continue_(self) -> Any: ...

    def respond(self, response: NormalizedResponse) -> Any: ...

    def is_already_resolved(self) -> bool: ...


def response_headers(response: NormalizedResponse) -> Dict[str, str]:
    """Headers to send, with Content-Type filled from the response's content type"""
    headers = {str(k): str(v) for k, v in response.headers.items()}
    if response.content_type and not any(k.lower() == "content-type" for k in headers):
        headers["Content-Type"] = response.content_type
    return headers


class MitmproxyRequestSource:
    """Adapts a mitmproxy flow in its `request` hook.

    Continuing is a no-op (mitmproxy forwards the request once the hook returns),
    aborting kills the flow and responding installs `flow.response`.
    """

    def __init__(self, flow: http.HTTPFlow):
        self.flow = flow
        self.logger = setup_logging()
        self._resolved = False

    def url(self) -> str:
        return self.flow.request.pretty_url

    def method(self) -> str:
        return self.flow.request.method

    def headers(self) -> Dict[str, str]:
        return {k: v for k, v in self.flow.request.headers.items()}

    def body(self) -> Optional[bytes]:
        content = self.flow.request.get_content(strict=False)
        return content or None

    def abort(self) -> None:
        self._resolved = True
        self.flow.kill()

    def continue_(self) -> None:
        self._resolved = True

    def respond(self, response: NormalizedResponse) -> None:
        self._resolved = True
        self.flow.response = http.Response.make(
            response.status,
            response.body_bytes,
            response_headers(response),
        )

    def is_already_resolved(self) -> bool:
        return self._resolved or self.flow.response is not None or self.flow.error is not None
