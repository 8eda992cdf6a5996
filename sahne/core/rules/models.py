import re
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Mapping, Optional, Tuple, Union
from urllib.parse import SplitResult

from ..errors import ConfigurationError


# --- Match variants ---------------------------------------------------------

@dataclass(frozen=True)
class LiteralMatch:
    """Exact URL (or URL path) comparison"""
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class GlobMatch:
    """Glob pattern; `relative` patterns are joined with the request origin first"""
    pattern: str
    relative: bool = False

    def __str__(self) -> str:
        return self.pattern


@dataclass(frozen=True)
class RegexMatch:
    pattern: re.Pattern

    def __str__(self) -> str:
        return f"/{self.pattern.pattern}/"


@dataclass(frozen=True)
class PredicateMatch:
    """Callable receiving (parsed_url, request) and returning a bool"""
    fn: Callable[[SplitResult, Any], bool]
    label: str = ""

    def __str__(self) -> str:
        return self.label or getattr(self.fn, "__name__", "<predicate>")


Match = Union[LiteralMatch, GlobMatch, RegexMatch, PredicateMatch]
MatchField = Optional[Tuple[Match, ...]]


# --- Override variants ------------------------------------------------------

class OverrideKind(Enum):
    KEEP = "keep"
    MERGE = "merge"
    TRANSFORM = "transform"
    REPLACE = "replace"


@dataclass(frozen=True)
class Override:
    """Declared change to one request/response field"""
    kind: OverrideKind = OverrideKind.KEEP
    value: Any = None
    field: str = ""

    @classmethod
    def keep(cls, field: str = "") -> "Override":
        return cls(OverrideKind.KEEP, None, field)

    @classmethod
    def merge(cls, value: Mapping, field: str = "") -> "Override":
        return cls(OverrideKind.MERGE, dict(value), field)

    @classmethod
    def transform(cls, fn: Callable, field: str = "") -> "Override":
        return cls(OverrideKind.TRANSFORM, fn, field)

    @classmethod
    def replace(cls, value: Any, field: str = "") -> "Override":
        return cls(OverrideKind.REPLACE, value, field)

    @classmethod
    def from_value(cls, value: Any, field: str = "", is_replace: bool = False) -> "Override":
        """Classify a raw config value; raises ConfigurationError for unusable values"""
        if isinstance(value, Override):
            return value if value.field or not field else dataclasses.replace(value, field=field)
        if value is None:
            return cls.keep(field)
        if callable(value):
            return cls.transform(value, field)
        if is_replace:
            return cls.replace(value, field)
        if isinstance(value, Mapping):
            return cls.merge(value, field)
        raise ConfigurationError(
            f"{field or 'override'} should be a function or a mapping. It is {type(value).__name__}.",
            field=field,
        )

    @property
    def is_keep(self) -> bool:
        return self.kind is OverrideKind.KEEP


KEEP = Override()


# --- Dispatch targets -------------------------------------------------------

UrlFunction = Callable[[str, Any], str]


@dataclass(frozen=True)
class ProxyTarget:
    """Forward to `proxy` (URL string or function); None forwards to the request URL itself"""
    proxy: Union[str, UrlFunction, None] = None
    resolver: Optional[UrlFunction] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class FileTarget:
    file: Union[str, UrlFunction]


DispatchTarget = Union[ProxyTarget, FileTarget]


# --- Rule -------------------------------------------------------------------

@dataclass(frozen=True)
class Rule:
    name: str = ""
    match: MatchField = None
    ignore: MatchField = None
    abort: MatchField = None
    next: MatchField = None

    target: Optional[DispatchTarget] = None
    path_rewrite: Optional[Callable[[str, Any], str]] = None
    url_rewrite: Optional[Callable[[str, Any], str]] = None

    on_request: Optional[Callable] = None
    on_response: Optional[Callable] = None
    on_error: Optional[Callable] = None
    on_proxy_fail: Optional[Callable] = None
    on_file_read_fail: Optional[Callable] = None

    override_request_headers: Override = KEEP
    override_request_body: Override = KEEP
    override_request_options: Override = KEEP
    override_response_headers: Override = KEEP
    override_response_body: Override = KEEP
    override_response_options: Override = KEEP

    ignore_on_response: Optional[Callable] = None
    abort_on_response: Optional[Callable] = None
    next_on_response: Optional[Callable] = None

    def __str__(self) -> str:
        return self.name or "rule"


# --- Responses and requests -------------------------------------------------

@dataclass(frozen=True)
class NormalizedResponse:
    status: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, str] = b""
    content_type: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status,
            "headers": dict(self.headers),
            "body": self.body,
            "contentType": self.content_type,
        }

    @classmethod
    def from_value(cls, value: Any) -> "NormalizedResponse":
        """Accept a NormalizedResponse or a mapping using camelCase or snake_case keys"""
        if isinstance(value, NormalizedResponse):
            return value
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"response should be a mapping. It is {type(value).__name__}.")
        content_type = value.get("contentType", value.get("content_type", ""))
        body = value.get("body", b"")
        return cls(
            status=int(value.get("status", 200)),
            headers={str(k): str(v) for k, v in dict(value.get("headers") or {}).items()},
            body=b"" if body is None else body,
            content_type=content_type or "",
        )

    @property
    def body_bytes(self) -> bytes:
        if isinstance(self.body, str):
            return self.body.encode("utf-8")
        return bytes(self.body)


@dataclass(frozen=True)
class RequestOptions:
    """Outbound request built from the intercepted request"""
    method: str = "GET"
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, str, None] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"method": self.method, "headers": dict(self.headers), "body": self.body}

    @classmethod
    def from_value(cls, value: Any) -> "RequestOptions":
        if isinstance(value, RequestOptions):
            return value
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"request options should be a mapping. It is {type(value).__name__}.")
        return cls(
            method=str(value.get("method", "GET")).upper(),
            headers={str(k): str(v) for k, v in dict(value.get("headers") or {}).items()},
            body=value.get("body"),
        )


# --- Actions ----------------------------------------------------------------

class ActionType(Enum):
    IGNORE = "ignore"
    ABORT = "abort"
    RESPOND = "respond"
    NEXT = "next"
    PENDING = "pending"
    # A callback already settled the request through its source
    HANDLED = "handled"


@dataclass(frozen=True)
class Action:
    """Outcome of a phase. IGNORE/ABORT/RESPOND are terminal, HANDLED means already settled."""
    type: ActionType
    response: Optional[NormalizedResponse] = None
    reason: str = ""

    @classmethod
    def ignore(cls, reason: str = "") -> "Action":
        return cls(ActionType.IGNORE, reason=reason)

    @classmethod
    def abort(cls, reason: str = "") -> "Action":
        return cls(ActionType.ABORT, reason=reason)

    @classmethod
    def respond(cls, response: Any, reason: str = "") -> "Action":
        return cls(ActionType.RESPOND, NormalizedResponse.from_value(response), reason)

    @classmethod
    def next(cls, reason: str = "") -> "Action":
        return cls(ActionType.NEXT, reason=reason)

    @classmethod
    def pending(cls) -> "Action":
        return cls(ActionType.PENDING)

    @classmethod
    def handled(cls, reason: str = "") -> "Action":
        return cls(ActionType.HANDLED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        return self.type in (ActionType.IGNORE, ActionType.ABORT, ActionType.RESPOND, ActionType.HANDLED)


# --- Per-request state ------------------------------------------------------

@dataclass(frozen=True)
class RequestContext:
    """Status accumulated while one request walks the rule chain"""
    url: str = ""
    rule: str = ""
    match: Any = None
    ignore: Any = None
    abort: Any = None
    next: Any = None
    proxy_url: Optional[str] = None
    file_path: Optional[str] = None
    request_options: Optional[RequestOptions] = None
    error: Optional[BaseException] = None
    action: Optional[Action] = None
    handled: bool = False

    def evolve(self, **changes: Any) -> "RequestContext":
        return dataclasses.replace(self, **changes)

    def for_rule(self, rule: Rule, index: int) -> "RequestContext":
        """Fresh per-rule status; the request URL carries over"""
        return RequestContext(url=self.url, rule=rule.name or f"rule #{index}")


# --- Callback parameters ----------------------------------------------------

@dataclass(frozen=True)
class RequestParams:
    request: Any
    url: SplitResult
    context: RequestContext


@dataclass(frozen=True)
class ResponseParams:
    response: NormalizedResponse
    request: Any
    url: SplitResult
    context: RequestContext
    raw: Any = None


@dataclass(frozen=True)
class ErrorParams:
    request: Any
    url: SplitResult
    context: RequestContext


@dataclass(frozen=True)
class DispatchResult:
    response: Optional[NormalizedResponse] = None
    error: Optional[BaseException] = None
    raw: Any = None
