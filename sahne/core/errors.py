from typing import Any, Optional


class SahneError(Exception):
    """Base class for every error raised by the interception engine"""


class ConfigurationError(SahneError):
    """A rule is malformed: wrong override type, bad predicate result, conflicting targets"""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class MissingDispatchTargetError(ConfigurationError):
    """A rule reached dispatch without declaring `file` or `proxy`"""


class DispatchError(SahneError):
    """Recoverable failure while producing a response for an intercepted request.

    `response` is the synthesized status-500 reply used when nothing else handles the failure.
    """

    def __init__(self, message: str, cause: Optional[BaseException] = None, response: Any = None):
        super().__init__(message)
        self.cause = cause
        self.response = response


class ProxyError(DispatchError):
    """The forwarded fetch failed at the transport level"""

    def __init__(self, message: str, proxy_url: str, cause: Optional[BaseException] = None, response: Any = None):
        super().__init__(message, cause=cause, response=response)
        self.proxy_url = proxy_url


class FileReadError(DispatchError):
    """The file backing a rule could not be read"""

    def __init__(self, message: str, path: str, cause: Optional[BaseException] = None, response: Any = None):
        super().__init__(message, cause=cause, response=response)
        self.path = path


class AlreadyHandledError(SahneError):
    """A second terminal action was attempted for the same request"""
