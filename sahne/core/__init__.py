from .config import Settings
from .errors import (
    AlreadyHandledError, ConfigurationError, DispatchError, FileReadError, MissingDispatchTargetError, ProxyError,
    SahneError,
)
from .interceptor import Interceptor
from .sources import MitmproxyRequestSource, RequestSource
from .transport import FetchResult, HttpClient, LocalByteStore
