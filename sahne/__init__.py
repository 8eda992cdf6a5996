"""Splice local builds into a deployed web app by intercepting its HTTP requests."""
from .core import (
    AlreadyHandledError, ConfigurationError, DispatchError, FetchResult, FileReadError, HttpClient, Interceptor,
    LocalByteStore, MissingDispatchTargetError, MitmproxyRequestSource, ProxyError, RequestSource, SahneError,
    Settings,
)
from .core.rules import (
    Action, ActionType, GlobMatch, LiteralMatch, NormalizedResponse, Override, PredicateMatch, RegexMatch,
    RequestContext, RequestOptions, Rule, RuleLoader, compose, load_rules, match_glob,
)

__version__ = "0.4.0"
