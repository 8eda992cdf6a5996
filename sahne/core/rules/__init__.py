from .glob import glob_to_regex, match_glob
from .loader import RuleLoader, load_rules
from .matcher import RuleMatcher, compile_match, compile_match_field
from .models import (
    Action, ActionType, DispatchResult, ErrorParams, FileTarget, GlobMatch, LiteralMatch, NormalizedResponse,
    Override, OverrideKind, PredicateMatch, ProxyTarget, RegexMatch, RequestContext, RequestOptions,
    RequestParams, ResponseParams, Rule,
)
from .overrides import compose
from .proxy import make_proxy_resolver, resolve_proxy_url
