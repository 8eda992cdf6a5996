import re
from typing import Any, Optional, Sequence, Tuple, Union
from urllib.parse import SplitResult, urljoin, urlsplit

from ..errors import ConfigurationError
from ..utils import setup_logging
from .glob import glob_to_regex
from .models import GlobMatch, LiteralMatch, Match, MatchField, PredicateMatch, RegexMatch

_ABSOLUTE_URL_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.-]*://")


def _match_all(url: SplitResult, request: Any) -> bool:
    return True


MATCH_ALL = PredicateMatch(_match_all, label="''")


def compile_match(value: Any, field: str = "match") -> Match:
    """Turn one configured match value into its tagged variant"""
    if isinstance(value, (LiteralMatch, GlobMatch, RegexMatch, PredicateMatch)):
        return value
    if isinstance(value, str):
        if value == "":
            return MATCH_ALL
        if value.startswith("*"):
            return GlobMatch(value, relative=False)
        # Absolute URLs are final; paths are joined with the request origin later
        return GlobMatch(value, relative=not _ABSOLUTE_URL_RE.match(value))
    if isinstance(value, re.Pattern):
        return RegexMatch(value)
    if callable(value):
        return PredicateMatch(value)
    raise ConfigurationError(
        f"{field} should be a string, a compiled regex or a function. It is {type(value).__name__}.",
        field=field,
    )


def compile_match_field(value: Any, field: str = "match") -> MatchField:
    """Compile a single match or a list of matches; None means not configured"""
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return tuple(compile_match(v, field) for v in value)
    return (compile_match(value, field),)


def origin_of(parsed_url: SplitResult) -> str:
    return f"{parsed_url.scheme}://{parsed_url.netloc}"


class RuleMatcher:
    def __init__(self):
        self.logger = setup_logging()

    def evaluate(self, match: Union[Match, str, None], url_string: str, parsed_url: SplitResult,
                 base_origin: str, request: Any = None) -> bool:
        """Check one match value against a concrete URL"""
        if match is None:
            return True
        if not isinstance(match, (LiteralMatch, GlobMatch, RegexMatch, PredicateMatch)):
            match = compile_match(match)

        if isinstance(match, GlobMatch):
            pattern = match.pattern
            if match.relative:
                pattern = urljoin(base_origin, pattern)
            return glob_to_regex(pattern).match(url_string) is not None

        if isinstance(match, RegexMatch):
            return match.pattern.search(url_string) is not None

        if isinstance(match, LiteralMatch):
            return match.value == url_string or match.value == parsed_url.path

        result = match.fn(parsed_url, request)
        if not isinstance(result, bool):
            raise ConfigurationError(
                f"match predicate {match} should return bool. It has returned {type(result).__name__}."
            )
        return result

    def evaluate_any(self, matches: Sequence[Match], url_string: str, parsed_url: SplitResult,
                     base_origin: str, request: Any = None) -> Optional[Match]:
        """OR-combine a list of matches; returns the first element that matched"""
        for match in matches:
            if self.evaluate(match, url_string, parsed_url, base_origin, request):
                return match
        return None

    def handle_match(self, field: MatchField, url: str, request: Any = None,
                     parsed_url: Optional[SplitResult] = None) -> Union[Match, bool, None]:
        """None when the field is not configured, the matching element, or False"""
        if field is None:
            return None
        if parsed_url is None:
            parsed_url = urlsplit(url)
        matched = self.evaluate_any(field, url, parsed_url, origin_of(parsed_url), request)
        if matched is None:
            return False
        return matched

    def match_rule(self, rule: Any, url: str, request: Any = None,
                   parsed_url: Optional[SplitResult] = None) -> Tuple[bool, Optional[Match]]:
        """Check the rule's `match` field; rules without one match everything"""
        matched = self.handle_match(rule.match, url, request, parsed_url)
        if matched is None:
            return (True, None)
        if matched is False:
            return (False, None)
        return (True, matched)
