import dataclasses
import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

import yaml

from ..errors import ConfigurationError
from ..utils import setup_logging
from .matcher import compile_match_field
from .models import FileTarget, LiteralMatch, Override, ProxyTarget, RegexMatch, Rule
from .proxy import make_proxy_resolver

# Config key (camelCase, as written in rule files) -> Rule attribute
_FIELD_NAMES: Dict[str, str] = {
    "name": "name",
    "match": "match",
    "ignore": "ignore",
    "abort": "abort",
    "next": "next",
    "fallback": "next",
    "file": "file",
    "proxy": "proxy",
    "pathRewrite": "path_rewrite",
    "urlRewrite": "url_rewrite",
    "onRequest": "on_request",
    "onResponse": "on_response",
    "onError": "on_error",
    "onProxyFail": "on_proxy_fail",
    "onFileReadFail": "on_file_read_fail",
    "overrideRequestHeaders": "override_request_headers",
    "overrideRequestBody": "override_request_body",
    "overrideRequestOptions": "override_request_options",
    "overrideResponseHeaders": "override_response_headers",
    "overrideResponseBody": "override_response_body",
    "overrideResponseOptions": "override_response_options",
    "ignoreOnResponse": "ignore_on_response",
    "abortOnResponse": "abort_on_response",
    "nextOnResponse": "next_on_response",
    "fallbackOnResponse": "next_on_response",
}
_ATTRIBUTES = set(_FIELD_NAMES.values())

_MATCH_FIELDS = ("match", "ignore", "abort", "next")
_CALLBACK_FIELDS = (
    "path_rewrite", "url_rewrite", "on_request", "on_response", "on_error", "on_proxy_fail",
    "on_file_read_fail", "ignore_on_response", "abort_on_response", "next_on_response",
)
_OVERRIDE_FIELDS = {
    "override_request_headers": ("overrideRequestHeaders", False),
    "override_request_body": ("overrideRequestBody", True),
    "override_request_options": ("overrideRequestOptions", False),
    "override_response_headers": ("overrideResponseHeaders", False),
    "override_response_body": ("overrideResponseBody", True),
    "override_response_options": ("overrideResponseOptions", False),
}
# Any of these without file/proxy means "forward to the request's own URL"
_FORWARD_FIELDS = (
    "path_rewrite", "url_rewrite", "on_response", "on_proxy_fail", "ignore_on_response",
    "abort_on_response", "next_on_response",
) + tuple(_OVERRIDE_FIELDS)


def _normalize_key(key: str) -> str:
    if key in _FIELD_NAMES:
        return _FIELD_NAMES[key]
    if key in _ATTRIBUTES:
        return key
    raise ConfigurationError(f"Unknown rule option {key!r}.", field=key)


def _structured_match(value: Any) -> Any:
    """YAML cannot hold compiled regexes: `{regex: ...}`, `{glob: ...}` and `{literal: ...}` spell them out"""
    if isinstance(value, list):
        return [_structured_match(v) for v in value]
    if not isinstance(value, Mapping):
        return value
    if len(value) != 1:
        raise ConfigurationError(f"Match mapping should have exactly one of regex/glob/literal, got {sorted(value)}.")
    kind, pattern = next(iter(value.items()))
    if kind == "regex":
        try:
            return RegexMatch(re.compile(str(pattern)))
        except re.error as e:
            raise ConfigurationError(f"Invalid regex {pattern!r}: {e}") from e
    if kind == "glob":
        return str(pattern)
    if kind == "literal":
        return LiteralMatch(str(pattern))
    raise ConfigurationError(f"Unknown match kind {kind!r}.")


class RuleLoader:
    def __init__(self):
        self.logger = setup_logging()
        self.rules: List[Rule] = []

    def compile_rule(self, config: Union[Rule, Mapping[str, Any]], index: int = 0) -> Rule:
        """Validate one rule config and compile it into an immutable Rule"""
        if isinstance(config, Rule):
            return self._bind_resolver(config)
        if not isinstance(config, Mapping):
            raise ConfigurationError(f"Rule #{index} should be a mapping. It is {type(config).__name__}.")

        options: Dict[str, Any] = {}
        for key, value in config.items():
            attr = _normalize_key(str(key))
            if options.get(attr) is not None and value is not None:
                raise ConfigurationError(f"Rule #{index}: {key!r} is given twice (check next/fallback aliases).", field=key)
            if value is not None or attr not in options:
                options[attr] = value

        name = str(options.pop("name", None) or f"rule #{index}")
        kwargs: Dict[str, Any] = {"name": name}

        for attr in _MATCH_FIELDS:
            kwargs[attr] = compile_match_field(_structured_match(options.pop(attr, None)), attr)

        for attr in _CALLBACK_FIELDS:
            value = options.pop(attr, None)
            if value is not None and not callable(value):
                raise ConfigurationError(f"{name}: {attr} is not a function. It is {type(value).__name__}.", field=attr)
            kwargs[attr] = value

        for attr, (field, is_replace) in _OVERRIDE_FIELDS.items():
            kwargs[attr] = Override.from_value(options.pop(attr, None), field, is_replace)

        kwargs["target"] = self._compile_target(name, options.pop("file", None), options.pop("proxy", None), kwargs)
        return Rule(**kwargs)

    def _compile_target(self, name: str, file: Any, proxy: Any, kwargs: Dict[str, Any]):
        if file is not None and proxy is not None:
            raise ConfigurationError(f"{name}: file and proxy are mutually exclusive.", field="file")

        if file is not None:
            if not isinstance(file, (str, Path)) and not callable(file):
                raise ConfigurationError(f"{name}: file is not a string or a function. It is {type(file).__name__}.", field="file")
            return FileTarget(str(file) if isinstance(file, Path) else file)

        if proxy is not None:
            return ProxyTarget(proxy, resolver=make_proxy_resolver(proxy))

        has_forward_options = any(
            not kwargs[attr].is_keep if isinstance(kwargs[attr], Override) else kwargs[attr] is not None
            for attr in _FORWARD_FIELDS
        )
        if has_forward_options:
            return ProxyTarget(None, resolver=make_proxy_resolver(None))
        return None

    def _bind_resolver(self, rule: Rule) -> Rule:
        if isinstance(rule.target, ProxyTarget) and rule.target.resolver is None:
            target = ProxyTarget(rule.target.proxy, resolver=make_proxy_resolver(rule.target.proxy))
            return dataclasses.replace(rule, target=target)
        return rule

    def load(self, configs: Union[Mapping[str, Any], Rule, Iterable[Union[Mapping[str, Any], Rule]], None]) -> List[Rule]:
        """Compile a rule or a list of rules; the first invalid rule aborts loading"""
        if configs is None:
            configs = []
        elif isinstance(configs, (Mapping, Rule)):
            configs = [configs]

        rules = []
        for index, config in enumerate(configs):
            if config is None:
                continue
            rules.append(self.compile_rule(config, index))

        self.rules = rules
        self.logger.info(f"Rules loaded: {len(rules)} rule(s)")
        return rules

    def load_file(self, path: Union[str, Path]) -> List[Rule]:
        """Load declarative rules from a YAML document with a top-level `rules` list (or a single `rule`)"""
        file_path = Path(path).expanduser()
        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read rules file {file_path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in rules file {file_path}: {e}") from e

        if not isinstance(data, Mapping):
            raise ConfigurationError(f"Rules file {file_path} should contain a mapping.")

        if "rules" in data:
            configs = data["rules"] or []
        elif "rule" in data:
            configs = [data["rule"]]
        else:
            raise ConfigurationError(f"Rules file {file_path} has neither `rules` nor `rule`.")

        if not isinstance(configs, list):
            raise ConfigurationError(f"`rules` in {file_path} should be a list.")

        self.logger.info(f"RuleLoader: reading {file_path}")
        return self.load(configs)


def load_rules(configs: Any = None, path: Optional[Union[str, Path]] = None) -> List[Rule]:
    loader = RuleLoader()
    if path is not None:
        return loader.load_file(path)
    return loader.load(configs)
