import json
from typing import Any, Callable, Optional, Tuple
from urllib.parse import urlsplit

from ..errors import ConfigurationError, FileReadError
from ..utils import maybe_await, setup_logging
from .actions import RequestDispatcher
from .matcher import RuleMatcher
from .models import (
    Action, ActionType, DispatchResult, ErrorParams, NormalizedResponse, RequestContext, RequestParams,
    ResponseParams, Rule,
)
from .overrides import compose


def _coerce_action(result: Any, name: str) -> Optional[Action]:
    """Callbacks return an Action, or None to let evaluation continue"""
    if result is None or isinstance(result, Action):
        return result
    raise ConfigurationError(f"{name} should return an Action or None. It has returned {type(result).__name__}.", field=name)


def _coerce_body(body: Any) -> Any:
    if body is None:
        return b""
    if isinstance(body, (bytes, bytearray, str)):
        return body
    # Structured replacement bodies are sent as JSON
    return json.dumps(body)


class RuleEngine:
    """Evaluates one rule against one intercepted request"""

    def __init__(self, dispatcher: Optional[RequestDispatcher] = None):
        self.logger = setup_logging()
        self.matcher = RuleMatcher()
        self.dispatcher = dispatcher or RequestDispatcher()

    async def run_rule(self, rule: Rule, request: Any, context: RequestContext) -> Tuple[Action, RequestContext]:
        """Request phase, then dispatch and response phase if the rule proceeds"""
        action, context = await self.handle_request(rule, request, context)
        if action.type is not ActionType.PENDING:
            return action, context

        result, context = await self.dispatcher.dispatch(rule, request, context)
        # onFileReadFail / onProxyFail receive the live request too
        if request.is_already_resolved():
            return self._settled_by(request.url(), "a dispatch failure callback"), context
        return await self.handle_response(rule, request, result, context)

    def _settled_by(self, url: str, callback: str) -> Action:
        self.logger.debug(f"request: {url} was settled by {callback}, the rule stops here")
        return Action.handled(reason=callback)

    # --- request phase ---

    async def handle_request(self, rule: Rule, request: Any, context: RequestContext) -> Tuple[Action, RequestContext]:
        url = request.url()
        parsed = urlsplit(url)

        # 1. Ignore
        ignored = self.matcher.handle_match(rule.ignore, url, request, parsed)
        if ignored:
            self.logger.info(f"request: {url} is NOT intercepted as it matches with ignore rule: {ignored}")
            return Action.ignore(reason="ignore"), context.evolve(ignore=ignored)

        # 2. Abort
        aborted = self.matcher.handle_match(rule.abort, url, request, parsed)
        if aborted:
            self.logger.info(f"request: {url} is aborted as it matches with abort rule: {aborted}")
            return Action.abort(reason="abort"), context.evolve(abort=aborted)

        # 3. Next
        skipped = self.matcher.handle_match(rule.next, url, request, parsed)
        if skipped:
            self.logger.info(f"request: {url} is passed to the next rule as it matches with next rule: {skipped}")
            return Action.next(reason="next"), context.evolve(next=skipped)

        # 4. Match
        is_match, matched = self.matcher.match_rule(rule, url, request, parsed)
        if not is_match:
            return Action.next(reason="unmatched"), context
        context = context.evolve(match=matched)

        # 5. onRequest
        if rule.on_request is not None:
            params = RequestParams(request=request, url=parsed, context=context)
            result = await maybe_await(rule.on_request(params))
            if request.is_already_resolved():
                return self._settled_by(url, "onRequest"), context
            action = _coerce_action(result, "onRequest")
            if action is not None and action.type is not ActionType.PENDING:
                self.logger.debug(f"request: {url} handled by onRequest of {context.rule}: {action.type.value}")
                return action, context

        return Action.pending(), context

    # --- response phase ---

    async def _check(self, name: str, predicate: Optional[Callable], params: ResponseParams) -> bool:
        if predicate is None:
            return False
        if not callable(predicate):
            raise ConfigurationError(f"{name} is not a function. It is {type(predicate).__name__}.", field=name)
        result = await maybe_await(predicate(params))
        if not isinstance(result, bool):
            raise ConfigurationError(
                f"{name} should return bool. It has returned value with type {type(result).__name__}.", field=name
            )
        return result

    def compose_response(self, rule: Rule, response: NormalizedResponse, request: Any, raw: Any = None) -> NormalizedResponse:
        """Response options, then headers, then body (body is always replaced)"""
        params = {"response": response, "responseFromProxyRequest": raw, "request": request}

        options = compose(rule.override_response_options, response.to_dict(), params, field="overrideResponseOptions")
        headers = compose(rule.override_response_headers, dict(options.get("headers") or {}), params,
                          field="overrideResponseHeaders")
        body = compose(rule.override_response_body, options.get("body", response.body), params, is_replace=True,
                       field="overrideResponseBody")

        return NormalizedResponse.from_value({**options, "headers": headers, "body": _coerce_body(body)})

    async def handle_error(self, rule: Rule, request: Any, error: BaseException,
                           context: RequestContext) -> Tuple[Optional[NormalizedResponse], Optional[Action]]:
        """onError may supply a response or an action; otherwise the error decides"""
        if rule.on_error is not None:
            params = ErrorParams(request=request, url=urlsplit(request.url()), context=context)
            result = await maybe_await(rule.on_error(error, params))
            if request.is_already_resolved():
                return None, self._settled_by(request.url(), "onError")
            if isinstance(result, Action):
                return None, result
            if result is not None:
                return NormalizedResponse.from_value(result), None

        # A missing mock file answers with the error; a dead proxy lets the request through
        if isinstance(error, FileReadError) and error.response is not None:
            return None, Action.respond(error.response, reason="file read failed")
        return None, Action.ignore(reason="dispatch failed")

    async def handle_response(self, rule: Rule, request: Any, result: DispatchResult,
                              context: RequestContext) -> Tuple[Action, RequestContext]:
        response = result.response

        if result.error is not None:
            response, action = await self.handle_error(rule, request, result.error, context)
            if action is not None:
                return action, context

        params = ResponseParams(
            response=response,
            request=request,
            url=urlsplit(request.url()),
            context=context,
            raw=result.raw,
        )
        respond_with = self.compose_response(rule, response, request, result.raw)

        if await self._check("ignoreOnResponse", rule.ignore_on_response, params):
            return Action.ignore(reason="ignoreOnResponse"), context
        if await self._check("abortOnResponse", rule.abort_on_response, params):
            return Action.abort(reason="abortOnResponse"), context
        if await self._check("nextOnResponse", rule.next_on_response, params):
            return Action.next(reason="nextOnResponse"), context

        if rule.on_response is not None:
            result = await maybe_await(rule.on_response(params))
            if request.is_already_resolved():
                return self._settled_by(request.url(), "onResponse"), context
            action = _coerce_action(result, "onResponse")
            if action is not None and action.type is not ActionType.PENDING:
                return action, context

        return Action.respond(respond_with), context
