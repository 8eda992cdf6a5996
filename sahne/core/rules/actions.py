from typing import Any, Optional, Tuple

import httpx

from ..errors import FileReadError, MissingDispatchTargetError, ProxyError
from ..transport import HttpClient, LocalByteStore
from ..utils import get_mime_type, maybe_await, setup_logging
from .models import (
    DispatchResult, FileTarget, NormalizedResponse, ProxyTarget, RequestContext, RequestOptions, Rule,
)
from .overrides import compose
from .proxy import make_proxy_resolver, resolve_proxy_url


def _error_response(message: str) -> NormalizedResponse:
    return NormalizedResponse(status=500, headers={}, body=message, content_type="text/plain; charset=utf-8")


class RequestDispatcher:
    """Produces a response for a rule that proceeds: map local (file) or map remote (proxy)"""

    def __init__(self, http_client: Optional[Any] = None, store: Optional[Any] = None):
        self.logger = setup_logging()
        self.http_client = http_client if http_client is not None else HttpClient()
        self.store = store if store is not None else LocalByteStore()

    async def dispatch(self, rule: Rule, request: Any, context: RequestContext) -> Tuple[DispatchResult, RequestContext]:
        target = rule.target
        if isinstance(target, FileTarget):
            return await self.apply_map_local(rule, target, request, context)
        if isinstance(target, ProxyTarget):
            return await self.apply_map_remote(rule, target, request, context)
        raise MissingDispatchTargetError(
            f"{context.rule or rule}: request {request.url()} reached dispatch but the rule declares neither file nor proxy.",
            field="target",
        )

    def resolve_file_path(self, target: FileTarget, request: Any) -> str:
        file = target.file
        if isinstance(file, str):
            return file
        path = file(request.url(), request)
        return str(path)

    async def apply_map_local(self, rule: Rule, target: FileTarget, request: Any,
                              context: RequestContext) -> Tuple[DispatchResult, RequestContext]:
        """Serve the request from a file"""
        path = self.resolve_file_path(target, request)
        context = context.evolve(file_path=path)

        try:
            body = await maybe_await(self.store.read_file(path))
        except OSError as e:
            if rule.on_file_read_fail is not None:
                await maybe_await(rule.on_file_read_fail(e, request))
            self.logger.error(
                "\n".join([
                    f"Failed to read file path from: {path} while intercepting request: {request.url()}",
                    "Ensure that:",
                    f"  - file exist at {path}.",
                    f"  - proxy rule is valid for {request.url()}.",
                ])
            )
            error = FileReadError(
                f"Could not read file {path}: {e}",
                path=path,
                cause=e,
                response=_error_response(f"Error: Could not read file {path}, {e}"),
            )
            return DispatchResult(error=error), context.evolve(error=error)

        response = NormalizedResponse(status=200, headers={}, body=body, content_type=get_mime_type(path))
        self.logger.debug(f"Map local: {request.url()} <- {path} ({len(body)} bytes)")
        return DispatchResult(response=response), context

    def build_request_options(self, rule: Rule, request: Any, proxy_url: str) -> RequestOptions:
        """Outbound options from the intercepted request with request overrides applied"""
        base = {
            "method": request.method(),
            "headers": dict(request.headers() or {}),
            "body": request.body(),
        }
        params = {"request": request, "proxyUrl": proxy_url}

        options = compose(rule.override_request_options, base, params, field="overrideRequestOptions")
        headers = compose(rule.override_request_headers, dict(options.get("headers") or {}), params,
                          field="overrideRequestHeaders")
        body = compose(rule.override_request_body, options.get("body"), params, is_replace=True,
                       field="overrideRequestBody")

        return RequestOptions.from_value({**options, "headers": headers, "body": body})

    async def apply_map_remote(self, rule: Rule, target: ProxyTarget, request: Any,
                               context: RequestContext) -> Tuple[DispatchResult, RequestContext]:
        """Forward the request to the proxy target and relay the reply"""
        resolver = target.resolver or make_proxy_resolver(target.proxy)
        proxy_url = resolve_proxy_url(request.url(), resolver, rule.url_rewrite, rule.path_rewrite, request)
        options = self.build_request_options(rule, request, proxy_url)
        context = context.evolve(proxy_url=proxy_url, request_options=options)

        try:
            raw = await self.http_client.fetch(proxy_url, options)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            if rule.on_proxy_fail is not None:
                await maybe_await(rule.on_proxy_fail(e, request))
            self.logger.error(
                "\n".join([
                    f"Failed to make proxy request to: {proxy_url} while intercepting request: {request.url()}",
                    "Ensure that:",
                    f"  - proxy server is running at {proxy_url}.",
                    f"  - proxy rule is valid for {request.url()}.",
                ])
            )
            self.logger.debug(f"Proxy failure detail: {type(e).__name__}: {e}")
            error = ProxyError(
                f"Proxy request to {proxy_url} failed: {e}",
                proxy_url=proxy_url,
                cause=e,
                response=_error_response(f"Failed during proxy request to {request.url()}."),
            )
            return DispatchResult(error=error), context.evolve(error=error)

        response = NormalizedResponse(
            status=raw.status,
            headers=dict(raw.headers),
            body=raw.body,
            content_type=raw.content_type or "",
        )
        self.logger.debug(f"Map remote: {request.url()} -> {proxy_url} [{raw.status}]")
        return DispatchResult(response=response, raw=raw), context
