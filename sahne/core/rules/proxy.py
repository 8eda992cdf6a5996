from typing import Any, Callable, List, Optional, Tuple, Union
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..errors import ConfigurationError
from ..utils import setup_logging

ProxyResolver = Callable[[str, Any], str]


def _identity(request_url: str, request: Any = None) -> str:
    return request_url


def _merge_query(request_query: str, proxy_params: List[Tuple[str, str]]) -> str:
    """Proxy parameters replace same-named request parameters, new ones are appended"""
    params = parse_qsl(request_query, keep_blank_values=True)
    for key, value in proxy_params:
        replaced = False
        merged = []
        for k, v in params:
            if k != key:
                merged.append((k, v))
            elif not replaced:
                merged.append((k, value))
                replaced = True
        if not replaced:
            merged.append((key, value))
        params = merged
    return urlencode(params)


def make_proxy_resolver(proxy: Union[str, ProxyResolver, None]) -> ProxyResolver:
    """Bind a proxy target once; the returned function maps a request URL to the outbound URL"""
    if proxy is None:
        return _identity

    if callable(proxy):
        return lambda request_url, request=None: proxy(request_url, request)

    if not isinstance(proxy, str):
        raise ConfigurationError(f"proxy should be a string or a function. It is {type(proxy).__name__}.", field="proxy")

    target = urlsplit(proxy if "://" in proxy else f"http://{proxy}")
    if not target.hostname:
        raise ConfigurationError(f"proxy target {proxy!r} has no hostname.", field="proxy")
    target_params = parse_qsl(target.query, keep_blank_values=True)
    prefix = target.path.rstrip("/")
    host = target.hostname
    if ":" in host:
        host = f"[{host}]"
    netloc = f"{host}:{target.port}" if target.port else host

    def resolve(request_url: str, request: Any = None) -> str:
        parsed = urlsplit(request_url)

        # Credentials of the original request survive the host swap
        userinfo = parsed.netloc.rpartition("@")[0] if "@" in parsed.netloc else ""
        new_netloc = f"{userinfo}@{netloc}" if userinfo else netloc

        path = parsed.path or "/"
        if prefix:
            path = prefix + path

        query = _merge_query(parsed.query, target_params) if target_params else parsed.query
        return urlunsplit((target.scheme, new_netloc, path, query, parsed.fragment))

    return resolve


def rewrite_path(url: str, path_rewrite: Callable[[str, Any], str], request: Any = None) -> str:
    parsed = urlsplit(url)
    new_path = path_rewrite(parsed.path, request)
    if not isinstance(new_path, str):
        raise ConfigurationError(
            f"pathRewrite should return str. It has returned {type(new_path).__name__}.", field="pathRewrite"
        )
    return urlunsplit(parsed._replace(path=new_path))


def resolve_proxy_url(request_url: str, resolver: Optional[ProxyResolver] = None,
                      url_rewrite: Optional[Callable[[str, Any], str]] = None,
                      path_rewrite: Optional[Callable[[str, Any], str]] = None,
                      request: Any = None) -> str:
    """Outbound URL: proxy target first, then urlRewrite, then pathRewrite"""
    proxy_url = (resolver or _identity)(request_url, request)

    if url_rewrite is not None:
        if not callable(url_rewrite):
            raise ConfigurationError(f"urlRewrite is not a function. It is {type(url_rewrite).__name__}.", field="urlRewrite")
        proxy_url = url_rewrite(proxy_url, request)

    if path_rewrite is not None:
        if not callable(path_rewrite):
            raise ConfigurationError(f"pathRewrite is not a function. It is {type(path_rewrite).__name__}.", field="pathRewrite")
        proxy_url = rewrite_path(proxy_url, path_rewrite, request)

    setup_logging().debug(f"Proxy URL resolved: {request_url} -> {proxy_url}")
    return proxy_url
