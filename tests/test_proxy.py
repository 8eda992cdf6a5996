import unittest

from sahne.core.errors import ConfigurationError
from sahne.core.rules.proxy import make_proxy_resolver, resolve_proxy_url, rewrite_path


class TestProxyResolver(unittest.TestCase):
    def test_origin_swap_keeps_path_and_query(self):
        resolve = make_proxy_resolver("http://localhost:3000")
        self.assertEqual(resolve("https://x/main.js?v=1"), "http://localhost:3000/main.js?v=1")

    def test_target_path_is_prefixed(self):
        resolve = make_proxy_resolver("http://localhost:3000/api/")
        self.assertEqual(resolve("https://x/todos?id=1"), "http://localhost:3000/api/todos?id=1")

    def test_request_port_is_dropped_for_portless_target(self):
        resolve = make_proxy_resolver("https://y")
        self.assertEqual(resolve("http://x:8080/a"), "https://y/a")

    def test_scheme_defaults_to_http(self):
        resolve = make_proxy_resolver("localhost:5173")
        self.assertEqual(resolve("https://x/app.css"), "http://localhost:5173/app.css")

    def test_target_query_wins_and_appends(self):
        resolve = make_proxy_resolver("http://y/?q=9&extra=3")
        self.assertEqual(resolve("http://x/a?q=1&keep=2"), "http://y/a?q=9&keep=2&extra=3")

    def test_credentials_survive(self):
        resolve = make_proxy_resolver("http://y:81")
        self.assertEqual(resolve("http://user:pw@x/a"), "http://user:pw@y:81/a")

    def test_function_target(self):
        calls = []

        def target(url, request):
            calls.append((url, request))
            return url.replace("https://x", "http://local")

        resolve = make_proxy_resolver(target)
        self.assertEqual(resolve("https://x/a", "req"), "http://local/a")
        self.assertEqual(calls, [("https://x/a", "req")])

    def test_no_target_is_identity(self):
        self.assertEqual(make_proxy_resolver(None)("https://x/a?b=c"), "https://x/a?b=c")

    def test_hostless_target_raises(self):
        with self.assertRaises(ConfigurationError):
            make_proxy_resolver("http://")

    def test_non_string_target_raises(self):
        with self.assertRaises(ConfigurationError):
            make_proxy_resolver(3000)


class TestResolveProxyUrl(unittest.TestCase):
    def test_rewrites_run_after_target(self):
        order = []

        def url_rewrite(url, request):
            order.append(("url", url))
            return url + "&from=rewrite"

        def path_rewrite(path, request):
            order.append(("path", path))
            return path.replace("/v1/", "/v2/")

        result = resolve_proxy_url(
            "https://x/v1/todos?id=1",
            make_proxy_resolver("http://localhost:3000"),
            url_rewrite=url_rewrite,
            path_rewrite=path_rewrite,
        )
        self.assertEqual(result, "http://localhost:3000/v2/todos?id=1&from=rewrite")
        self.assertEqual(order, [
            ("url", "http://localhost:3000/v1/todos?id=1"),
            ("path", "/v1/todos"),
        ])

    def test_without_resolver_uses_request_url(self):
        self.assertEqual(resolve_proxy_url("https://x/a"), "https://x/a")

    def test_rewrites_must_be_callable(self):
        with self.assertRaises(ConfigurationError):
            resolve_proxy_url("https://x/a", url_rewrite="http://y")
        with self.assertRaises(ConfigurationError):
            resolve_proxy_url("https://x/a", path_rewrite="/b")

    def test_path_rewrite_must_return_string(self):
        with self.assertRaises(ConfigurationError):
            rewrite_path("https://x/a", lambda path, request: None)


if __name__ == '__main__':
    unittest.main()
