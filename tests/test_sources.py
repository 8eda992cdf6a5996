import logging
import os
import tempfile
import unittest
from unittest.mock import MagicMock

from mitmproxy.test.tflow import tflow

from sahne.core.config import Settings
from sahne.core.errors import ConfigurationError
from sahne.core.main import InterceptorAddon
from sahne.core.rules.models import NormalizedResponse
from sahne.core.sources import MitmproxyRequestSource, RequestSource, response_headers
from tests.fakes import FakeHttpClient, FakeStore


class TestMitmproxyRequestSource(unittest.TestCase):
    def setUp(self):
        self.flow = tflow()
        self.source = MitmproxyRequestSource(self.flow)

    def test_reads_request(self):
        self.assertIsInstance(self.source, RequestSource)
        self.assertEqual(self.source.url(), self.flow.request.pretty_url)
        self.assertEqual(self.source.method(), "GET")
        self.assertEqual(self.source.headers()["header"], "qvalue")
        self.assertEqual(self.source.body(), b"content")

    def test_respond_installs_response(self):
        self.source.respond(NormalizedResponse(201, {"x-a": "1"}, '{"a": 1}', "application/json"))

        self.assertEqual(self.flow.response.status_code, 201)
        self.assertEqual(self.flow.response.content, b'{"a": 1}')
        self.assertEqual(self.flow.response.headers["content-type"], "application/json")
        self.assertEqual(self.flow.response.headers["x-a"], "1")
        self.assertTrue(self.source.is_already_resolved())

    def test_abort_kills_flow(self):
        self.flow.kill = MagicMock()
        self.source.abort()
        self.flow.kill.assert_called_once()
        self.assertTrue(self.source.is_already_resolved())

    def test_continue_leaves_flow_untouched(self):
        self.assertFalse(self.source.is_already_resolved())
        self.source.continue_()
        self.assertIsNone(self.flow.response)
        self.assertTrue(self.source.is_already_resolved())

    def test_existing_response_counts_as_resolved(self):
        source = MitmproxyRequestSource(tflow(resp=True))
        self.assertTrue(source.is_already_resolved())

    def test_explicit_content_type_header_wins(self):
        response = NormalizedResponse(200, {"Content-Type": "text/css"}, b"", "text/plain")
        self.assertEqual(response_headers(response), {"Content-Type": "text/css"})


class TestInterceptorAddon(unittest.IsolatedAsyncioTestCase):
    def make(self, rules=None):
        self.client = FakeHttpClient(body=b"from dev server")
        self.store = FakeStore({"mock.json": b"[]"})
        return InterceptorAddon(rules, settings=Settings(), http_client=self.client, store=self.store)

    async def test_log_level_comes_from_settings(self):
        base = logging.getLogger("sahne")
        self.addCleanup(base.setLevel, base.level)

        InterceptorAddon(settings=Settings(log_level="ERROR"), http_client=FakeHttpClient(), store=FakeStore())
        self.assertEqual(base.level, logging.ERROR)

    async def test_request_hook_answers_flow(self):
        addon = self.make([{"match": "**/path", "file": "mock.json"}])
        flow = tflow()
        await addon.request(flow)

        self.assertEqual(flow.response.status_code, 200)
        self.assertEqual(flow.response.content, b"[]")
        self.assertEqual(flow.response.headers["content-type"], "application/json; charset=utf-8")

    async def test_request_hook_proxies(self):
        addon = self.make([{"proxy": "http://localhost:3000"}])
        flow = tflow()
        await addon.request(flow)

        self.assertEqual(self.client.requests[0][0], "http://localhost:3000/path")
        self.assertEqual(flow.response.content, b"from dev server")

    async def test_unmatched_flow_is_forwarded_untouched(self):
        addon = self.make([{"match": "/api/**", "file": "mock.json"}])
        flow = tflow()
        await addon.request(flow)
        self.assertIsNone(flow.response)

    async def test_without_rules_does_nothing(self):
        addon = self.make()
        flow = tflow()
        await addon.request(flow)
        self.assertIsNone(flow.response)

    async def test_configuration_error_is_logged_not_raised(self):
        addon = self.make([{"match": lambda url, request: None, "file": "mock.json"}])
        flow = tflow()
        await addon.request(flow)
        self.assertIsNone(flow.response)

    async def test_load_rules_file(self):
        fd, path = tempfile.mkstemp(suffix=".yaml")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write("rules:\n  - match: '**/path'\n    abort: '**/path'\n")
        self.addCleanup(os.remove, path)

        addon = self.make()
        addon.load_rules_file(path)
        self.assertEqual(len(addon.interceptor), 1)

        flow = tflow()
        flow.kill = MagicMock()
        await addon.request(flow)
        flow.kill.assert_called_once()

    def test_bad_rules_file_raises(self):
        addon = self.make()
        with self.assertRaises(ConfigurationError):
            addon.load_rules_file("/nonexistent/rules.yaml")

    def test_registers_option(self):
        loader = MagicMock()
        InterceptorAddon(settings=Settings()).load(loader)
        kwargs = loader.add_option.call_args.kwargs
        self.assertEqual(kwargs["name"], "sahne_rules")
        self.assertEqual(kwargs["default"], "")

    async def test_done_closes_client(self):
        addon = self.make([])
        await addon.done()
        self.assertTrue(self.client.closed)


if __name__ == '__main__':
    unittest.main()
