from pathlib import Path
from typing import Any, Optional

from mitmproxy import ctx, http

from .config import Settings
from .errors import ConfigurationError
from .interceptor import Interceptor
from .rules.loader import RuleLoader
from .sources import MitmproxyRequestSource
from .transport import HttpClient
from .utils import SahneLogger, setup_logging


class InterceptorAddon:
    """mitmproxy addon running every request through the rule chain"""

    def __init__(self, rules: Any = None, settings: Optional[Settings] = None, http_client: Any = None, store: Any = None):
        self.settings = settings or Settings.from_env()
        self.logger: SahneLogger = setup_logging(self.settings.log_level)
        self._http_client = http_client
        self._store = store
        self.interceptor: Optional[Interceptor] = None
        if rules is not None:
            self.interceptor = self._build(rules)

    def _build(self, rules: Any) -> Interceptor:
        client = self._http_client or HttpClient(settings=self.settings)
        return Interceptor(rules, http_client=client, store=self._store)

    def load(self, loader: Any) -> None:
        """Standard mitmproxy load hook"""
        default = str(self.settings.rules_file) if self.settings.rules_file else ""
        loader.add_option(
            name="sahne_rules",
            typespec=str,
            default=default,
            help="YAML file with sahne interception rules",
        )

    def configure(self, updated: Any) -> None:
        if "sahne_rules" not in updated:
            return
        path = ctx.options.sahne_rules
        if not path:
            return
        self.load_rules_file(path)

    def load_rules_file(self, path: str) -> None:
        """Replace the active rule chain with the rules from a YAML file"""
        try:
            rules = RuleLoader().load_file(Path(path))
        except ConfigurationError as e:
            self.logger.error(f"sahne: failed to load rules from {path}: {e}")
            raise
        self.interceptor = self._build(rules)
        self.logger.info(f"sahne: {len(rules)} rule(s) active from {path}")

    async def request(self, flow: http.HTTPFlow) -> None:
        if self.interceptor is None or flow.response is not None:
            return
        try:
            await self.interceptor.handle(MitmproxyRequestSource(flow))
        except Exception as e:
            self.logger.error(f"Critical error in InterceptorAddon.request for {flow.request.pretty_url}: {e}")

    async def done(self) -> None:
        if self.interceptor is not None:
            await self.interceptor.aclose()
