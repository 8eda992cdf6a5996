from typing import Any, Tuple

from .errors import AlreadyHandledError, ConfigurationError
from .rules.actions import RequestDispatcher
from .rules.engine import RuleEngine
from .rules.loader import RuleLoader
from .rules.models import Action, ActionType, RequestContext, Rule
from .utils import maybe_await, setup_logging


class Interceptor:
    """Walks the rule chain for each intercepted request and settles it exactly once"""

    def __init__(self, rules: Any = None, http_client: Any = None, store: Any = None):
        self.logger = setup_logging()
        # Configuration errors surface here, before any request is intercepted
        self.rules: Tuple[Rule, ...] = tuple(RuleLoader().load(rules))
        self.engine = RuleEngine(RequestDispatcher(http_client=http_client, store=store))

    async def handle(self, source: Any) -> RequestContext:
        """Evaluate every rule in order until one of them handles the request"""
        context = RequestContext(url=source.url())

        for index, rule in enumerate(self.rules):
            if source.is_already_resolved():
                self.logger.debug(f"request: {context.url} was resolved by its source, stopping rule evaluation")
                return context

            rule_context = context.for_rule(rule, index)
            try:
                action, rule_context = await self.engine.run_rule(rule, source, rule_context)
            except ConfigurationError as e:
                self.logger.error(f"request: {context.url} hit a configuration error in {rule_context.rule}: {e}")
                # Never leave the page waiting on a broken rule
                await self.resolve(source, Action.ignore(reason="configuration error"), rule_context)
                raise
            except Exception as e:
                self.logger.error(
                    f"request: {context.url} failed in {rule_context.rule}, letting it through: {type(e).__name__}: {e}"
                )
                return await self.resolve(source, Action.ignore(reason="rule failed"), rule_context)

            if action.type in (ActionType.NEXT, ActionType.PENDING):
                continue
            if action.type is ActionType.HANDLED:
                return rule_context.evolve(action=action, handled=True)

            return await self.resolve(source, action, rule_context)

        return await self.resolve(source, Action.ignore(reason="no rule handled the request"), context)

    def check_unhandled(self, source: Any, context: RequestContext) -> None:
        if context.handled:
            raise AlreadyHandledError(f"request: {context.url} was already handled with {context.action.type.value}")
        if source.is_already_resolved():
            raise AlreadyHandledError(f"request: {context.url} was already resolved by its source")

    async def resolve(self, source: Any, action: Action, context: RequestContext) -> RequestContext:
        """Issue the terminal action; a second one for the same request is dropped"""
        try:
            self.check_unhandled(source, context)
        except AlreadyHandledError as e:
            self.logger.debug(f"Dropping {action.type.value}: {e}")
            return context

        context = context.evolve(action=action, handled=True)
        try:
            if action.type is ActionType.RESPOND:
                await maybe_await(source.respond(action.response))
                self._log_respond(context)
            elif action.type is ActionType.ABORT:
                await maybe_await(source.abort())
            else:
                await maybe_await(source.continue_())
        except Exception as e:
            # The source may have been closed (page navigated away, flow killed)
            self.logger.error(f"request: {context.url} could NOT be settled with {action.type.value}: {e}")
        return context

    def _log_respond(self, context: RequestContext) -> None:
        if context.file_path:
            self.logger.info(f"request: {context.url} is read from the file: {context.file_path}.")
        elif context.proxy_url:
            self.logger.info(f"request: {context.url} is proxied to {context.proxy_url}.")
        else:
            self.logger.info(f"request: {context.url} is answered by {context.rule or 'a callback'}.")

    def __len__(self) -> int:
        return len(self.rules)

    async def aclose(self) -> None:
        """Release the outbound HTTP client"""
        client = self.engine.dispatcher.http_client
        if hasattr(client, "aclose"):
            await maybe_await(client.aclose())
