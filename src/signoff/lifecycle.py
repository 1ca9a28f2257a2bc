"""Lifecycle Management — bootstrap and graceful shutdown for Signoff."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from signoff.broker import DecisionBroker, SessionStore, TokenSigner
from signoff.config.settings import Settings, load_settings
from signoff.core.exceptions import ConfigurationError
from signoff.core.structured_logger import configure_logging, get_logger
from signoff.interfaces.base import NotificationGateway

logger = get_logger("Lifecycle")


@dataclass
class RuntimeContext:
    """DI container holding all initialized Signoff components."""

    settings: Settings
    signer: TokenSigner
    store: SessionStore
    gateway: NotificationGateway
    broker: DecisionBroker


class Runtime:
    """Runtime orchestrator — builds the broker graph, starts and stops it."""

    def __init__(
        self,
        settings: Settings | None = None,
        config_path: str | None = None,
        gateway: NotificationGateway | None = None,
        shutdown_timeout: float = 10.0,
    ):
        self.settings = settings
        self.config_path = config_path
        self._gateway = gateway
        self.shutdown_timeout = shutdown_timeout
        self.context: RuntimeContext | None = None
        self._started = False

    def bootstrap(self) -> RuntimeContext:
        """Build every component and return the RuntimeContext."""
        if self.context is not None:
            logger.warning("Runtime already initialized")
            return self.context

        settings = self.settings or load_settings(self.config_path)
        errors = settings.validate_required_config()
        if errors:
            raise ConfigurationError(
                "Configuration validation failed", details={"errors": errors}
            )
        configure_logging(settings.logging)
        logger.info("Bootstrapping Signoff runtime", version=settings.version)

        security = settings.security
        signer = TokenSigner(security.secret_key.get_secret_value(), security.token_bytes)
        store = SessionStore(reaper_interval=security.reaper_interval_seconds)

        gateway = self._gateway
        if gateway is None:
            from signoff.interfaces.telegram import TelegramGateway

            gateway = TelegramGateway(
                bot_token=settings.telegram.bot_token,
                admin_chat_id=settings.telegram.admin_chat_id,
            )

        broker = DecisionBroker(
            signer=signer,
            store=store,
            gateway=gateway,
            admin_id=settings.telegram.admin_chat_id,
            ttl_seconds=security.token_ttl_seconds,
        )

        self.settings = settings
        self.context = RuntimeContext(
            settings=settings, signer=signer, store=store, gateway=gateway, broker=broker
        )
        logger.info(
            "Runtime bootstrap completed",
            token_ttl_seconds=security.token_ttl_seconds,
            reaper_interval_seconds=security.reaper_interval_seconds,
        )
        return self.context

    async def start(self) -> RuntimeContext:
        context = self.context or self.bootstrap()
        if self._started:
            return context
        await context.gateway.start()
        await context.store.start()
        self._started = True
        return context

    async def shutdown(self) -> None:
        """Stop the reaper and release the gateway, each within the timeout."""
        if not self._started or self.context is None:
            logger.warning("Runtime not started, nothing to shutdown")
            return

        for name, stop in [
            ("reaper", self.context.store.stop),
            ("gateway", self.context.gateway.close),
        ]:
            try:
                await asyncio.wait_for(stop(), timeout=self.shutdown_timeout)
            except Exception as e:
                logger.error("Error stopping %s: %s", name, e, exc_info=True)

        self._started = False
        logger.info("Shutdown completed")

    @property
    def started(self) -> bool:
        return self._started
