"""Object graph for a running bot: one Telegram client, one registry, one
retraction scheduler, one dispatcher."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable

from starsbot.domain.access import AccessPolicy
from starsbot.domain.catalog import ContentCatalog, load_catalog
from starsbot.infra.registry import PostgresRegistry, Registry
from starsbot.infra.time import utc_now
from starsbot.services.broadcast import BroadcastEngine
from starsbot.services.cleanup import RetractionScheduler, TaskScheduler
from starsbot.services.delivery import DeliveryEngine
from starsbot.services.dispatcher import CommandDispatcher
from starsbot.settings import BotSettings
from starsbot.telegram.client import TelegramClient


@dataclass
class BotRuntime:
    settings: BotSettings
    telegram: Any
    registry: Registry
    catalog: ContentCatalog
    scheduler: TaskScheduler
    retractions: RetractionScheduler
    dispatcher: CommandDispatcher

    def start(self) -> None:
        self.scheduler.start()

    def shutdown(self) -> None:
        self.scheduler.shutdown()


def build_runtime(
    settings: BotSettings,
    *,
    telegram: Any | None = None,
    registry: Registry | None = None,
    catalog: ContentCatalog | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> BotRuntime:
    """Wire every component from settings.

    Collaborators can be injected (tests pass fakes for Telegram and the
    registry).
    """
    telegram = telegram or TelegramClient.from_settings(settings)
    registry = registry or PostgresRegistry(
        dsn=settings.database_url, tz_name=settings.stats_timezone
    )
    catalog = catalog or load_catalog(settings.catalog_dir)

    scheduler = TaskScheduler(clock=clock, name="retractions")
    retractions = RetractionScheduler(
        telegram,
        scheduler,
        default_delay=timedelta(minutes=settings.retraction_delay_minutes),
    )
    access = AccessPolicy(
        telegram,
        admin_user_id=settings.admin_user_id,
        channel_id=settings.channel_id,
    )
    dispatcher = CommandDispatcher(
        telegram=telegram,
        registry=registry,
        access=access,
        catalog=catalog,
        delivery=DeliveryEngine(telegram, catalog.prices, clock=clock),
        broadcast=BroadcastEngine(telegram, registry, catalog),
        retractions=retractions,
        channel_link=settings.channel_link,
        contact_link=settings.contact_link,
    )
    return BotRuntime(
        settings=settings,
        telegram=telegram,
        registry=registry,
        catalog=catalog,
        scheduler=scheduler,
        retractions=retractions,
        dispatcher=dispatcher,
    )
