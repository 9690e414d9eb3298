"""Gmail sync listener: polls sent mail and records investor outreach.

Runs on a configurable interval. Each cycle scans recently sent messages,
matches recipients to investors and appends an email activity (and a fresh
``last_contact``) to every matched investor.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import UTC, datetime

from investor_crm.config import Settings
from investor_crm.gmail import GmailClient, sync_sent_mail
from investor_crm.models import EmailMatch, GmailSyncResult
from investor_crm.pipeline import InvestorPipeline

logger = logging.getLogger(__name__)

MatchCallback = Callable[[EmailMatch], None]
ClientFactory = Callable[[], GmailClient]


class GmailSyncListener:
    """Continuously syncs sent Gmail messages into the pipeline.

    Usage::

        listener = GmailSyncListener(settings, pipeline)
        listener.on_match(my_callback)  # register handlers
        await listener.run()            # blocks, polling forever
    """

    def __init__(
        self,
        settings: Settings | None = None,
        pipeline: InvestorPipeline | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._settings = settings or Settings()  # type: ignore[call-arg]
        self._pipeline = pipeline or InvestorPipeline.from_settings(self._settings)
        self._client_factory = client_factory or (
            lambda: GmailClient(self._settings.gmail_access_token, self._settings)
        )
        self._callbacks: list[MatchCallback] = []
        self._running = False
        self.last_sync: datetime | None = None

    def on_match(self, callback: MatchCallback) -> None:
        """Register a callback invoked for every applied email match."""
        self._callbacks.append(callback)

    async def run(self) -> None:
        """Start the polling loop. Blocks until cancelled or stopped."""
        self._running = True
        logger.info(
            "Gmail sync listener started (interval: %ds)",
            self._settings.gmail_sync_interval_seconds,
        )
        while self._running:
            try:
                await self.sync_once()
            except Exception:
                logger.exception("Gmail sync cycle failed")
            await asyncio.sleep(self._settings.gmail_sync_interval_seconds)

    def stop(self) -> None:
        self._running = False

    async def sync_once(self, *, now: datetime | None = None) -> GmailSyncResult:
        """Run one sync cycle and apply the matches to the pipeline."""
        now = now or datetime.now(UTC)
        async with self._client_factory() as client:
            result = await sync_sent_mail(
                client,
                self._pipeline.investors,
                now=now,
                lookback_days=self._settings.gmail_lookback_days,
                max_messages=self._settings.gmail_max_messages,
            )
        self.last_sync = now
        logger.info(result.message)

        if result.matches:
            self._pipeline.apply_email_matches(result.matches)
            for match in result.matches:
                self._emit(match)
        return result

    def _emit(self, match: EmailMatch) -> None:
        for cb in self._callbacks:
            try:
                cb(match)
            except Exception:
                logger.exception("Error in email match callback")
