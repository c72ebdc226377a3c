"""Notification feed for the active session, refreshed on an interval"""
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .api_client import MarketplaceClient
from .config import AppConfig, get_config
from .errors import MarketplaceError, NotAuthorizedError
from .logger import get_logger
from .models import Notification
from .session import Session, signed_in

logger = get_logger()


class NotificationFeed:
    """Holds the session's notifications and unread count.

    Each applied refresh replaces the whole list. Overlapping polls are not
    coalesced; a response is dropped when a newer one has already been applied.
    """

    POLL_JOB_ID = "notification_poll"

    def __init__(self, client: MarketplaceClient, session: Session, config: Optional[AppConfig] = None):
        self.client = client
        self.session = session
        self.config = config or get_config()
        self.notifications: list[Notification] = []
        self.unread_count = 0
        self.loading = False
        self.error: Optional[str] = None
        self.scheduler: Optional[AsyncIOScheduler] = None

        self._issued = 0
        self._applied = 0

    @property
    def is_polling(self) -> bool:
        return self.scheduler is not None and self.scheduler.running

    def _clear(self):
        self.notifications = []
        self.unread_count = 0
        self.error = None

    async def refresh(self, silent: bool = False):
        """Fetch and replace the feed.

        A failed silent refresh keeps the current feed; a failed foreground
        refresh empties it and records the message in `error`.
        """
        if not signed_in(self.session):
            self._clear()
            return

        self._issued += 1
        ticket = self._issued

        if not silent:
            self.loading = True
        try:
            page = await self.client.get_notifications(self.session.actor_id)
        except MarketplaceError as e:
            if silent:
                logger.debug(f"Notification poll failed: {e}")
            else:
                logger.warning(f"Could not load notifications: {e}")
                self._clear()
                self.error = str(e)
            return
        finally:
            if not silent:
                self.loading = False

        if ticket < self._applied or not signed_in(self.session):
            logger.debug(f"Dropping stale notification response #{ticket}")
            return

        self._applied = ticket
        self.error = None
        self.notifications = page.notifications
        self.unread_count = page.unread_count

    async def mark_as_read(self, notification_id: str):
        """Mark one notification read; state is only changed once the server agrees"""
        if not signed_in(self.session):
            raise NotAuthorizedError("You must be signed in to do that")

        await self.client.mark_notification_read(notification_id, self.session.actor_id)

        was_unread = False
        updated = []
        for n in self.notifications:
            if n.id == notification_id:
                was_unread = not n.read
                n = n.model_copy(update={"read": True})
            updated.append(n)
        self.notifications = updated
        if was_unread:
            self.unread_count = max(0, self.unread_count - 1)

    async def _poll(self):
        await self.refresh(silent=True)

    async def start(self):
        """Load once, then poll in the background while the session is active"""
        await self.refresh()

        if not self.config.notifications.enabled or self.is_polling:
            return

        interval = self.config.notifications.poll_interval_seconds
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self._poll,
            IntervalTrigger(seconds=interval),
            id=self.POLL_JOB_ID,
            name="Notification poll",
            replace_existing=True,
            max_instances=3,
            coalesce=False,
        )
        self.scheduler.start()
        logger.info(f"Polling notifications every {interval}s for {self.session.actor_id}")

    def stop(self):
        if self.scheduler is not None:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.scheduler = None
            logger.info("Stopped notification polling")
        self._clear()
