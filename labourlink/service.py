"""Service orchestrator: one API client, one session, its notification feed"""
from datetime import datetime
from pathlib import Path
from typing import Optional

import httpx

from .api_client import MarketplaceClient
from .config import AppConfig, get_config, get_project_root
from .errors import NotAuthorizedError
from .job_detail import JobDetail
from .logger import get_logger
from .models import Job, JobDraft, Role, User, UserJobs, UserUpdate
from .notifications import NotificationFeed
from .session import KnownUsers, Session, sign_in, sign_out, sign_up, signed_in


class MarketplaceService:
    """Owns the session lifecycle and everything scoped to it"""

    def __init__(self, config: Optional[AppConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or get_config()
        self.client = MarketplaceClient(self.config, transport=transport)
        self.known_users = KnownUsers(get_project_root() / self.config.known_users.file)
        self.session: Optional[Session] = None
        self.feed: Optional[NotificationFeed] = None
        self.signed_in_at: Optional[datetime] = None
        self.logger = get_logger()

    async def __aenter__(self):
        await self.client.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        await self.sign_out()
        await self.client.close()

    def _require_session(self) -> Session:
        if not signed_in(self.session):
            raise NotAuthorizedError("You must be signed in to do that")
        return self.session

    async def _begin(self, session: Session, poll: bool) -> Session:
        await self.sign_out()
        self.session = session
        self.signed_in_at = datetime.now()
        self.known_users.remember(session.user)

        self.feed = NotificationFeed(self.client, session, self.config)
        if poll:
            await self.feed.start()
        return session

    async def sign_in(self, name: str, email: str, poll: bool = True) -> Session:
        return await self._begin(await sign_in(self.client, name, email), poll)

    async def sign_up(self, name: str, email: str, role: Role, poll: bool = True) -> Session:
        return await self._begin(await sign_up(self.client, name, email, role), poll)

    async def sign_out(self):
        if self.feed is not None:
            self.feed.stop()
            self.feed = None
        if self.session is not None:
            sign_out(self.session)
            self.session = None
            self.signed_in_at = None

    def profile(self) -> User:
        return self._require_session().user

    async def update_profile(self, update: UserUpdate) -> User:
        session = self._require_session()
        user = await self.client.update_user(session.actor_id, update)
        session.refresh(user)
        self.known_users.remember(user)
        return user

    async def post_job(self, draft: JobDraft, images: tuple[Path, ...] = (), video: Optional[Path] = None) -> Job:
        """Upload any media, then create the job for the signed-in user"""
        session = self._require_session()

        if images or video:
            uploaded = await self.client.upload_media(images, video)
            draft = draft.model_copy(update={
                "images": list(draft.images) + uploaded.images,
                "video": uploaded.video or draft.video,
            })
        return await self.client.create_job(draft, session.actor_id)

    async def my_jobs(self) -> UserJobs:
        """Jobs the signed-in user created and jobs they are working on"""
        session = self._require_session()
        return await self.client.get_user_jobs(session.actor_id)

    async def job_detail(self, job_id: str) -> JobDetail:
        detail = JobDetail(self.client, self.session, job_id)
        await detail.load()
        return detail

    def get_status(self) -> dict:
        """Get current service status"""
        return {
            "api_base_url": self.client.base_url,
            "signed_in": signed_in(self.session),
            "user_id": self.session.actor_id if self.session else None,
            "role": self.session.role.value if self.session else None,
            "signed_in_at": self.signed_in_at.isoformat() if self.signed_in_at else None,
            "polling": self.feed.is_polling if self.feed else False,
            "unread_notifications": self.feed.unread_count if self.feed else 0,
        }
