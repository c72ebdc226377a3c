"""Local mirror of one job and its offers for the active session"""
from typing import Awaitable, Optional, TypeVar

from pydantic import BaseModel, Field

from .api_client import MarketplaceClient
from .errors import MarketplaceError
from .lifecycle import JobAction, JobLifecycle, allowed_actions
from .logger import get_logger
from .models import Job, JobUpdate, Offer, OfferDraft
from .offers import OfferDesk, actionable_offer_ids
from .session import Session

logger = get_logger()

T = TypeVar("T")


class JobActions(BaseModel):
    """What the session may do on the job right now"""
    job: set[JobAction] = Field(default_factory=set)
    accept_offer_ids: set[str] = Field(default_factory=set)
    reject_offer_ids: set[str] = Field(default_factory=set)


class JobDetail:
    """Holds the last server state of a job and its offers.

    Every action either replaces the held state with what the server
    returned, or leaves it untouched and records the error. Results that
    arrive after detach() are dropped.
    """

    def __init__(self, client: MarketplaceClient, session: Optional[Session], job_id: str):
        self.client = client
        self.session = session
        self.job_id = job_id
        self.lifecycle = JobLifecycle(client)
        self.desk = OfferDesk(client)

        self.job: Optional[Job] = None
        self.offers: list[Offer] = []
        self.error: Optional[str] = None
        self.deleted = False
        self.stale = False
        self._detached = False

    @property
    def detached(self) -> bool:
        return self._detached

    def detach(self):
        """Stop applying results; the caller no longer shows this job"""
        self._detached = True

    async def _attempt(self, action: str, pending: Awaitable[T]) -> Optional[T]:
        """Await an operation, recording its error; None if detached meanwhile"""
        try:
            result = await pending
        except MarketplaceError as e:
            logger.warning(f"{action} on job {self.job_id} failed: {e}")
            if not self._detached:
                self.error = str(e)
            raise

        if self._detached:
            logger.debug(f"Dropping late {action} result for job {self.job_id}")
            return None
        self.error = None
        return result

    def _require_job(self) -> Job:
        if self.job is None:
            raise MarketplaceError(f"Job {self.job_id} is not loaded")
        return self.job

    def _find_offer(self, offer_id: str) -> Offer:
        for offer in self.offers:
            if offer.id == offer_id:
                return offer
        raise MarketplaceError(f"Offer {offer_id} is not listed on job {self.job_id}")

    async def _fetch(self) -> tuple[Job, list[Offer]]:
        job = await self.client.get_job(self.job_id)
        offers = await self.client.list_offers(self.job_id)
        return job, offers

    async def load(self):
        result = await self._attempt("load", self._fetch())
        if result is not None:
            self.job, self.offers = result
            self.stale = False

    def actions(self) -> JobActions:
        if self.job is None or self.deleted or self.stale:
            return JobActions()
        offer_ids = actionable_offer_ids(self.session, self.job, self.offers)
        return JobActions(
            job=allowed_actions(self.session, self.job),
            accept_offer_ids=offer_ids,
            reject_offer_ids=set(offer_ids),
        )

    # --- Offers ---

    async def submit_offer(self, draft: OfferDraft) -> Optional[Offer]:
        job = self._require_job()
        offer = await self._attempt("submit offer", self.desk.submit_offer(self.session, job, draft))
        if offer is not None:
            self.offers = self.offers + [offer]
        return offer

    def _apply_offer(self, updated: Offer):
        self.offers = [updated if o.id == updated.id else o for o in self.offers]

    async def _settle_offer(self, action: str, sent: Awaitable[Offer]):
        """Apply the server's offer, then re-read job and offers.

        Until the re-read succeeds the held job is stale and no actions are
        offered on it.
        """
        updated = await self._attempt(action, sent)
        if updated is None:
            return
        self._apply_offer(updated)
        self.stale = True

        outcome = await self._attempt(f"refresh after {action}", self.desk.converge(updated, self.job_id))
        if outcome is not None:
            self.job, self.offers = outcome.job, outcome.offers
            self.stale = False

    async def accept_offer(self, offer_id: str):
        job = self._require_job()
        offer = self._find_offer(offer_id)
        await self._settle_offer("accept offer", self.desk.send_accept(self.session, job, offer))

    async def reject_offer(self, offer_id: str):
        job = self._require_job()
        offer = self._find_offer(offer_id)
        await self._settle_offer("reject offer", self.desk.send_reject(self.session, job, offer))

    # --- Lifecycle ---

    async def _transition(self, action: str, pending: Awaitable[Job]):
        updated = await self._attempt(action, pending)
        if updated is not None:
            self.job = updated

    async def request_close(self):
        job = self._require_job()
        await self._transition("request close", self.lifecycle.request_close(self.session, job))

    async def approve_close(self):
        job = self._require_job()
        await self._transition("approve close", self.lifecycle.approve_close(self.session, job))

    async def close(self):
        job = self._require_job()
        await self._transition("close", self.lifecycle.close(self.session, job))

    async def reject_close(self):
        job = self._require_job()
        await self._transition("reject close", self.lifecycle.reject_close(self.session, job))

    async def update(self, update: JobUpdate):
        job = self._require_job()
        await self._transition("update", self.lifecycle.update_job(self.session, job, update))

    async def delete(self):
        job = self._require_job()
        await self._attempt("delete", self.lifecycle.delete_job(self.session, job))
        if not self._detached:
            self.deleted = True
