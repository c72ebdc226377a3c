"""Offer subsystem: making, accepting and rejecting offers on a job"""
from typing import Optional

from pydantic import BaseModel

from . import lifecycle, policy
from .api_client import MarketplaceClient
from .errors import InvalidTransitionError, NotAuthorizedError
from .lifecycle import JobAction
from .logger import get_logger
from .models import Job, JobStatus, Offer, OfferDraft
from .session import Session

logger = get_logger()


class OfferOutcome(BaseModel):
    """Server state after an accept or reject: the offer, its job and all sibling offers"""
    offer: Offer
    job: Job
    offers: list[Offer]


def pending_offers(offers: list[Offer]) -> list[Offer]:
    return [o for o in offers if o.is_pending]


def actionable_offer_ids(session: Optional[Session], job: Job, offers: list[Offer]) -> set[str]:
    """Offers the session may accept or reject right now"""
    if not policy.can_manage_offers(session, job) or job.status != JobStatus.OPEN:
        return set()
    return {o.id for o in pending_offers(offers) if o.job_id == job.id}


class OfferDesk:
    """Validates offer actions locally, then hands them to the backend"""

    def __init__(self, client: MarketplaceClient):
        self.client = client

    @staticmethod
    def check_create(session: Optional[Session], job: Job, draft: OfferDraft):
        lifecycle.check(session, job, JobAction.MAKE_OFFER)
        if draft.proposed_price < 0:
            raise InvalidTransitionError("Proposed price cannot be negative")
        if not draft.message.strip():
            raise InvalidTransitionError("An offer needs a message")

    @staticmethod
    def _check_offer_belongs(job: Job, offer: Offer):
        if offer.job_id != job.id:
            raise InvalidTransitionError(f"Offer {offer.id} belongs to job {offer.job_id}, not {job.id}")
        if not offer.is_pending:
            raise InvalidTransitionError(f"Offer {offer.id} is already {offer.status.value}")

    @classmethod
    def check_accept(cls, session: Optional[Session], job: Job, offer: Offer):
        lifecycle.check(session, job, JobAction.ACCEPT_OFFER)
        cls._check_offer_belongs(job, offer)

    @classmethod
    def check_reject(cls, session: Optional[Session], job: Job, offer: Offer):
        if not policy.can_manage_offers(session, job):
            raise NotAuthorizedError("Only the job's creator may reject offers")
        if lifecycle.is_terminal(job.status):
            raise InvalidTransitionError(f"Job {job.id} is closed")
        cls._check_offer_belongs(job, offer)

    async def submit_offer(self, session: Session, job: Job, draft: OfferDraft) -> Offer:
        self.check_create(session, job, draft)
        return await self.client.create_offer(job.id, session.actor_id, draft)

    async def send_accept(self, session: Session, job: Job, offer: Offer) -> Offer:
        """Accept on the server and return the updated offer, without re-reading the job"""
        self.check_accept(session, job, offer)
        return await self.client.accept_offer(offer.id, session.actor_id)

    async def send_reject(self, session: Session, job: Job, offer: Offer) -> Offer:
        self.check_reject(session, job, offer)
        return await self.client.reject_offer(offer.id, session.actor_id)

    async def accept_offer(self, session: Session, job: Job, offer: Offer) -> OfferOutcome:
        accepted = await self.send_accept(session, job, offer)
        return await self.converge(accepted, job.id)

    async def reject_offer(self, session: Session, job: Job, offer: Offer) -> OfferOutcome:
        rejected = await self.send_reject(session, job, offer)
        return await self.converge(rejected, job.id)

    async def converge(self, offer: Offer, job_id: str) -> OfferOutcome:
        """Re-read the job and its offers so callers hold server truth"""
        job = await self.client.get_job(job_id)
        offers = await self.client.list_offers(job_id)
        logger.info(f"Offer {offer.id} is {offer.status.value}; job {job_id} is {job.status.value}")
        return OfferOutcome(offer=offer, job=job, offers=offers)
