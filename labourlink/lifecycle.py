"""Job lifecycle engine: which actions are legal, for whom, and in which state.

Job lifecycle:
    OPEN -> RESERVED -> CLOSED

- OPEN: visible to workers, offers may be made. The creator accepting an
  offer moves the job to RESERVED on the server.
- RESERVED: a worker is assigned. The worker may request close; the creator
  approves or rejects that request, or closes the job without one.
- CLOSED: terminal, nothing further may happen.

Checks run before any network call and raise on refusal. The resulting
state always comes from the server; this module never computes it.
"""
from enum import Enum
from typing import Optional

from . import policy
from .api_client import MarketplaceClient
from .errors import InvalidTransitionError, MarketplaceError, NotAuthorizedError
from .logger import get_logger
from .models import Job, JobStatus, JobUpdate
from .session import Session, signed_in

logger = get_logger()


class JobAction(str, Enum):
    MAKE_OFFER = "make_offer"
    ACCEPT_OFFER = "accept_offer"
    REQUEST_CLOSE = "request_close"
    APPROVE_CLOSE = "approve_close"
    CLOSE = "close"
    REJECT_CLOSE = "reject_close"
    EDIT = "edit"
    DELETE = "delete"


# Valid status transitions: {from_status: {allowed_to_statuses}}
_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.OPEN: {JobStatus.RESERVED},
    JobStatus.RESERVED: {JobStatus.CLOSED},
    # Terminal
    JobStatus.CLOSED: set(),
}

# Statuses in which each action may be requested
_ACTION_STATES: dict[JobAction, set[JobStatus]] = {
    JobAction.MAKE_OFFER: {JobStatus.OPEN},
    JobAction.ACCEPT_OFFER: {JobStatus.OPEN},
    JobAction.REQUEST_CLOSE: {JobStatus.RESERVED},
    JobAction.APPROVE_CLOSE: {JobStatus.RESERVED},
    JobAction.CLOSE: {JobStatus.RESERVED},
    JobAction.REJECT_CLOSE: {JobStatus.RESERVED},
    JobAction.EDIT: {JobStatus.OPEN, JobStatus.RESERVED},
    JobAction.DELETE: {JobStatus.OPEN, JobStatus.RESERVED},
}

# True: a close request must be pending. False: none may be pending.
_CLOSE_REQUEST_REQUIRED: dict[JobAction, bool] = {
    JobAction.REQUEST_CLOSE: False,
    JobAction.APPROVE_CLOSE: True,
    JobAction.CLOSE: False,
    JobAction.REJECT_CLOSE: True,
}

_CREATOR_ACTIONS = {
    JobAction.ACCEPT_OFFER,
    JobAction.APPROVE_CLOSE,
    JobAction.CLOSE,
    JobAction.REJECT_CLOSE,
    JobAction.EDIT,
    JobAction.DELETE,
}


def is_terminal(status: JobStatus) -> bool:
    return not _TRANSITIONS.get(status)


def valid_transitions(status: JobStatus) -> set[JobStatus]:
    """Statuses reachable from the given one in a single step"""
    return set(_TRANSITIONS.get(status, set()))


def _denial(session: Optional[Session], job: Job, action: JobAction) -> Optional[MarketplaceError]:
    """The reason the action is refused, or None when it is allowed"""
    if not signed_in(session):
        return NotAuthorizedError("You must be signed in to do that")

    if action in _CREATOR_ACTIONS:
        if not policy.is_creator(session, job):
            return NotAuthorizedError(f"Only the job's creator may {action.value.replace('_', ' ')}")
    elif action == JobAction.REQUEST_CLOSE:
        if policy.is_creator(session, job) or not policy.is_accepted_worker(session, job):
            return NotAuthorizedError("Only the assigned worker may request to close this job")
    elif action == JobAction.MAKE_OFFER:
        if not policy.can_create_offer(session):
            return NotAuthorizedError("Only labour accounts may make offers")
        if policy.is_creator(session, job):
            return NotAuthorizedError("You cannot make an offer on your own job")

    allowed = _ACTION_STATES[action]
    if job.status not in allowed:
        allowed_str = ", ".join(sorted(s.value for s in allowed))
        return InvalidTransitionError(
            f"Cannot {action.value.replace('_', ' ')} while job {job.id} is {job.status.value}. "
            f"Allowed from: [{allowed_str}]"
        )

    required = _CLOSE_REQUEST_REQUIRED.get(action)
    if required is True and not job.has_close_request:
        return InvalidTransitionError(f"No close request is pending on job {job.id}")
    if required is False and job.has_close_request:
        return InvalidTransitionError(f"A close request is already pending on job {job.id}")

    return None


def check(session: Optional[Session], job: Job, action: JobAction):
    """Raise NotAuthorizedError or InvalidTransitionError if the action is refused"""
    error = _denial(session, job, action)
    if error is not None:
        logger.debug(f"Refused {action.value} on job {job.id}: {error}")
        raise error


def allowed_actions(session: Optional[Session], job: Job) -> set[JobAction]:
    """Actions the session may take on the job right now"""
    return {action for action in JobAction if _denial(session, job, action) is None}


class JobLifecycle:
    """Guards job transitions and delegates them to the backend"""

    def __init__(self, client: MarketplaceClient):
        self.client = client

    async def request_close(self, session: Session, job: Job) -> Job:
        check(session, job, JobAction.REQUEST_CLOSE)
        return await self.client.request_close(job.id, session.actor_id)

    async def approve_close(self, session: Session, job: Job) -> Job:
        check(session, job, JobAction.APPROVE_CLOSE)
        return await self.client.approve_close(job.id, session.actor_id)

    async def close(self, session: Session, job: Job) -> Job:
        """Close a reserved job without a pending close request"""
        check(session, job, JobAction.CLOSE)
        return await self.client.approve_close(job.id, session.actor_id)

    async def reject_close(self, session: Session, job: Job) -> Job:
        check(session, job, JobAction.REJECT_CLOSE)
        updated = await self.client.reject_close(job.id, session.actor_id)
        if updated.close_requested_by is not None:
            logger.warning(f"Backend kept close request on job {job.id} after rejection; clearing it")
            updated = updated.model_copy(update={"close_requested_by": None})
        return updated

    async def update_job(self, session: Session, job: Job, update: JobUpdate) -> Job:
        check(session, job, JobAction.EDIT)
        return await self.client.update_job(job.id, session.actor_id, update)

    async def delete_job(self, session: Session, job: Job) -> None:
        check(session, job, JobAction.DELETE)
        await self.client.delete_job(job.id, session.actor_id)
