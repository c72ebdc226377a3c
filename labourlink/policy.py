"""Authorization predicates over the active session.

These are advisory: they decide which actions the client offers. The backend
enforces the same rules, and a True here never stands in for a successful
response.
"""
from typing import Optional

from .models import Job, Role
from .session import Session, signed_in


def is_creator(session: Optional[Session], job: Job) -> bool:
    return signed_in(session) and job.created_by == session.actor_id


def is_accepted_worker(session: Optional[Session], job: Job) -> bool:
    return signed_in(session) and job.accepted_by is not None and job.accepted_by == session.actor_id


def can_edit_job(session: Optional[Session], job: Job) -> bool:
    return is_creator(session, job)


def can_delete_job(session: Optional[Session], job: Job) -> bool:
    return is_creator(session, job)


def can_manage_offers(session: Optional[Session], job: Job) -> bool:
    return is_creator(session, job)


def can_create_offer(session: Optional[Session]) -> bool:
    return signed_in(session) and session.role == Role.LABOUR
