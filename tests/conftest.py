"""Pytest configuration and fixtures."""

import json as jsonlib
from typing import Callable, Optional, Union

import httpx
import pytest

from labourlink.api_client import MarketplaceClient
from labourlink.config import AppConfig
from labourlink.models import Job, Offer, User
from labourlink.session import Session

BASE_URL = "http://testserver/api"

CREATOR_ID = "u-client"
WORKER_ID = "u-worker"
OTHER_WORKER_ID = "u-worker-2"


def job_payload(**overrides) -> dict:
    payload = {
        "id": "J1",
        "title": "Fix leaking tap",
        "description": "Kitchen tap drips constantly",
        "location": "12 High St, Leeds",
        "budget": 80,
        "images": [],
        "createdAt": "2026-10-01T09:00:00Z",
        "status": "open",
        "createdBy": CREATOR_ID,
    }
    payload.update(overrides)
    return payload


def offer_payload(**overrides) -> dict:
    payload = {
        "id": "O1",
        "jobId": "J1",
        "createdBy": WORKER_ID,
        "proposedPrice": 75,
        "message": "Can do it tomorrow",
        "createdAt": "2026-10-01T10:00:00Z",
        "status": "pending",
    }
    payload.update(overrides)
    return payload


def user_payload(**overrides) -> dict:
    payload = {
        "id": CREATOR_ID,
        "name": "Ann Client",
        "email": "ann@example.com",
        "role": "client",
    }
    payload.update(overrides)
    return payload


def make_job(**overrides) -> Job:
    return Job.model_validate(job_payload(**overrides))


def make_offer(**overrides) -> Offer:
    return Offer.model_validate(offer_payload(**overrides))


def make_session(user_id: str = CREATOR_ID, role: str = "client") -> Session:
    return Session(User.model_validate(user_payload(id=user_id, role=role)))


Reply = Union[dict, Callable[[httpx.Request], httpx.Response]]


class FakeBackend:
    """In-memory stand-in for the REST backend, served through httpx.MockTransport"""

    def __init__(self):
        self.routes: dict[tuple[str, str], list[Reply]] = {}
        self.requests: list[httpx.Request] = []
        # Routes whose last reply has been served; queuing a new reply replaces it
        self._repeating: set[tuple[str, str]] = set()

    def on(
        self,
        method: str,
        path: str,
        status: int = 200,
        json=None,
        text: Optional[str] = None,
        headers: Optional[dict] = None,
    ):
        """Queue a reply; the last queued reply for a route is repeated until another is queued"""
        reply = {"status": status, "json": json, "text": text, "headers": headers or {}}
        return self._queue(method, path, reply)

    def on_call(self, method: str, path: str, func: Callable[[httpx.Request], httpx.Response]):
        return self._queue(method, path, func)

    def _queue(self, method: str, path: str, reply: Reply):
        key = (method, path)
        if key in self._repeating:
            self._repeating.discard(key)
            self.routes[key] = []
        self.routes.setdefault(key, []).append(reply)
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")
        key = (request.method, path)
        replies = self.routes.get(key)
        if not replies:
            return httpx.Response(404, text=f"No route for {request.method} {path}")

        if len(replies) > 1:
            reply = replies.pop(0)
        else:
            reply = replies[0]
            self._repeating.add(key)
        if callable(reply):
            return reply(request)
        if reply["json"] is not None:
            return httpx.Response(reply["status"], json=reply["json"], headers=reply["headers"])
        return httpx.Response(reply["status"], text=reply["text"] or "", headers=reply["headers"])

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method)
            and (path is None or r.url.path.removeprefix("/api") == path)
        ]

    @staticmethod
    def body(request: httpx.Request) -> dict:
        return jsonlib.loads(request.content)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def config(tmp_path):
    """Configuration pointing at the fake backend."""
    cfg = AppConfig()
    cfg.api.base_url = BASE_URL + "/"
    cfg.known_users.file = str(tmp_path / "known_users.json")
    cfg.logging.file = str(tmp_path / "labourlink.log")
    return cfg


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def client(config, backend):
    return MarketplaceClient(config, transport=backend.transport)


@pytest.fixture
def creator():
    return make_session(CREATOR_ID, "client")


@pytest.fixture
def worker():
    return make_session(WORKER_ID, "labour")


@pytest.fixture
def other_worker():
    return make_session(OTHER_WORKER_ID, "labour")
