"""Tests for the service orchestrator."""

import pytest

from labourlink.errors import NotAuthorizedError
from labourlink.models import JobDraft, Role, UserUpdate
from labourlink.service import MarketplaceService

from conftest import CREATOR_ID, WORKER_ID, job_payload, offer_payload, user_payload


@pytest.fixture
def service(config, backend):
    config.notifications.enabled = False
    return MarketplaceService(config, transport=backend.transport)


def draft() -> JobDraft:
    return JobDraft(title="Fix leaking tap", description="Drips", location="Leeds", budget=80)


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_sign_in_without_polling(self, service, backend):
        backend.on("POST", "/users/sign-in", json=user_payload())

        await service.sign_in("Ann Client", "ann@example.com", poll=False)

        status = service.get_status()
        assert status["signed_in"] is True
        assert status["user_id"] == CREATOR_ID
        assert status["role"] == "client"
        assert status["polling"] is False
        assert status["api_base_url"] == "http://testserver/api"
        assert backend.calls("GET") == []
        assert service.known_users.find("Ann Client", "ann@example.com").id == CREATOR_ID

    @pytest.mark.asyncio
    async def test_sign_in_loads_notifications(self, service, backend):
        backend.on("POST", "/users/sign-in", json=user_payload())
        backend.on("GET", f"/users/{CREATOR_ID}/notifications", json={
            "notifications": [{"id": "n1", "message": "hi", "createdAt": "2026-10-02T08:00:00Z"}],
        })

        await service.sign_in("Ann Client", "ann@example.com")

        assert service.get_status()["unread_notifications"] == 1

    @pytest.mark.asyncio
    async def test_sign_out(self, service, backend):
        backend.on("POST", "/users/sign-in", json=user_payload())
        session = await service.sign_in("Ann Client", "ann@example.com", poll=False)

        await service.sign_out()

        assert not session.active
        assert service.session is None
        assert service.get_status()["signed_in"] is False

    @pytest.mark.asyncio
    async def test_new_sign_in_ends_previous_session(self, service, backend):
        backend.on("POST", "/users/sign-in", json=user_payload())
        backend.on("POST", "/users", status=201, json=user_payload(id=WORKER_ID, role="labour"))
        first = await service.sign_in("Ann Client", "ann@example.com", poll=False)

        second = await service.sign_up("Bo", "bo@example.com", Role.LABOUR, poll=False)

        assert not first.active
        assert service.session is second

    @pytest.mark.asyncio
    async def test_update_profile(self, service, backend):
        backend.on("POST", "/users/sign-in", json=user_payload())
        backend.on("PUT", f"/users/{CREATOR_ID}", json=user_payload(companyName="Ann Lettings"))
        await service.sign_in("Ann Client", "ann@example.com", poll=False)

        user = await service.update_profile(UserUpdate(company_name="Ann Lettings"))

        assert user.company_name == "Ann Lettings"
        assert service.session.user.company_name == "Ann Lettings"


class TestPostJob:

    @pytest.mark.asyncio
    async def test_requires_sign_in(self, service, backend):
        with pytest.raises(NotAuthorizedError):
            await service.post_job(draft())
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_uploads_media_first(self, service, backend, tmp_path):
        image = tmp_path / "tap.jpg"
        image.write_bytes(b"img")
        backend.on("POST", "/users/sign-in", json=user_payload())
        backend.on("POST", "/upload", json={"images": ["https://cdn/tap.jpg"], "video": None})
        backend.on("POST", "/jobs", status=201, json=job_payload(images=["https://cdn/tap.jpg"]))
        await service.sign_in("Ann Client", "ann@example.com", poll=False)

        job = await service.post_job(draft(), images=(image,))

        assert job.images == ["https://cdn/tap.jpg"]
        body = backend.body(backend.calls("POST", "/jobs")[0])
        assert body["images"] == ["https://cdn/tap.jpg"]
        assert body["createdBy"] == CREATOR_ID
        assert "video" not in body


class TestJobDetail:

    @pytest.mark.asyncio
    async def test_signed_out_viewer_gets_no_actions(self, service, backend):
        backend.on("GET", "/jobs/J1", json=job_payload())
        backend.on("GET", "/jobs/J1/offers", json=[offer_payload()])

        detail = await service.job_detail("J1")

        assert detail.job.id == "J1"
        actions = detail.actions()
        assert actions.job == set()
        assert actions.accept_offer_ids == set()
