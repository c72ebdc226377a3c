"""Tests for the offer subsystem."""

import pytest

from labourlink.errors import ApiResponseError, InvalidTransitionError, NotAuthorizedError
from labourlink.models import JobStatus, OfferDraft, OfferStatus
from labourlink.offers import OfferDesk, actionable_offer_ids, pending_offers

from conftest import CREATOR_ID, WORKER_ID, job_payload, make_job, make_offer, make_session, offer_payload


class TestCheckCreate:
    """Offer submission is refused locally before any request is made."""

    @pytest.mark.parametrize("status", ["reserved", "accepted", "closed", "completed"])
    def test_not_open_job_refused(self, worker, status):
        job = make_job(status=status, acceptedBy="w-9")
        with pytest.raises(InvalidTransitionError):
            OfferDesk.check_create(worker, job, OfferDraft(proposed_price=50, message="hi"))

    def test_client_refused(self, creator):
        stranger_job = make_job(createdBy="other-client")
        with pytest.raises(NotAuthorizedError, match="labour"):
            OfferDesk.check_create(creator, stranger_job, OfferDraft(proposed_price=50, message="hi"))

    def test_negative_price_refused(self, worker):
        with pytest.raises(InvalidTransitionError, match="negative"):
            OfferDesk.check_create(worker, make_job(), OfferDraft(proposed_price=-1, message="hi"))

    def test_blank_message_refused(self, worker):
        with pytest.raises(InvalidTransitionError, match="message"):
            OfferDesk.check_create(worker, make_job(), OfferDraft(proposed_price=10, message="  "))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["reserved", "closed"])
    async def test_submit_on_non_open_job_makes_no_request(self, client, backend, worker, status):
        job = make_job(status=status, acceptedBy="w-9")

        with pytest.raises(InvalidTransitionError):
            await OfferDesk(client).submit_offer(worker, job, OfferDraft(proposed_price=50, message="hi"))

        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_submit_offer(self, client, backend, worker):
        backend.on("POST", "/jobs/J1/offers", status=201, json=offer_payload(proposedPrice=60))

        offer = await OfferDesk(client).submit_offer(worker, make_job(), OfferDraft(proposed_price=60, message="hi"))

        assert offer.proposed_price == 60
        body = backend.body(backend.calls("POST", "/jobs/J1/offers")[0])
        assert body == {"userId": WORKER_ID, "proposedPrice": 60.0, "message": "hi"}


class TestAcceptReject:

    @pytest.mark.asyncio
    async def test_accept_converges_on_server_state(self, client, backend, creator):
        backend.on("POST", "/offers/O1/accept", json=offer_payload(status="accepted"))
        backend.on("GET", "/jobs/J1", json=job_payload(status="reserved", acceptedBy=WORKER_ID))
        backend.on("GET", "/jobs/J1/offers", json=[
            offer_payload(status="accepted"),
            offer_payload(id="O2", createdBy="u-worker-2"),
        ])

        outcome = await OfferDesk(client).accept_offer(creator, make_job(), make_offer())

        assert outcome.offer.status == OfferStatus.ACCEPTED
        assert outcome.job.status == JobStatus.RESERVED
        assert [o.id for o in outcome.offers] == ["O1", "O2"]
        assert backend.calls("POST", "/offers/O1/accept")[0].headers["X-User-Id"] == CREATOR_ID

    @pytest.mark.asyncio
    async def test_send_accept_does_not_refetch(self, client, backend, creator):
        backend.on("POST", "/offers/O1/accept", json=offer_payload(status="accepted"))

        accepted = await OfferDesk(client).send_accept(creator, make_job(), make_offer())

        assert accepted.status == OfferStatus.ACCEPTED
        assert backend.calls("GET") == []

    @pytest.mark.asyncio
    async def test_worker_cannot_accept(self, client, backend, worker):
        with pytest.raises(NotAuthorizedError):
            await OfferDesk(client).accept_offer(worker, make_job(), make_offer())
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_cannot_accept_on_reserved_job(self, client, backend, creator):
        job = make_job(status="reserved", acceptedBy=WORKER_ID)
        with pytest.raises(InvalidTransitionError):
            await OfferDesk(client).accept_offer(creator, job, make_offer(id="O2"))
        assert backend.requests == []

    @pytest.mark.asyncio
    async def test_cannot_accept_rejected_offer(self, client, creator):
        with pytest.raises(InvalidTransitionError, match="already rejected"):
            await OfferDesk(client).accept_offer(creator, make_job(), make_offer(status="rejected"))

    @pytest.mark.asyncio
    async def test_offer_from_another_job(self, client, creator):
        with pytest.raises(InvalidTransitionError, match="belongs to job J2"):
            await OfferDesk(client).accept_offer(creator, make_job(), make_offer(jobId="J2"))

    @pytest.mark.asyncio
    async def test_losing_concurrent_accept(self, client, backend, creator):
        backend.on("POST", "/offers/O2/accept", status=409, text="Job is no longer open")

        with pytest.raises(ApiResponseError, match="no longer open"):
            await OfferDesk(client).accept_offer(creator, make_job(), make_offer(id="O2"))

        assert backend.calls("GET") == []

    @pytest.mark.asyncio
    async def test_reject(self, client, backend, creator):
        backend.on("POST", "/offers/O1/reject", json=offer_payload(status="rejected"))
        backend.on("GET", "/jobs/J1", json=job_payload())
        backend.on("GET", "/jobs/J1/offers", json=[offer_payload(status="rejected")])

        outcome = await OfferDesk(client).reject_offer(creator, make_job(), make_offer())

        assert outcome.offer.status == OfferStatus.REJECTED
        assert outcome.job.status == JobStatus.OPEN

    @pytest.mark.asyncio
    async def test_reject_refused_for_non_creator(self, client, backend):
        stranger = make_session("someone-else", "client")
        with pytest.raises(NotAuthorizedError):
            await OfferDesk(client).reject_offer(stranger, make_job(), make_offer())
        assert backend.requests == []


class TestOfferHelpers:

    def test_pending_offers(self):
        offers = [make_offer(), make_offer(id="O2", status="rejected")]
        assert [o.id for o in pending_offers(offers)] == ["O1"]

    def test_actionable_only_for_creator_on_open_job(self, creator, worker):
        offers = [make_offer(), make_offer(id="O2"), make_offer(id="O3", status="rejected")]
        assert actionable_offer_ids(creator, make_job(), offers) == {"O1", "O2"}
        assert actionable_offer_ids(worker, make_job(), offers) == set()

    def test_nothing_actionable_once_reserved(self, creator):
        job = make_job(status="reserved", acceptedBy=WORKER_ID)
        assert actionable_offer_ids(creator, job, [make_offer(id="O2")]) == set()
