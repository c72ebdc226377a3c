"""Tests for the authorization predicates."""

import pytest

from labourlink import policy

from conftest import CREATOR_ID, WORKER_ID, make_job, make_session


@pytest.fixture
def job():
    return make_job(status="reserved", acceptedBy=WORKER_ID)


class TestCreatorPredicates:

    def test_creator_may_edit_delete_and_manage(self, creator, job):
        assert policy.is_creator(creator, job)
        assert policy.can_edit_job(creator, job)
        assert policy.can_delete_job(creator, job)
        assert policy.can_manage_offers(creator, job)

    @pytest.mark.parametrize("user_id, role", [
        (WORKER_ID, "labour"),
        ("someone-else", "client"),
        ("someone-else", "labour"),
    ])
    def test_non_creators_get_nothing(self, job, user_id, role):
        session = make_session(user_id, role)
        assert not policy.is_creator(session, job)
        assert not policy.can_edit_job(session, job)
        assert not policy.can_delete_job(session, job)
        assert not policy.can_manage_offers(session, job)

    def test_signed_out(self, job):
        assert not policy.is_creator(None, job)
        assert not policy.can_delete_job(None, job)

    def test_ended_session_counts_as_signed_out(self, creator, job):
        creator.end()
        assert not policy.is_creator(creator, job)
        assert not policy.can_edit_job(creator, job)


class TestOfferPredicates:

    def test_labour_may_create_offers(self, worker):
        assert policy.can_create_offer(worker)

    def test_client_may_not_create_offers(self, creator):
        assert not policy.can_create_offer(creator)

    def test_signed_out_may_not_create_offers(self):
        assert not policy.can_create_offer(None)

    def test_accepted_worker(self, worker, other_worker, job):
        assert policy.is_accepted_worker(worker, job)
        assert not policy.is_accepted_worker(other_worker, job)

    def test_no_accepted_worker_on_open_job(self, worker):
        assert not policy.is_accepted_worker(worker, make_job(createdBy=CREATOR_ID))
