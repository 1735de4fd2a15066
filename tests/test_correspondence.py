"""Tests for atelier_api.mailbox.correspondence."""

from __future__ import annotations

import uuid

import pytest

from atelier_api.mailbox.correspondence import build_query, compose_query
from atelier_api.mailbox.errors import ProjectNotFound
from tests.conftest import make_profile, make_project


class TestComposeQuery:
    def test_single_address(self):
        assert compose_query(["a@x.com"]) == "from:a@x.com OR to:a@x.com"

    def test_addresses_keep_their_order(self):
        assert compose_query(["b@x.com", "a@x.com"]) == (
            "from:b@x.com OR to:b@x.com OR from:a@x.com OR to:a@x.com"
        )


class TestBuildQuery:
    async def test_clients_then_contacts_skipping_missing_emails(self, db_session):
        owner = await make_profile(db_session)
        project = await make_project(
            db_session, owner, clients=["a@x.com"], contacts=["b@x.com", None],
        )

        result = await build_query(db_session, project.id, owner.id)

        assert result.query == "from:a@x.com OR to:a@x.com OR from:b@x.com OR to:b@x.com"
        assert result.addresses == ["a@x.com", "b@x.com"]
        assert not result.no_contacts

    async def test_blank_emails_are_skipped(self, db_session):
        owner = await make_profile(db_session)
        project = await make_project(db_session, owner, clients=["  ", "c@x.com"])

        result = await build_query(db_session, project.id, owner.id)

        assert result.addresses == ["c@x.com"]

    async def test_no_contacts_state(self, db_session):
        owner = await make_profile(db_session)
        project = await make_project(db_session, owner, clients=[None], contacts=[None])

        result = await build_query(db_session, project.id, owner.id)

        assert result.no_contacts
        assert result.query is None
        assert result.addresses == []

    async def test_project_of_another_owner_is_not_found(self, db_session):
        owner = await make_profile(db_session)
        stranger = await make_profile(db_session, "other@studio.test")
        project = await make_project(db_session, owner, clients=["a@x.com"])

        with pytest.raises(ProjectNotFound):
            await build_query(db_session, project.id, stranger.id)

    async def test_missing_project_is_not_found(self, db_session):
        owner = await make_profile(db_session)

        with pytest.raises(ProjectNotFound):
            await build_query(db_session, uuid.uuid4(), owner.id)
