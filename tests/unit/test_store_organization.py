"""Unit tests for organization documents and the idempotent store writer."""

from datetime import datetime

import pytest

from growthbook_operator.growthbook import (
    Organization,
    OrganizationMember,
    delete,
    upsert,
)
from growthbook_operator.models.organization import GrowthbookOrganization


def make_organization(name: str = "acme", **spec) -> GrowthbookOrganization:
    return GrowthbookOrganization.from_body(
        {"metadata": {"name": name, "namespace": "default"}, "spec": spec}
    )


class TestOrganizationMapping:
    def test_name_fallback(self):
        entity = Organization.from_resource(make_organization(ownerEmail="a@b.c"))

        assert entity.id == "acme"
        assert entity.name == "acme"
        assert entity.owner_email == "a@b.c"

    def test_overrides_take_precedence(self):
        entity = Organization.from_resource(
            make_organization(id="org_123", name="ACME Corp")
        )

        assert entity.id == "org_123"
        assert entity.name == "ACME Corp"


class TestOrganizationUpsert:
    @pytest.mark.asyncio
    async def test_insert_stamps_creation_date(self, fake_db):
        entity = Organization(id="org", name="Org", owner_email="owner@example.com")

        assert await upsert(fake_db, entity) is True

        collection = fake_db.collection("organizations")
        assert [call[0] for call in collection.writes] == ["insert_one"]
        document = collection.documents[0]
        assert document["id"] == "org"
        assert document["ownerEmail"] == "owner@example.com"
        assert isinstance(document["dateCreated"], datetime)
        assert document["__v"] == 0
        # The caller's entity is not modified
        assert entity.date_created is None

    @pytest.mark.asyncio
    async def test_second_upsert_is_a_no_op(self, fake_db):
        entity = Organization(
            id="org",
            name="Org",
            members=[OrganizationMember(id="jane", role="admin")],
        )

        await upsert(fake_db, entity)
        assert await upsert(fake_db, entity) is False

        collection = fake_db.collection("organizations")
        assert [call[0] for call in collection.writes] == ["insert_one"]

    @pytest.mark.asyncio
    async def test_update_replaces_declared_fields(self, fake_db):
        collection = fake_db.collection("organizations")
        created = datetime(2023, 5, 1)
        collection.documents.append(
            {
                "id": "org",
                "name": "Old",
                "ownerEmail": "old@example.com",
                "dateCreated": created,
                "members": [{"id": "bob", "role": "admin"}],
                "settings": {"customized": True},
                "__v": 3,
            }
        )

        entity = Organization(
            id="org",
            name="New",
            owner_email="new@example.com",
            members=[OrganizationMember(id="jane", role="readonly")],
        )
        assert await upsert(fake_db, entity) is True

        document = collection.documents[0]
        assert document["name"] == "New"
        assert document["ownerEmail"] == "new@example.com"
        assert document["members"] == [{"id": "jane", "role": "readonly"}]
        assert document["dateCreated"] == created
        assert document["__v"] == 3
        # Fields the operator does not model are left alone
        assert document["settings"] == {"customized": True}

    @pytest.mark.asyncio
    async def test_delete_by_id(self, fake_db):
        collection = fake_db.collection("organizations")
        collection.documents.append({"id": "org", "name": "Org"})
        collection.documents.append({"id": "other", "name": "Other"})

        await delete(fake_db, Organization(id="org"))

        assert [doc["id"] for doc in collection.documents] == ["other"]
