"""
Unit tests for GrowthbookInstance reconciliation.

Passes run against the in-memory resource client and store, the assertions
look at what ends up in the store, on the resources' finalizers and in the
patched instance status.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from growthbook_operator.constants import FINALIZER
from growthbook_operator.errors import StoreError
from growthbook_operator.services.instance_reconciler import (
    InstanceReconciler,
    ReconcileResult,
)

CHILD_TOKEN = f"{FINALIZER}/main.default"
MONGO_URI = "mongodb://mongo:27017/growthbook"


@pytest.fixture
def reconciler(resource_client, fake_provider) -> InstanceReconciler:
    return InstanceReconciler(
        resource_client=resource_client, database_provider=fake_provider
    )


def add_instance(resource_client, **spec):
    return resource_client.add(
        "GrowthbookInstance", "main", spec={"mongodb": {"uri": MONGO_URI}, **spec}
    )


def last_status(resource_client) -> dict:
    assert resource_client.status_patches, "status was never patched"
    return resource_client.status_patches[-1][3]


def ready_condition(status: dict) -> dict:
    return next(c for c in status["conditions"] if c["type"] == "Ready")


def finalizers_of(resource_client, kind: str, name: str) -> list[str]:
    return resource_client.body(kind, name)["metadata"]["finalizers"]


class TestReconcileExample:
    @pytest.mark.asyncio
    async def test_selected_resources_are_cataloged(
        self, reconciler, resource_client, fake_db, fake_provider
    ):
        add_instance(resource_client, resourceSelector={"matchLabels": {"instance": "x"}})
        resource_client.add(
            "GrowthbookOrganization",
            "acme",
            spec={"resourceSelector": {"matchLabels": {"org": "o"}}},
            labels={"instance": "x"},
        )
        resource_client.add(
            "GrowthbookFeature",
            "dark-mode",
            spec={"defaultValue": "false", "valueType": "boolean"},
            labels={"instance": "x", "org": "o"},
        )
        # Not selected by the instance
        resource_client.add("GrowthbookFeature", "other", labels={"org": "o"})

        result = await reconciler.reconcile("default", "main")

        assert result == ReconcileResult(requeue=False, requeue_after=None)

        status = last_status(resource_client)
        assert status["subResourceCatalog"] == [
            {
                "kind": "GrowthbookOrganization",
                "name": "acme",
                "apiVersion": "growthbook.infra.doodle.com/v1beta1",
            },
            {
                "kind": "GrowthbookFeature",
                "name": "dark-mode",
                "apiVersion": "growthbook.infra.doodle.com/v1beta1",
            },
        ]
        condition = ready_condition(status)
        assert condition["status"] == "True"
        assert condition["reason"] == "Synchronized"
        assert condition["message"] == "instance successfully reconciled"
        assert status["observedGeneration"] == 1

        assert finalizers_of(resource_client, "GrowthbookInstance", "main") == [
            FINALIZER
        ]
        assert finalizers_of(resource_client, "GrowthbookOrganization", "acme") == [
            CHILD_TOKEN
        ]
        assert finalizers_of(resource_client, "GrowthbookFeature", "dark-mode") == [
            CHILD_TOKEN
        ]
        assert finalizers_of(resource_client, "GrowthbookFeature", "other") == []

        assert [d["id"] for d in fake_db.collection("organizations").documents] == [
            "acme"
        ]
        features = fake_db.collection("features").documents
        assert [(d["id"], d["organization"]) for d in features] == [
            ("dark-mode", "acme")
        ]

        assert fake_provider.calls == [(MONGO_URI, "", "")]
        assert fake_provider.connections[0].closed

    @pytest.mark.asyncio
    async def test_second_pass_writes_nothing(self, reconciler, resource_client, fake_db):
        add_instance(resource_client)
        resource_client.add("GrowthbookOrganization", "acme")
        resource_client.add("GrowthbookFeature", "dark-mode")

        await reconciler.reconcile("default", "main")
        first = ready_condition(last_status(resource_client))
        await reconciler.reconcile("default", "main")
        second = ready_condition(last_status(resource_client))

        for name in ("organizations", "features"):
            writes = fake_db.collection(name).writes
            assert [call[0] for call in writes] == ["insert_one"], name
        assert second["lastTransitionTime"] == first["lastTransitionTime"]

    @pytest.mark.asyncio
    async def test_interval_requeues(self, reconciler, resource_client):
        add_instance(resource_client, interval="5m")

        result = await reconciler.reconcile("default", "main")

        assert result == ReconcileResult(requeue=False, requeue_after=300.0)


class TestReconcileSkips:
    @pytest.mark.asyncio
    async def test_missing_instance(self, reconciler, resource_client, fake_provider):
        result = await reconciler.reconcile("default", "absent")

        assert result == ReconcileResult()
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_suspended_instance(self, reconciler, resource_client, fake_provider):
        add_instance(resource_client, suspend=True)

        result = await reconciler.reconcile("default", "main")

        assert result == ReconcileResult()
        assert fake_provider.calls == []
        assert resource_client.status_patches == []
        assert finalizers_of(resource_client, "GrowthbookInstance", "main") == []


class TestReconcileFailures:
    @pytest.mark.asyncio
    async def test_step_failure_is_reported(
        self, reconciler, resource_client, fake_db, fake_provider
    ):
        add_instance(resource_client)
        resource_client.add("GrowthbookUser", "jane", spec={"secret": {"name": "jane"}})
        resource_client.add("GrowthbookOrganization", "acme")

        result = await reconciler.reconcile("default", "main")

        assert result.requeue is True
        condition = ready_condition(last_status(resource_client))
        assert condition["status"] == "False"
        assert condition["reason"] == "Failed"
        assert condition["message"] == (
            "failed reconciling users: referencing secret default/jane was not found"
        )
        # Resources claimed before the failure stay in the catalog
        catalog = last_status(resource_client)["subResourceCatalog"]
        assert [entry["name"] for entry in catalog] == ["jane"]
        # The pass stops at the first failing step
        assert fake_db.collection("organizations").calls == []
        assert fake_provider.connections[0].closed

    @pytest.mark.asyncio
    async def test_client_without_token_secret(self, reconciler, resource_client):
        add_instance(resource_client)
        resource_client.add("GrowthbookOrganization", "acme")
        resource_client.add("GrowthbookClient", "web", spec={"environment": "prod"})

        await reconciler.reconcile("default", "main")

        condition = ready_condition(last_status(resource_client))
        assert condition["message"].startswith("failed reconciling clients: ")
        assert "has no tokenSecret" in condition["message"]

    @pytest.mark.asyncio
    async def test_invalid_selector(self, reconciler, resource_client):
        add_instance(
            resource_client,
            resourceSelector={"matchExpressions": [{"key": "a", "operator": "Near"}]},
        )

        await reconciler.reconcile("default", "main")

        condition = ready_condition(last_status(resource_client))
        assert condition["message"].startswith(
            "failed reconciling users: invalid label selector"
        )

    @pytest.mark.asyncio
    async def test_missing_root_secret(self, reconciler, resource_client, fake_provider):
        add_instance(
            resource_client, mongodb={"uri": MONGO_URI, "rootSecret": {"name": "mongo"}}
        )

        result = await reconciler.reconcile("default", "main")

        assert result.requeue is True
        assert fake_provider.calls == []
        assert ready_condition(last_status(resource_client))["message"] == (
            "referencing secret default/mongo was not found"
        )

    @pytest.mark.asyncio
    async def test_timeout(self, resource_client):
        add_instance(resource_client, timeout="10ms")

        async def slow_provider(uri, username, password):
            await asyncio.sleep(5)

        reconciler = InstanceReconciler(
            resource_client=resource_client, database_provider=slow_provider
        )

        result = await reconciler.reconcile("default", "main")

        assert result.requeue is True
        condition = ready_condition(last_status(resource_client))
        assert condition["status"] == "False"
        assert condition["message"] == "context deadline exceeded"

    @pytest.mark.asyncio
    async def test_unexpected_error_is_wrapped(self, resource_client):
        add_instance(resource_client)
        provider = AsyncMock(side_effect=RuntimeError("boom"))
        reconciler = InstanceReconciler(
            resource_client=resource_client, database_provider=provider
        )

        result = await reconciler.reconcile("default", "main")

        assert result.requeue is True
        assert ready_condition(last_status(resource_client))["message"] == (
            "Unexpected error during reconciliation: boom"
        )

    @pytest.mark.asyncio
    async def test_connection_error(self, resource_client):
        add_instance(resource_client)
        provider = AsyncMock(side_effect=StoreError("failed connecting to mongodb: x"))
        reconciler = InstanceReconciler(
            resource_client=resource_client, database_provider=provider
        )

        await reconciler.reconcile("default", "main")

        assert ready_condition(last_status(resource_client))["message"] == (
            "MongoDB error: failed connecting to mongodb: x"
        )

    @pytest.mark.asyncio
    async def test_disconnect_error_does_not_fail_pass(self, resource_client, fake_db):
        add_instance(resource_client)
        connection = MagicMock()
        connection.database = fake_db
        connection.close = AsyncMock(side_effect=StoreError("close failed"))
        reconciler = InstanceReconciler(
            resource_client=resource_client,
            database_provider=AsyncMock(return_value=connection),
        )

        await reconciler.reconcile("default", "main")

        connection.close.assert_awaited_once()
        assert ready_condition(last_status(resource_client))["status"] == "True"


class TestUsersAndMembers:
    @pytest.mark.asyncio
    async def test_root_credentials_passed_to_provider(
        self, reconciler, resource_client, fake_provider
    ):
        add_instance(
            resource_client, mongodb={"uri": MONGO_URI, "rootSecret": {"name": "mongo"}}
        )
        resource_client.add_secret("mongo", {"username": "root", "password": "pw"})

        await reconciler.reconcile("default", "main")

        assert fake_provider.calls == [(MONGO_URI, "root", "pw")]

    @pytest.mark.asyncio
    async def test_user_secret_sets_login_and_password(
        self, reconciler, resource_client, fake_db
    ):
        add_instance(resource_client)
        resource_client.add(
            "GrowthbookUser",
            "jane",
            spec={"email": "jane@example.com", "secret": {"name": "jane"}},
        )
        resource_client.add_secret("jane", {"username": "jdoe", "password": "s3cret"})
        resource_client.add("GrowthbookUser", "bob", spec={"name": "Bob"})

        await reconciler.reconcile("default", "main")

        users = {d["id"]: d for d in fake_db.collection("users").documents}
        assert users["jane"]["name"] == "jdoe"
        assert users["jane"]["email"] == "jane@example.com"
        assert users["jane"]["passwordHash"].count(":") == 1
        assert users["bob"]["name"] == "Bob"
        assert users["bob"]["passwordHash"] == ""

    @pytest.mark.asyncio
    async def test_members_from_bindings(self, reconciler, resource_client, fake_db):
        add_instance(resource_client)
        resource_client.add("GrowthbookUser", "jane", labels={"team": "a"})
        resource_client.add("GrowthbookUser", "bob", spec={"id": "u_bob"}, labels={"team": "b"})
        resource_client.add(
            "GrowthbookOrganization",
            "acme",
            spec={
                "users": [
                    {"selector": {"matchLabels": {"team": "a"}}, "role": "admin"},
                    {"selector": {"matchLabels": {"team": "b"}}, "role": "readonly"},
                ]
            },
        )

        await reconciler.reconcile("default", "main")

        organization = fake_db.collection("organizations").documents[0]
        assert organization["members"] == [
            {"id": "jane", "role": "admin"},
            {"id": "u_bob", "role": "readonly"},
        ]

    @pytest.mark.asyncio
    async def test_clients_written_with_token(self, reconciler, resource_client, fake_db):
        add_instance(resource_client)
        resource_client.add("GrowthbookOrganization", "acme", spec={"id": "org_1"})
        resource_client.add(
            "GrowthbookClient",
            "web",
            spec={"environment": "production", "tokenSecret": {"name": "web"}},
        )
        resource_client.add_secret("web", {"token": "abc"})

        await reconciler.reconcile("default", "main")

        connection = fake_db.collection("sdkconnections").documents[0]
        assert connection["key"] == "sdk-abc"
        assert connection["organization"] == "org_1"
        assert fake_db.collection("sdkpayloads").calls == [
            ("delete_many", {"environment": "production", "organization": "org_1"})
        ]


class TestChildRemoval:
    @pytest.mark.asyncio
    async def test_prune_deletes_document(self, reconciler, resource_client, fake_db):
        add_instance(resource_client, prune=True)
        resource_client.add("GrowthbookOrganization", "acme")
        resource_client.add(
            "GrowthbookFeature", "dark-mode", finalizers=[CHILD_TOKEN], deleting=True
        )
        fake_db.collection("features").documents.append({"id": "dark-mode"})

        await reconciler.reconcile("default", "main")

        assert fake_db.collection("features").documents == []
        # Released the last finalizer, so the API server removed the object
        assert resource_client.body("GrowthbookFeature", "dark-mode") is None
        catalog = last_status(resource_client)["subResourceCatalog"]
        assert [entry["name"] for entry in catalog] == ["acme"]

    @pytest.mark.asyncio
    async def test_orphan_keeps_document(self, reconciler, resource_client, fake_db):
        add_instance(resource_client)
        resource_client.add(
            "GrowthbookUser", "jane", finalizers=[CHILD_TOKEN, "other"], deleting=True
        )
        fake_db.collection("users").documents.append({"id": "jane"})

        await reconciler.reconcile("default", "main")

        assert fake_db.collection("users").documents[0]["id"] == "jane"
        assert finalizers_of(resource_client, "GrowthbookUser", "jane") == ["other"]
        assert last_status(resource_client)["subResourceCatalog"] == []


class TestInstanceDeletion:
    @pytest.mark.asyncio
    async def test_deletion_releases_everything(
        self, reconciler, resource_client, fake_db
    ):
        add_instance(resource_client, prune=True)
        resource_client.add("GrowthbookOrganization", "acme", finalizers=[CHILD_TOKEN])
        resource_client.add(
            "GrowthbookClient",
            "web",
            spec={"tokenSecret": {"name": "web"}},
            finalizers=[CHILD_TOKEN],
        )
        fake_db.collection("organizations").documents.append({"id": "acme"})
        fake_db.collection("sdkconnections").documents.append({"id": "web"})
        resource_client.add_secret("web", {"token": "abc"})

        await reconciler.reconcile("default", "main")
        assert finalizers_of(resource_client, "GrowthbookInstance", "main") == [
            FINALIZER
        ]
        assert ready_condition(last_status(resource_client))["status"] == "True"
        patches = len(resource_client.status_patches)

        # Secrets of retired clients are not read
        del resource_client.secrets[("default", "web")]
        resource_client.mark_deleting("GrowthbookInstance", "main")
        result = await reconciler.reconcile("default", "main")

        assert result == ReconcileResult()
        assert len(resource_client.status_patches) == patches
        assert resource_client.body("GrowthbookInstance", "main") is None
        assert finalizers_of(resource_client, "GrowthbookOrganization", "acme") == []
        assert finalizers_of(resource_client, "GrowthbookClient", "web") == []
        assert fake_db.collection("organizations").documents == []
        assert fake_db.collection("sdkconnections").documents == []
