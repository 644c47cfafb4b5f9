"""Shared pytest fixtures for GrowthBook operator unit tests.

Provides in-memory stand-ins for the GrowthBook store and for the Kubernetes
resource client so that reconcile passes can run without a cluster or a
MongoDB server.
"""

from copy import deepcopy
from typing import Any

import pytest

from growthbook_operator.constants import API_GROUP_VERSION
from growthbook_operator.errors import KubernetesAPIError
from growthbook_operator.models.common import LabelSelector
from growthbook_operator.models.registry import ResourceKind
from growthbook_operator.utils.selectors import matches, validate


def _matches_filter(document: dict, filter: dict) -> bool:
    return all(document.get(key) == value for key, value in filter.items())


class FakeCollection:
    """Collection keeping documents in a list and recording every call."""

    def __init__(self, name: str):
        self.name = name
        self.documents: list[dict[str, Any]] = []
        self.calls: list[tuple[str, dict]] = []
        self._next_id = 1

    @property
    def writes(self) -> list[tuple[str, dict]]:
        return [call for call in self.calls if call[0] != "find_one"]

    def find(self, filter: dict) -> list[dict[str, Any]]:
        return [doc for doc in self.documents if _matches_filter(doc, filter)]

    async def find_one(self, filter: dict) -> dict | None:
        self.calls.append(("find_one", deepcopy(filter)))
        found = self.find(filter)
        return deepcopy(found[0]) if found else None

    async def insert_one(self, document: dict) -> None:
        self.calls.append(("insert_one", deepcopy(document)))
        stored = deepcopy(document)
        stored["_id"] = f"oid-{self._next_id}"
        self._next_id += 1
        self.documents.append(stored)

    async def update_one(self, filter: dict, update: dict) -> None:
        self.calls.append(("update_one", deepcopy(update)))
        found = self.find(filter)
        if found:
            found[0].update(deepcopy(update["$set"]))

    async def delete_one(self, filter: dict) -> None:
        self.calls.append(("delete_one", deepcopy(filter)))
        found = self.find(filter)
        if found:
            self.documents.remove(found[0])

    async def delete_many(self, filter: dict) -> None:
        self.calls.append(("delete_many", deepcopy(filter)))
        self.documents = [
            doc for doc in self.documents if not _matches_filter(doc, filter)
        ]


class FakeDatabase:
    """Database creating collections on first access."""

    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]


class FakeConnection:
    def __init__(self, database: FakeDatabase):
        self._database = database
        self.closed = False

    @property
    def database(self) -> FakeDatabase:
        return self._database

    async def close(self) -> None:
        self.closed = True


class FakeDatabaseProvider:
    """Database provider handing out connections to one shared fake database."""

    def __init__(self, database: FakeDatabase):
        self.database = database
        self.connections: list[FakeConnection] = []
        self.calls: list[tuple[str, str, str]] = []

    async def __call__(self, uri: str, username: str, password: str) -> FakeConnection:
        self.calls.append((uri, username, password))
        connection = FakeConnection(self.database)
        self.connections.append(connection)
        return connection


class FakeResourceClient:
    """
    In-memory API server for the declared resources and secrets.

    Finalizer patches are checked against the resourceVersion like the real
    API server does, and an object marked for deletion disappears once its
    last finalizer is removed.
    """

    def __init__(self):
        self.objects: dict[tuple[str, str, str], dict[str, Any]] = {}
        self.secrets: dict[tuple[str, str], dict[str, str]] = {}
        self.status_patches: list[tuple[str, str, str, dict]] = []
        self.finalizer_patches: list[tuple[str, str, str, list[str]]] = []
        self._version = 1

    def _bump(self) -> str:
        self._version += 1
        return str(self._version)

    def add(
        self,
        kind: str,
        name: str,
        spec: dict | None = None,
        namespace: str = "default",
        labels: dict[str, str] | None = None,
        finalizers: list[str] | None = None,
        deleting: bool = False,
    ) -> dict[str, Any]:
        metadata: dict[str, Any] = {
            "name": name,
            "namespace": namespace,
            "labels": dict(labels or {}),
            "finalizers": list(finalizers or []),
            "generation": 1,
            "resourceVersion": self._bump(),
        }
        if deleting:
            metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"
        body = {
            "apiVersion": API_GROUP_VERSION,
            "kind": kind,
            "metadata": metadata,
            "spec": deepcopy(spec or {}),
        }
        self.objects[(kind, namespace, name)] = body
        return body

    def add_secret(self, name: str, data: dict[str, str], namespace: str = "default"):
        self.secrets[(namespace, name)] = dict(data)

    def body(self, kind: str, name: str, namespace: str = "default") -> dict | None:
        return self.objects.get((kind, namespace, name))

    def mark_deleting(self, kind: str, name: str, namespace: str = "default") -> None:
        body = self.objects[(kind, namespace, name)]
        body["metadata"]["deletionTimestamp"] = "2024-01-01T00:00:00Z"
        body["metadata"]["resourceVersion"] = self._bump()

    async def get(self, kind: ResourceKind, namespace: str, name: str):
        body = self.objects.get((kind.kind, namespace, name))
        if body is None:
            return None
        return kind.model.from_body(deepcopy(body))

    async def list_matching(
        self, kind: ResourceKind, namespace: str, selector: LabelSelector | None = None
    ):
        validate(selector)
        return [
            kind.model.from_body(deepcopy(body))
            for (k, ns, _), body in self.objects.items()
            if k == kind.kind
            and ns == namespace
            and matches(body["metadata"]["labels"], selector)
        ]

    async def patch_finalizers(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        finalizers: list[str],
        resource_version: str,
    ) -> None:
        key = (kind.kind, namespace, name)
        body = self.objects.get(key)
        if body is None:
            raise KubernetesAPIError("not found", reason="NotFound", retryable=False)
        if resource_version and body["metadata"]["resourceVersion"] != resource_version:
            raise KubernetesAPIError("conflict", reason="Conflict")

        self.finalizer_patches.append((kind.kind, namespace, name, list(finalizers)))
        body["metadata"]["finalizers"] = list(finalizers)
        body["metadata"]["resourceVersion"] = self._bump()
        if not finalizers and body["metadata"].get("deletionTimestamp"):
            del self.objects[key]

    async def patch_status(
        self,
        kind: ResourceKind,
        namespace: str,
        name: str,
        status: dict[str, Any],
        resource_version: str,
    ) -> None:
        self.status_patches.append((kind.kind, namespace, name, deepcopy(status)))
        body = self.objects[(kind.kind, namespace, name)]
        body["status"] = deepcopy(status)
        body["metadata"]["resourceVersion"] = self._bump()

    async def read_secret(self, namespace: str, name: str) -> dict[str, str] | None:
        data = self.secrets.get((namespace, name))
        return dict(data) if data is not None else None


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture
def fake_provider(fake_db: FakeDatabase) -> FakeDatabaseProvider:
    return FakeDatabaseProvider(fake_db)


@pytest.fixture
def resource_client() -> FakeResourceClient:
    return FakeResourceClient()
