"""Unit tests for Kubernetes access to the declared resources."""

import base64
from unittest.mock import MagicMock

import pytest
from kubernetes.client.rest import ApiException

from growthbook_operator.errors import KubernetesAPIError, ValidationError
from growthbook_operator.models.common import LabelSelector
from growthbook_operator.models.registry import FEATURE, INSTANCE
from growthbook_operator.utils.kubernetes import ResourceClient


@pytest.fixture
def custom_api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def core_api() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(custom_api, core_api) -> ResourceClient:
    resource_client = ResourceClient(k8s_client=MagicMock())
    resource_client._custom = custom_api
    resource_client._v1 = core_api
    return resource_client


def instance_body(name: str = "main") -> dict:
    return {
        "apiVersion": "growthbook.infra.doodle.com/v1beta1",
        "kind": "GrowthbookInstance",
        "metadata": {"name": name, "namespace": "default", "resourceVersion": "7"},
        "spec": {"mongodb": {"uri": "mongodb://mongo/growthbook"}, "interval": "1m"},
    }


class TestGet:
    @pytest.mark.asyncio
    async def test_returns_parsed_resource(self, client, custom_api):
        custom_api.get_namespaced_custom_object.return_value = instance_body()

        instance = await client.get(INSTANCE, "default", "main")

        assert instance.name == "main"
        assert instance.metadata.resource_version == "7"
        assert instance.interval_seconds == 60
        custom_api.get_namespaced_custom_object.assert_called_once_with(
            group="growthbook.infra.doodle.com",
            version="v1beta1",
            namespace="default",
            plural="growthbookinstances",
            name="main",
        )

    @pytest.mark.asyncio
    async def test_not_found_returns_none(self, client, custom_api):
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=404)

        assert await client.get(INSTANCE, "default", "main") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self, client, custom_api):
        custom_api.get_namespaced_custom_object.side_effect = ApiException(
            status=500, reason="Internal Server Error"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await client.get(INSTANCE, "default", "main")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_forbidden_not_retryable(self, client, custom_api):
        custom_api.get_namespaced_custom_object.side_effect = ApiException(
            status=403, reason="Forbidden"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await client.get(INSTANCE, "default", "main")
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_invalid_resource(self, client, custom_api):
        body = {
            "metadata": {"name": "f", "namespace": "default"},
            "spec": {"valueType": "float"},
        }
        custom_api.get_namespaced_custom_object.return_value = body

        with pytest.raises(ValidationError):
            await client.get(FEATURE, "default", "f")


class TestListMatching:
    @pytest.mark.asyncio
    async def test_selector_passed_to_api_server(self, client, custom_api):
        custom_api.list_namespaced_custom_object.return_value = {
            "items": [
                {"metadata": {"name": "a", "namespace": "default"}},
                {"metadata": {"name": "b", "namespace": "default"}},
            ]
        }

        features = await client.list_matching(
            FEATURE, "default", LabelSelector(match_labels={"org": "o"})
        )

        assert [f.name for f in features] == ["a", "b"]
        assert all(f.kind == "GrowthbookFeature" for f in features)
        kwargs = custom_api.list_namespaced_custom_object.call_args.kwargs
        assert kwargs["plural"] == "growthbookfeatures"
        assert kwargs["label_selector"] == "org=o"

    @pytest.mark.asyncio
    async def test_no_selector_lists_everything(self, client, custom_api):
        custom_api.list_namespaced_custom_object.return_value = {"items": []}

        assert await client.list_matching(FEATURE, "default") == []
        kwargs = custom_api.list_namespaced_custom_object.call_args.kwargs
        assert kwargs["label_selector"] == ""


class TestPatches:
    @pytest.mark.asyncio
    async def test_finalizer_patch_carries_resource_version(self, client, custom_api):
        await client.patch_finalizers(INSTANCE, "default", "main", ["a", "b"], "42")

        kwargs = custom_api.patch_namespaced_custom_object.call_args.kwargs
        assert kwargs["body"] == {
            "metadata": {"finalizers": ["a", "b"], "resourceVersion": "42"}
        }

    @pytest.mark.asyncio
    async def test_conflict_is_retryable(self, client, custom_api):
        custom_api.patch_namespaced_custom_object.side_effect = ApiException(
            status=409, reason="Conflict"
        )

        with pytest.raises(KubernetesAPIError) as exc_info:
            await client.patch_finalizers(INSTANCE, "default", "main", [], "42")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_status_patch(self, client, custom_api):
        await client.patch_status(
            INSTANCE, "default", "main", {"observedGeneration": 2}, "42"
        )

        kwargs = custom_api.patch_namespaced_custom_object_status.call_args.kwargs
        assert kwargs["body"] == {
            "status": {"observedGeneration": 2},
            "metadata": {"resourceVersion": "42"},
        }


class TestReadSecret:
    @pytest.mark.asyncio
    async def test_decodes_data(self, client, core_api):
        secret = MagicMock()
        secret.data = {"password": base64.b64encode(b"s3cret").decode()}
        core_api.read_namespaced_secret.return_value = secret

        assert await client.read_secret("default", "mongo") == {"password": "s3cret"}

    @pytest.mark.asyncio
    async def test_missing_secret(self, client, core_api):
        core_api.read_namespaced_secret.side_effect = ApiException(status=404)

        assert await client.read_secret("default", "mongo") is None

    @pytest.mark.asyncio
    async def test_empty_secret(self, client, core_api):
        secret = MagicMock()
        secret.data = None
        core_api.read_namespaced_secret.return_value = secret

        assert await client.read_secret("default", "mongo") == {}
