"""
Resolution of credentials referenced from declared resources.

Users, clients and the MongoDB store refer to secrets in their own namespace.
This module reads those secrets and extracts the configured fields.
"""

from ..constants import SDK_KEY_PREFIX
from ..errors import ConfigurationError, FieldMissingError, SecretNotFoundError
from ..models.client import GrowthbookClient
from ..models.common import SecretReference
from .kubernetes import ResourceClient


class CredentialResolver:
    """Reads credential fields out of namespaced secrets."""

    def __init__(self, resource_client: ResourceClient):
        self.resource_client = resource_client

    async def resolve(
        self,
        namespace: str,
        secret_name: str,
        required: tuple[str, ...] = (),
        optional: tuple[str, ...] = (),
    ) -> dict[str, str]:
        """
        Read the requested fields of a secret.

        Args:
            namespace: Namespace of the secret
            secret_name: Name of the secret
            required: Fields that must be present
            optional: Fields that default to an empty string when absent

        Returns:
            Mapping of every requested field to its decoded value

        Raises:
            SecretNotFoundError: If the secret does not exist
            FieldMissingError: If a required field is absent
        """
        data = await self.resource_client.read_secret(namespace, secret_name)
        if data is None:
            raise SecretNotFoundError(namespace, secret_name)

        values: dict[str, str] = {}
        for field in required:
            if field not in data:
                raise FieldMissingError(namespace, secret_name, field)
            values[field] = data[field]
        for field in optional:
            values[field] = data.get(field, "")
        return values

    async def get_username_password(
        self, namespace: str, ref: SecretReference
    ) -> tuple[str, str]:
        """Read username and password, both fields are required."""
        values = await self.resolve(
            namespace, ref.name, required=(ref.user_field, ref.password_field)
        )
        return values[ref.user_field], values[ref.password_field]

    async def get_optional_username_password(
        self, namespace: str, ref: SecretReference
    ) -> tuple[str, str]:
        """
        Read username and password of a user secret.

        The password is required, a missing username resolves to an empty
        string so that the name declared on the user is kept.
        """
        values = await self.resolve(
            namespace,
            ref.name,
            required=(ref.password_field,),
            optional=(ref.user_field,),
        )
        return values[ref.user_field], values[ref.password_field]

    async def get_client_token(self, client: GrowthbookClient) -> str:
        """
        Read the SDK key of a client.

        The token is prefixed with ``sdk-`` unless it already carries it.

        Raises:
            ConfigurationError: If the client has no token secret
        """
        ref = client.spec.token_secret
        if ref is None:
            raise ConfigurationError(
                f"client {client.namespace}/{client.name} has no tokenSecret",
                user_action="Set spec.tokenSecret to a secret holding the SDK key",
            )

        values = await self.resolve(
            client.namespace, ref.name, required=(ref.token_field,)
        )
        token = values[ref.token_field]
        if not token.startswith(SDK_KEY_PREFIX):
            token = f"{SDK_KEY_PREFIX}{token}"
        return token
