"""Azure Key Vault provider."""
import logging
from typing import Dict, List, Optional

from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError
from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient

from ..domains.config_loader import DEFAULT_PREFIX
from ..domains.errors import EnvhubError, ProviderError, SecretNotFoundError, UnsupportedOperationError
from ..domains.models import PullResult, PushResult, SecretListItem
from ..domains.payload import MANAGED_BY, SecretPayload, build_payload, parse_payload
from .base import SecretNamespace, build_list_item, sort_items

logger = logging.getLogger(__name__)

AZURE_SECRET_NAME_PATTERN = r"[0-9a-zA-Z-]+"
AZURE_MAX_SECRET_NAME_LENGTH = 127
AZURE_MAX_TAG_VALUE_LENGTH = 256


def _is_not_found(error: Exception) -> bool:
    if isinstance(error, ResourceNotFoundError):
        return True
    if isinstance(error, HttpResponseError):
        code = getattr(getattr(error, "error", None), "code", None)
        return error.status_code == 404 or code in ("SecretNotFound", "NotFound")
    return False


class AzureKeyVaultProvider:
    """
    Stores .env contents as JSON envelopes in Azure Key Vault.

    Key Vault keeps its own opaque version ids, so the envhub version lives
    inside the envelope and is mirrored into tags for portal visibility.
    Access control is left to Azure RBAC and access policies.
    """

    name = "azure"
    label = "Azure Key Vault"

    def __init__(self, vault_url: str, prefix: str = DEFAULT_PREFIX, client: Optional[SecretClient] = None):
        self.vault_url = vault_url
        self.namespace = SecretNamespace(
            prefix,
            AZURE_MAX_SECRET_NAME_LENGTH,
            AZURE_SECRET_NAME_PATTERN,
            "letters, numbers, and dashes",
            self.label,
        )
        self._client = client

    @property
    def client(self) -> SecretClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = SecretClient(vault_url=self.vault_url, credential=DefaultAzureCredential())
        return self._client

    def _call(self, operation: str, secret_name: Optional[str], method, *args, **kwargs):
        """Invoke an SDK method, translating Azure failures."""
        logger.debug(f"Azure {operation} {args[0] if args else ''}")
        try:
            return method(*args, **kwargs)
        except AzureError as e:
            if _is_not_found(e):
                raise SecretNotFoundError(secret_name) from e
            raise ProviderError(self.label, operation, secret_name, e) from e

    def _get_payload(self, secret_name: str) -> SecretPayload:
        secret = self._call("read", secret_name, self.client.get_secret, self.namespace.full_name(secret_name))
        return parse_payload(secret_name, secret.value)

    def _current_version(self, secret_name: str) -> int:
        """Existence probe and version read in a single request."""
        try:
            return self._get_payload(secret_name).version
        except SecretNotFoundError:
            return 0

    def push(self, secret_name: str, content: str, message: Optional[str] = None,
             force: bool = False) -> PushResult:
        full_name = self.namespace.full_name(secret_name)
        payload = build_payload(content, self._current_version(secret_name), message)

        tags: Dict[str, str] = {"managedBy": MANAGED_BY, "envhubVersion": str(payload.version)}
        if message:
            tags["envhubMessage"] = message[:AZURE_MAX_TAG_VALUE_LENGTH]

        self._call("write", secret_name, self.client.set_secret, full_name, payload.to_json(), tags=tags)

        logger.info(f"Pushed '{secret_name}' as version {payload.version} (force={force})")
        return PushResult(version=payload.version, name=secret_name)

    def pull(self, secret_name: str) -> PullResult:
        payload = self._get_payload(secret_name)
        return PullResult(content=payload.content, version=payload.version, name=secret_name)

    def cat(self, secret_name: str) -> str:
        return self._get_payload(secret_name).content

    def list(self) -> List[SecretListItem]:
        items = []
        try:
            for properties in self.client.list_properties_of_secrets():
                if not self.namespace.owns(properties.name):
                    continue
                items.append(build_list_item(
                    self.namespace.strip(properties.name),
                    properties.updated_on,
                    self._get_payload,
                ))
        except AzureError as e:
            raise ProviderError(self.label, "list", None, e) from e
        return sort_items(items)

    def delete(self, secret_name: str, force: bool = False) -> None:
        full_name = self.namespace.full_name(secret_name)
        poller = self._call("delete", secret_name, self.client.begin_delete_secret, full_name)
        self._call("delete", secret_name, poller.wait)

        if force:
            try:
                self.client.purge_deleted_secret(full_name)
            except AzureError as e:
                raise EnvhubError(
                    f"Failed to force-delete '{secret_name}'. Azure Key Vault may block purge "
                    f"(for example due to purge protection). {e}"
                ) from e

    def grant(self, secret_name: str, user_identifier: str) -> None:
        raise UnsupportedOperationError(
            "Grant is not implemented for Azure Key Vault. Use Azure RBAC or access policies in Azure."
        )

    def revoke(self, secret_name: str, user_identifier: str) -> None:
        raise UnsupportedOperationError(
            "Revoke is not implemented for Azure Key Vault. Use Azure RBAC or access policies in Azure."
        )

    def get_version(self, secret_name: str) -> int:
        return self._current_version(secret_name)
