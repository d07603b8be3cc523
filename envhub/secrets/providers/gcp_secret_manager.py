"""GCP Secret Manager provider."""
import os
import logging
from typing import List, Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import secretmanager

from ..domains.config_loader import DEFAULT_PREFIX
from ..domains.errors import ConfigError, EnvhubError, ProviderError, SecretNotFoundError
from ..domains.models import PullResult, PushResult, SecretListItem
from ..domains.payload import MANAGED_BY, SecretPayload, build_payload, parse_payload
from .base import SecretNamespace, build_list_item, sort_items, version_or_zero

logger = logging.getLogger(__name__)

GCP_SECRET_NAME_PATTERN = r"[a-zA-Z0-9_-]+"
GCP_MAX_SECRET_NAME_LENGTH = 255

ACCESSOR_ROLE = "roles/secretmanager.secretAccessor"


def resolve_project_id(configured: Optional[str] = None) -> str:
    """
    Get GCP project ID from environment variable or config.

    Priority order:
    1. GCP_PROJECT environment variable (allows override)
    2. Config file (primary source)

    Raises:
        ConfigError: If project_id is not found in config or environment
    """
    gcp_project_env = os.getenv("GCP_PROJECT")
    if gcp_project_env:
        logger.debug(f"Using GCP_PROJECT from environment: {gcp_project_env}")
        return gcp_project_env

    if configured:
        logger.debug(f"Using project_id from config: {configured}")
        return configured

    raise ConfigError(
        "Project ID not found. Please set GCP_PROJECT environment variable "
        "or configure gcp.projectId in the config file"
    )


def _member(user_identifier: str) -> str:
    """IAM member string; bare e-mail addresses are treated as users."""
    if ":" in user_identifier:
        return user_identifier
    if "@" in user_identifier:
        return f"user:{user_identifier}"
    raise EnvhubError(
        f"Cannot grant access to '{user_identifier}'. Provide an e-mail address "
        f"or a member such as 'serviceAccount:name@project.iam.gserviceaccount.com'."
    )


class GCPSecretManagerProvider:
    """
    Stores .env contents as JSON envelopes in GCP Secret Manager.

    Every push adds a new secret version, so previous envelopes stay
    available in the secret's version history. Access control adds or
    removes members on the secretAccessor role binding of the secret.
    """

    name = "gcp"
    label = "GCP Secret Manager"

    def __init__(self, project_id: str, prefix: str = DEFAULT_PREFIX, client=None):
        self.project_id = project_id
        self.namespace = SecretNamespace(
            prefix,
            GCP_MAX_SECRET_NAME_LENGTH,
            GCP_SECRET_NAME_PATTERN,
            "letters, numbers, underscores (_) and hyphens (-)",
            self.label,
        )
        self._client = client

    @property
    def client(self) -> secretmanager.SecretManagerServiceClient:
        """Lazy-initialize client."""
        if self._client is None:
            self._client = secretmanager.SecretManagerServiceClient()
        return self._client

    @property
    def parent(self) -> str:
        return f"projects/{self.project_id}"

    def _secret_path(self, secret_name: str) -> str:
        return f"{self.parent}/secrets/{self.namespace.full_name(secret_name)}"

    def _call(self, operation: str, secret_name: Optional[str], method, request: dict):
        """Invoke an SDK method, translating Google API failures."""
        logger.debug(f"GCP {operation} {request.get('name') or request.get('parent') or request.get('resource')}")
        try:
            return method(request=request)
        except gcp_exceptions.NotFound as e:
            raise SecretNotFoundError(secret_name) from e
        except gcp_exceptions.GoogleAPIError as e:
            raise ProviderError(self.label, operation, secret_name, e) from e

    def _secret_exists(self, secret_name: str) -> bool:
        try:
            self._call("describe", secret_name, self.client.get_secret, {"name": self._secret_path(secret_name)})
            return True
        except SecretNotFoundError:
            return False

    def _get_payload(self, secret_name: str) -> SecretPayload:
        response = self._call("read", secret_name, self.client.access_secret_version,
                              {"name": f"{self._secret_path(secret_name)}/versions/latest"})
        return parse_payload(secret_name, response.payload.data.decode("UTF-8"))

    def push(self, secret_name: str, content: str, message: Optional[str] = None,
             force: bool = False) -> PushResult:
        secret_path = self._secret_path(secret_name)

        if self._secret_exists(secret_name):
            # A secret container may exist without any version yet
            current_version = version_or_zero(secret_name, self._get_payload)
        else:
            self._call("create", secret_name, self.client.create_secret, {
                "parent": self.parent,
                "secret_id": self.namespace.full_name(secret_name),
                "secret": {
                    "replication": {"automatic": {}},
                    "labels": {"managed-by": MANAGED_BY},
                },
            })
            current_version = 0

        payload = build_payload(content, current_version, message)
        self._call("write", secret_name, self.client.add_secret_version, {
            "parent": secret_path,
            "payload": {"data": payload.to_json().encode("UTF-8")},
        })

        logger.info(f"Pushed '{secret_name}' as version {payload.version} (force={force})")
        return PushResult(version=payload.version, name=secret_name)

    def pull(self, secret_name: str) -> PullResult:
        payload = self._get_payload(secret_name)
        return PullResult(content=payload.content, version=payload.version, name=secret_name)

    def cat(self, secret_name: str) -> str:
        return self._get_payload(secret_name).content

    def list(self) -> List[SecretListItem]:
        items = []
        secrets = self._call("list", None, self.client.list_secrets, {"parent": self.parent})
        try:
            for secret in secrets:
                full_name = secret.name.rsplit("/", 1)[-1]
                if not self.namespace.owns(full_name):
                    continue
                # Secret resources carry no update time; the envelope timestamp is used
                items.append(build_list_item(self.namespace.strip(full_name), None, self._get_payload))
        except gcp_exceptions.GoogleAPIError as e:
            raise ProviderError(self.label, "list", None, e) from e
        return sort_items(items)

    def delete(self, secret_name: str, force: bool = False) -> None:
        # Secret Manager deletes immediately; there is no recovery window to skip
        self._call("delete", secret_name, self.client.delete_secret, {"name": self._secret_path(secret_name)})

    def grant(self, secret_name: str, user_identifier: str) -> None:
        secret_path = self._secret_path(secret_name)
        member = _member(user_identifier)
        policy = self._call("read policy", secret_name, self.client.get_iam_policy, {"resource": secret_path})

        for binding in policy.bindings:
            if binding.role == ACCESSOR_ROLE:
                if member not in binding.members:
                    binding.members.append(member)
                break
        else:
            policy.bindings.add(role=ACCESSOR_ROLE, members=[member])

        self._call("write policy", secret_name, self.client.set_iam_policy,
                   {"resource": secret_path, "policy": policy})
        logger.info(f"Granted {member} read access to '{secret_name}'")

    def revoke(self, secret_name: str, user_identifier: str) -> None:
        secret_path = self._secret_path(secret_name)
        member = _member(user_identifier)
        policy = self._call("read policy", secret_name, self.client.get_iam_policy, {"resource": secret_path})

        binding = next((b for b in policy.bindings if b.role == ACCESSOR_ROLE and member in b.members), None)
        if binding is None:
            raise EnvhubError(f"User '{user_identifier}' does not have access to secret '{secret_name}'.")

        binding.members.remove(member)
        if not binding.members:
            policy.bindings.remove(binding)

        self._call("write policy", secret_name, self.client.set_iam_policy,
                   {"resource": secret_path, "policy": policy})
        logger.info(f"Revoked {member} access to '{secret_name}'")

    def get_version(self, secret_name: str) -> int:
        return version_or_zero(secret_name, self._get_payload)
