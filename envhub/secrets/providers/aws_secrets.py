"""AWS Secrets Manager provider."""
import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..domains.config_loader import DEFAULT_PREFIX
from ..domains.errors import EnvhubError, ProviderError, SecretNotFoundError
from ..domains.models import PullResult, PushResult, SecretListItem
from ..domains.payload import MANAGED_BY, SecretPayload, build_payload, parse_payload
from .base import SecretNamespace, build_list_item, sort_items, version_or_zero

logger = logging.getLogger(__name__)

AWS_SECRET_NAME_PATTERN = r"[A-Za-z0-9/_+=.@-]+"
AWS_MAX_SECRET_NAME_LENGTH = 512

POLICY_SID = "EnvhubAccess"
POLICY_ACTIONS = ["secretsmanager:GetSecretValue"]


def _empty_policy() -> Dict[str, Any]:
    return {"Version": "2012-10-17", "Statement": []}


def _principals(statement: Dict[str, Any]) -> List[str]:
    principal = statement.get("Principal", {}).get("AWS", [])
    return list(principal) if isinstance(principal, list) else [principal]


class AWSSecretsProvider:
    """
    Stores .env contents as JSON envelopes in AWS Secrets Manager.

    Secret names are prefixed with a configurable namespace (default
    ``envhub-``). Access control uses a resource policy statement on each
    secret; IAM usernames are resolved to ARNs on the fly.
    """

    name = "aws"
    label = "AWS Secrets Manager"

    def __init__(self, profile: str, region: str, prefix: str = DEFAULT_PREFIX,
                 client=None, iam_client=None):
        self.profile = profile
        self.region = region
        self.namespace = SecretNamespace(
            prefix,
            AWS_MAX_SECRET_NAME_LENGTH,
            AWS_SECRET_NAME_PATTERN,
            "letters, numbers and the characters /_+=.@-",
            self.label,
        )
        self._session = None
        self._client = client
        self._iam_client = iam_client

    @property
    def session(self) -> boto3.Session:
        if self._session is None:
            self._session = boto3.Session(profile_name=self.profile, region_name=self.region)
        return self._session

    @property
    def client(self):
        """Lazy-initialize Secrets Manager client."""
        if self._client is None:
            self._client = self.session.client("secretsmanager")
        return self._client

    @property
    def iam_client(self):
        """Lazy-initialize IAM client."""
        if self._iam_client is None:
            self._iam_client = self.session.client("iam")
        return self._iam_client

    def _call(self, operation: str, secret_name: Optional[str], method, **kwargs):
        """Invoke an SDK method, translating botocore failures."""
        logger.debug(f"AWS {operation} {kwargs.get('SecretId') or kwargs.get('Name') or ''}")
        try:
            return method(**kwargs)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ResourceNotFoundException":
                raise SecretNotFoundError(secret_name) from e
            raise ProviderError(self.label, operation, secret_name, e) from e
        except BotoCoreError as e:
            raise ProviderError(self.label, operation, secret_name, e) from e

    def _secret_exists(self, secret_name: str) -> bool:
        try:
            self._call("describe", secret_name, self.client.describe_secret,
                       SecretId=self.namespace.full_name(secret_name))
            return True
        except SecretNotFoundError:
            return False

    def _get_payload(self, secret_name: str) -> SecretPayload:
        result = self._call("read", secret_name, self.client.get_secret_value,
                            SecretId=self.namespace.full_name(secret_name))
        return parse_payload(secret_name, result.get("SecretString"))

    # Core operations

    def push(self, secret_name: str, content: str, message: Optional[str] = None,
             force: bool = False) -> PushResult:
        full_name = self.namespace.full_name(secret_name)
        exists = self._secret_exists(secret_name)
        current_version = self._get_payload(secret_name).version if exists else 0
        payload = build_payload(content, current_version, message)

        if exists:
            self._call("update", secret_name, self.client.put_secret_value,
                       SecretId=full_name, SecretString=payload.to_json())
        else:
            self._call("create", secret_name, self.client.create_secret,
                       Name=full_name, SecretString=payload.to_json(),
                       Description=f"Managed by {MANAGED_BY}")

        logger.info(f"Pushed '{secret_name}' as version {payload.version} (force={force})")
        return PushResult(version=payload.version, name=secret_name)

    def pull(self, secret_name: str) -> PullResult:
        payload = self._get_payload(secret_name)
        return PullResult(content=payload.content, version=payload.version, name=secret_name)

    def cat(self, secret_name: str) -> str:
        return self._get_payload(secret_name).content

    def list(self) -> List[SecretListItem]:
        items = []
        paginator = self.client.get_paginator("list_secrets")
        pages = self._call("list", None, paginator.paginate,
                           Filters=[{"Key": "name", "Values": [self.namespace.prefix]}])

        try:
            for page in pages:
                for secret in page.get("SecretList", []):
                    full_name = secret.get("Name")
                    # The name filter is a prefix match on words, re-check locally
                    if not self.namespace.owns(full_name):
                        continue
                    items.append(build_list_item(
                        self.namespace.strip(full_name),
                        secret.get("LastChangedDate"),
                        self._get_payload,
                    ))
        except (ClientError, BotoCoreError) as e:
            raise ProviderError(self.label, "list", None, e) from e

        return sort_items(items)

    def delete(self, secret_name: str, force: bool = False) -> None:
        kwargs: Dict[str, Any] = {"SecretId": self.namespace.full_name(secret_name)}
        if force:
            kwargs["ForceDeleteWithoutRecovery"] = True
        self._call("delete", secret_name, self.client.delete_secret, **kwargs)

    # Access control

    def _resolve_user_arn(self, user_identifier: str) -> str:
        if user_identifier.startswith("arn:"):
            return user_identifier

        try:
            result = self.iam_client.get_user(UserName=user_identifier)
        except (ClientError, BotoCoreError) as e:
            raise EnvhubError(
                f"Failed to resolve user '{user_identifier}'. "
                f"Provide either a valid IAM username or a full ARN. ({e})"
            ) from e

        arn = result.get("User", {}).get("Arn")
        if not arn:
            raise EnvhubError(f"Could not resolve ARN for user '{user_identifier}'.")
        return arn

    def _read_policy(self, secret_name: str) -> Optional[Dict[str, Any]]:
        result = self._call("read policy", secret_name, self.client.get_resource_policy,
                            SecretId=self.namespace.full_name(secret_name))
        raw = result.get("ResourcePolicy")
        return json.loads(raw) if raw else None

    def _write_policy(self, secret_name: str, policy: Dict[str, Any]) -> None:
        self._call("write policy", secret_name, self.client.put_resource_policy,
                   SecretId=self.namespace.full_name(secret_name),
                   ResourcePolicy=json.dumps(policy))

    def grant(self, secret_name: str, user_identifier: str) -> None:
        full_name = self.namespace.full_name(secret_name)
        user_arn = self._resolve_user_arn(user_identifier)

        secret_arn = self._call("describe", secret_name, self.client.describe_secret,
                                SecretId=full_name).get("ARN")
        if not secret_arn:
            raise EnvhubError(f"Could not determine ARN for secret '{secret_name}'.")

        policy = self._read_policy(secret_name) or _empty_policy()
        statement = next((s for s in policy["Statement"] if s.get("Sid") == POLICY_SID), None)

        if statement is None:
            policy["Statement"].append({
                "Sid": POLICY_SID,
                "Effect": "Allow",
                "Principal": {"AWS": [user_arn]},
                "Action": list(POLICY_ACTIONS),
                "Resource": secret_arn,
            })
        else:
            principals = _principals(statement)
            if user_arn not in principals:
                principals.append(user_arn)
            statement["Principal"] = {"AWS": principals}

        self._write_policy(secret_name, policy)
        logger.info(f"Granted {user_arn} read access to '{secret_name}'")

    def revoke(self, secret_name: str, user_identifier: str) -> None:
        full_name = self.namespace.full_name(secret_name)
        user_arn = self._resolve_user_arn(user_identifier)

        policy = self._read_policy(secret_name)
        if not policy:
            raise EnvhubError(f"No access policy found for secret '{secret_name}'.")

        statement = next((s for s in policy.get("Statement", []) if s.get("Sid") == POLICY_SID), None)
        if statement is None:
            raise EnvhubError(f"No envhub access policy found for secret '{secret_name}'.")

        principals = _principals(statement)
        remaining = [arn for arn in principals if arn != user_arn]
        if len(remaining) == len(principals):
            raise EnvhubError(f"User '{user_identifier}' does not have access to secret '{secret_name}'.")

        if remaining:
            statement["Principal"] = {"AWS": remaining}
        else:
            policy["Statement"] = [s for s in policy["Statement"] if s.get("Sid") != POLICY_SID]

        if policy["Statement"]:
            self._write_policy(secret_name, policy)
        else:
            self._call("delete policy", secret_name, self.client.delete_resource_policy, SecretId=full_name)
        logger.info(f"Revoked {user_arn} access to '{secret_name}'")

    # Versioning

    def get_version(self, secret_name: str) -> int:
        return version_or_zero(secret_name, self._get_payload)
