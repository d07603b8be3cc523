"""Provider contract and the pieces every backend composes.

Each backend is a standalone class satisfying ``SecretProvider``; shared
behavior lives in ``SecretNamespace`` and the helpers below rather than in a
base class.
"""
import logging
import re
from datetime import datetime
from typing import Callable, List, Optional, Protocol

from ..domains.config_loader import DEFAULT_PREFIX
from ..domains.env_codec import parse_env_content
from ..domains.errors import EnvhubError, SecretNameError, SecretNotFoundError
from ..domains.models import PullResult, PushResult, SecretListItem
from ..domains.payload import SecretPayload, parse_timestamp

logger = logging.getLogger(__name__)


class SecretProvider(Protocol):
    """The capability contract every backend implements."""

    name: str
    label: str

    def push(self, secret_name: str, content: str, message: Optional[str] = None,
             force: bool = False) -> PushResult:
        """Write content as the next version, creating the secret if needed."""
        ...

    def pull(self, secret_name: str) -> PullResult:
        """Read the latest content and version; raises SecretNotFoundError."""
        ...

    def cat(self, secret_name: str) -> str:
        """Read the latest content only."""
        ...

    def list(self) -> List[SecretListItem]:
        """Enumerate every secret under the namespace prefix."""
        ...

    def delete(self, secret_name: str, force: bool = False) -> None:
        """Remove the secret; force skips any recovery window."""
        ...

    def grant(self, secret_name: str, user_identifier: str) -> None:
        ...

    def revoke(self, secret_name: str, user_identifier: str) -> None:
        ...

    def get_version(self, secret_name: str) -> int:
        """Current remote version, 0 when the secret does not exist."""
        ...


class SecretNamespace:
    """Maps logical secret names to prefixed backend names.

    Args:
        prefix: String prepended to every logical name
        max_length: Longest full name the backend accepts
        pattern: Regex the full name must match entirely
        allowed: Human description of the allowed characters
        backend: Backend label used in error messages
    """

    def __init__(self, prefix: str, max_length: int, pattern: str, allowed: str, backend: str):
        self.prefix = DEFAULT_PREFIX if prefix is None else prefix
        self.max_length = max_length
        self.pattern = re.compile(pattern)
        self.allowed = allowed
        self.backend = backend

    def full_name(self, secret_name: str) -> str:
        """Prefixed name, validated before any network call."""
        if not secret_name:
            raise SecretNameError("Secret name cannot be empty.")

        full_name = f"{self.prefix}{secret_name}"
        if len(full_name) > self.max_length:
            raise SecretNameError(
                f"{self.backend} secret name is too long ({len(full_name)}). "
                f"Maximum length is {self.max_length}, including the prefix '{self.prefix}'."
            )
        if not self.pattern.fullmatch(full_name):
            raise SecretNameError(
                f"Invalid secret name '{full_name}'. {self.backend} allows only {self.allowed}."
            )
        return full_name

    def owns(self, full_name: Optional[str]) -> bool:
        return bool(full_name) and full_name.startswith(self.prefix)

    def strip(self, full_name: str) -> str:
        if self.owns(full_name):
            return full_name[len(self.prefix):]
        return full_name


def build_list_item(secret_name: str, updated_at: Optional[datetime],
                    read_payload: Callable[[str], SecretPayload]) -> SecretListItem:
    """
    Describe one listed secret, reading its payload on a best-effort basis.

    A payload that cannot be read (foreign format, access denied, deleted
    meanwhile) still yields an item, with zero keys and no message.
    When updated_at is None the payload's own timestamp is used.
    """
    secrets_count = 0
    last_message = None

    try:
        payload = read_payload(secret_name)
    except EnvhubError as e:
        logger.debug(f"Could not read '{secret_name}' while listing: {e}")
    else:
        secrets_count = len(parse_env_content(payload.content))
        last_message = payload.metadata.message
        if updated_at is None:
            updated_at = parse_timestamp(payload.metadata.updated_at)

    return SecretListItem(
        name=secret_name,
        secrets_count=secrets_count,
        updated_at=updated_at,
        last_message=last_message,
    )


def version_or_zero(secret_name: str, read_payload: Callable[[str], SecretPayload]) -> int:
    """Version of the stored payload, 0 when the secret does not exist."""
    try:
        return read_payload(secret_name).version
    except SecretNotFoundError:
        return 0


def sort_items(items: List[SecretListItem]) -> List[SecretListItem]:
    return sorted(items, key=lambda item: item.name)
