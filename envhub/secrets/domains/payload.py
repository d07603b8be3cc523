"""Envelope persisted by every provider and the version-increment rule.

Wire format (shared by all backends, must stay bit-compatible):

    {"content": "<.env body>",
     "metadata": {"version": 3, "message": "...",
                  "updatedAt": "2026-01-01T12:00:00.000Z",
                  "managedBy": "envhub-cli"}}

``message`` is omitted when the writer supplied none.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .errors import MalformedPayloadError

logger = logging.getLogger(__name__)

MANAGED_BY = "envhub-cli"

_TOP_LEVEL_KEYS = {"content", "metadata"}


def format_timestamp(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and ``Z`` suffix."""
    moment = moment.astimezone(timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Inverse of format_timestamp; returns None for missing or unparseable values."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def utc_now() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def utc_now_precise() -> str:
    """Current UTC time at microsecond precision, for local-only timestamps."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


@dataclass
class SecretMetadata:
    """Metadata stored alongside the secret content."""
    version: int
    updated_at: str
    managed_by: str = MANAGED_BY
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"version": self.version}
        if self.message is not None:
            data["message"] = self.message
        data["updatedAt"] = self.updated_at
        data["managedBy"] = self.managed_by
        return data


@dataclass
class SecretPayload:
    """The complete payload stored in the remote secret."""
    content: str
    metadata: SecretMetadata

    @property
    def version(self) -> int:
        return self.metadata.version

    def to_dict(self) -> Dict[str, Any]:
        return {"content": self.content, "metadata": self.metadata.to_dict()}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


def build_payload(content: str, current_version: int, message: Optional[str] = None,
                  now: Optional[datetime] = None) -> SecretPayload:
    """
    Build the envelope for the next write of a secret.

    Args:
        content: .env body to store
        current_version: Version currently stored remotely, 0 if the secret does not exist
        message: Optional annotation from the writer
        now: Write time (defaults to the current UTC time)

    Returns:
        Payload carrying ``current_version + 1``
    """
    if current_version < 0:
        raise ValueError(f"current_version must not be negative, got {current_version}")

    updated_at = format_timestamp(now) if now else utc_now()
    return SecretPayload(
        content=content,
        metadata=SecretMetadata(
            version=current_version + 1,
            updated_at=updated_at,
            message=message,
        ),
    )


def parse_payload(secret_name: str, raw: Optional[str]) -> SecretPayload:
    """
    Deserialize and validate an envelope read from a backend.

    Args:
        secret_name: Logical secret name, used in error messages
        raw: Raw string value stored in the backend

    Returns:
        Validated SecretPayload

    Raises:
        MalformedPayloadError: If the value is empty, not JSON, or not an envhub envelope
    """
    if not raw:
        raise MalformedPayloadError(secret_name, f"Secret '{secret_name}' has no string content.")

    try:
        data = json.loads(raw)
    except ValueError:
        raise MalformedPayloadError(
            secret_name,
            f"Secret '{secret_name}' is not in envhub format. It may have been created outside envhub.",
        )

    if not isinstance(data, dict) or "content" not in data or "metadata" not in data:
        raise MalformedPayloadError(
            secret_name,
            f"Secret '{secret_name}' is missing envhub metadata. It may have been created outside envhub.",
        )

    unexpected = set(data) - _TOP_LEVEL_KEYS
    if unexpected:
        raise MalformedPayloadError(
            secret_name,
            f"Secret '{secret_name}' has unexpected fields {sorted(unexpected)}; not an envhub payload.",
        )

    content = data["content"]
    metadata = data["metadata"]
    version = metadata.get("version") if isinstance(metadata, dict) else None

    # bool is a subclass of int, reject it explicitly
    if not isinstance(content, str) or not isinstance(version, int) or isinstance(version, bool):
        raise MalformedPayloadError(secret_name, f"Secret '{secret_name}' has an invalid envhub payload format.")

    # Stored versions start at 1
    if version < 1:
        raise MalformedPayloadError(
            secret_name, f"Secret '{secret_name}' has an invalid version {version}; expected 1 or higher."
        )

    message = metadata.get("message")
    if message is not None and not isinstance(message, str):
        raise MalformedPayloadError(secret_name, f"Secret '{secret_name}' has a non-string message.")

    return SecretPayload(
        content=content,
        metadata=SecretMetadata(
            version=version,
            updated_at=metadata.get("updatedAt", ""),
            managed_by=metadata.get("managedBy", ""),
            message=message,
        ),
    )
