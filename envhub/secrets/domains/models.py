"""Domain models for secret management."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class PushResult:
    """Outcome of a successful push."""
    version: int
    name: str


@dataclass
class PullResult:
    """Content and version read from the remote secret."""
    content: str
    version: int
    name: str


@dataclass
class SecretListItem:
    """One row of a provider listing, name without the namespace prefix."""
    name: str
    secrets_count: int
    updated_at: Optional[datetime]
    last_message: Optional[str]


@dataclass
class VersionCheckResult:
    """Verdict of the pre-push version comparison."""
    can_push: bool
    local_version: int
    remote_version: int
    reason: Optional[str] = None
