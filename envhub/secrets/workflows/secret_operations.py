"""Workflows that tie local files, a provider and version tracking together."""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..domains.diff import EnvChange, diff_env_contents
from ..domains.env_codec import parse_env_content, read_env_file_raw, write_env_file_raw
from ..domains.errors import SecretNotFoundError
from ..domains.header import add_envhub_header, strip_envhub_header
from ..domains.models import PullResult, PushResult, VersionCheckResult
from ..domains.tracking import TrackingStore
from ..providers.base import SecretProvider
from .version_control import VersionControl

logger = logging.getLogger(__name__)


@dataclass
class PushPlan:
    """What a push would do, computed before anything is written."""
    content: str
    check: Optional[VersionCheckResult]
    is_new: bool
    changes: List[EnvChange] = field(default_factory=list)

    @property
    def has_conflict(self) -> bool:
        return self.check is not None and not self.check.can_push

    @property
    def key_count(self) -> int:
        return len(parse_env_content(self.content))


def read_local_content(path: Union[str, Path]) -> str:
    """Read a local .env file with any envhub header removed."""
    return strip_envhub_header(read_env_file_raw(path))


def plan_push(provider: SecretProvider, version_control: VersionControl, secret_name: str,
              content: str, force: bool = False) -> PushPlan:
    """
    Compute the version check and the change set for a push.

    Args:
        provider: Backend to compare against
        version_control: Conflict checker for this provider
        secret_name: Logical secret name
        content: Local content to be pushed (header already stripped)
        force: Skip the version comparison

    Returns:
        PushPlan; ``check`` is None when forced
    """
    check = None if force else version_control.check_before_push(secret_name)

    try:
        remote_content = provider.cat(secret_name)
    except SecretNotFoundError:
        logger.debug(f"'{secret_name}' does not exist yet, will be created")
        return PushPlan(content=content, check=check, is_new=True)

    changes = diff_env_contents(remote_content, content)
    return PushPlan(content=content, check=check, is_new=False, changes=changes)


def execute_push(provider: SecretProvider, version_control: VersionControl, secret_name: str,
                 content: str, file: str, message: Optional[str] = None, force: bool = False) -> PushResult:
    """Push content and record the resulting version, also when forced."""
    result = provider.push(secret_name, content, message=message, force=force)
    version_control.record_push(secret_name, result.version, file)
    return result


def pull_secret(provider: SecretProvider, version_control: VersionControl, secret_name: str,
                file: str, with_header: bool = True) -> Tuple[PullResult, int]:
    """
    Pull a secret into a local file and record the pulled version.

    Returns:
        Tuple of the pull result and the number of keys written
    """
    result = provider.pull(secret_name)
    content = add_envhub_header(secret_name, result.content) if with_header else result.content

    write_env_file_raw(file, content)
    version_control.record_pull(secret_name, result.version, file)

    key_count = len(parse_env_content(result.content))
    logger.info(f"Pulled '{secret_name}' v{result.version} into {file} ({key_count} keys)")
    return result, key_count


def delete_secret(provider: SecretProvider, tracking: TrackingStore, secret_name: str,
                  force: bool = False) -> None:
    """Delete a secret remotely, then stop tracking it locally."""
    provider.delete(secret_name, force=force)
    tracking.remove(secret_name)
