"""Optimistic version control for pushes.

There is no lock on the remote secret: two clients can both pass
``check_before_push`` and then both push, with the later write becoming
current. The backends expose no compare-and-swap for this workload, so the
check narrows the window without closing it.
"""
import logging

from ..domains.errors import SecretNotFoundError
from ..domains.models import VersionCheckResult
from ..domains.payload import utc_now_precise
from ..domains.tracking import TrackingRecord, TrackingStore, tracked_version
from ..providers.base import SecretProvider

logger = logging.getLogger(__name__)


class VersionControl:
    """
    Conflict detection and local version tracking.

    Workflow:
    - Before push: compare the locally tracked version with the remote one
    - After push: record the version returned by the provider
    - After pull: record the pulled version and the pull time
    """

    def __init__(self, tracking: TrackingStore, provider: SecretProvider):
        self.tracking = tracking
        self.provider = provider

    def check_before_push(self, secret_name: str) -> VersionCheckResult:
        """
        Decide whether pushing secret_name would overwrite unseen changes.

        Rules, in order:
        1. Remote lookup reports not-found: push allowed, remote version 0
        2. Remote version 0: push allowed
        3. Local version >= remote version: push allowed
        4. Otherwise: conflict, with a reason naming both versions

        Other remote failures propagate.
        """
        local_version = tracked_version(self.tracking, secret_name)

        try:
            remote_version = self.provider.get_version(secret_name)
        except SecretNotFoundError:
            logger.debug(f"'{secret_name}' not found remotely, nothing to conflict with")
            return VersionCheckResult(can_push=True, local_version=local_version, remote_version=0)

        if remote_version == 0:
            return VersionCheckResult(can_push=True, local_version=local_version, remote_version=0)

        # Local ahead of remote only after an inconsistent earlier state; still allowed
        if local_version >= remote_version:
            return VersionCheckResult(can_push=True, local_version=local_version, remote_version=remote_version)

        logger.debug(f"Conflict on '{secret_name}': local v{local_version} < remote v{remote_version}")
        return VersionCheckResult(
            can_push=False,
            local_version=local_version,
            remote_version=remote_version,
            reason=(
                f"Remote version ({remote_version}) is newer than your local version ({local_version}). "
                f"Run 'envhub pull' first to get the latest changes, or use --force to overwrite."
            ),
        )

    def record_push(self, secret_name: str, new_version: int, file: str) -> TrackingRecord:
        """Update local tracking after a successful push."""
        return self.tracking.upsert(secret_name, version=new_version, file=file)

    def record_pull(self, secret_name: str, version: int, file: str) -> TrackingRecord:
        """Update local tracking after a successful pull."""
        return self.tracking.upsert(secret_name, version=version, file=file, last_pulled=utc_now_precise())
