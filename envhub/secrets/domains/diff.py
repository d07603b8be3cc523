"""Key-level comparison of two .env contents."""
from dataclasses import dataclass
from enum import Enum
from typing import List, Mapping, Optional

from .env_codec import parse_env_content


class ChangeType(str, Enum):
    """Kinds of change between a baseline and a candidate."""
    ADDED = "added"
    REMOVED = "removed"
    CHANGED = "changed"


@dataclass
class EnvChange:
    """A single key that differs between two .env versions."""
    key: str
    type: ChangeType
    old_value: Optional[str] = None
    new_value: Optional[str] = None


def diff_env(baseline: Mapping[str, str], candidate: Mapping[str, str]) -> List[EnvChange]:
    """
    Compare two parsed mappings.

    Args:
        baseline: The mapping considered current (e.g. remote before a push)
        candidate: The mapping that would replace it

    Returns:
        Added and changed keys in candidate order, followed by removed keys
        in baseline order. Keys equal in both are not reported.
    """
    changes: List[EnvChange] = []

    for key, new_value in candidate.items():
        if key not in baseline:
            changes.append(EnvChange(key, ChangeType.ADDED, new_value=new_value))
        elif baseline[key] != new_value:
            changes.append(EnvChange(key, ChangeType.CHANGED, old_value=baseline[key], new_value=new_value))

    for key, old_value in baseline.items():
        if key not in candidate:
            changes.append(EnvChange(key, ChangeType.REMOVED, old_value=old_value))

    return changes


def diff_env_contents(baseline_content: str, candidate_content: str) -> List[EnvChange]:
    """Parse two raw .env texts and compare them."""
    return diff_env(parse_env_content(baseline_content), parse_env_content(candidate_content))


def mask_value(value: str) -> str:
    """Show the first 3 characters of a value and mask the rest."""
    if len(value) <= 3:
        return "***"
    return value[:3] + "***"


def _by_type(changes: List[EnvChange], change_type: ChangeType) -> List[EnvChange]:
    return [c for c in changes if c.type == change_type]


def format_changes(changes: List[EnvChange]) -> str:
    """Render changes grouped by type for terminal display."""
    if not changes:
        return "No changes detected."

    lines = []

    added = _by_type(changes, ChangeType.ADDED)
    if added:
        lines.append(f"  Added ({len(added)}):")
        lines.extend(f"     + {c.key}={mask_value(c.new_value or '')}" for c in added)

    removed = _by_type(changes, ChangeType.REMOVED)
    if removed:
        lines.append(f"  Removed ({len(removed)}):")
        lines.extend(f"     - {c.key}" for c in removed)

    changed = _by_type(changes, ChangeType.CHANGED)
    if changed:
        lines.append(f"  Changed ({len(changed)}):")
        lines.extend(f"     ~ {c.key}" for c in changed)

    return "\n".join(lines)


def summarize_changes(changes: List[EnvChange]) -> str:
    """One-line summary such as ``3 added, 1 removed, 12 changed``."""
    if not changes:
        return "no changes"

    parts = []
    for change_type in (ChangeType.ADDED, ChangeType.REMOVED, ChangeType.CHANGED):
        count = len(_by_type(changes, change_type))
        if count:
            parts.append(f"{count} {change_type.value}")
    return ", ".join(parts)
