"""Input validation for CLI arguments."""
import re
import sys
from pathlib import Path

# Backends apply their own stricter rules (e.g. Azure rejects underscores)
_SECRET_NAME_PATTERN = r'^[a-zA-Z0-9_-]+$'


def validate_secret_name(name: str) -> None:
    """
    Validate a logical secret name before touching any backend.

    Only the characters GCP Secret Manager accepts are let through here;
    each provider then enforces its own length and character limits.

    Args:
        name: Secret name to validate

    Raises:
        SystemExit with code 2 if validation fails
    """
    if not name:
        print("Error: Secret name cannot be empty", file=sys.stderr)
        print("\nSecret names must match: [a-zA-Z0-9_-]", file=sys.stderr)
        sys.exit(2)

    if not re.match(_SECRET_NAME_PATTERN, name):
        print(f"Error: Invalid secret name '{name}'", file=sys.stderr)
        print("\nAllowed characters: letters, numbers, underscores (_), hyphens (-)", file=sys.stderr)
        print("Not allowed: dots (.), spaces, special characters (@, $, !, etc.)", file=sys.stderr)
        print("\nExamples of valid names:", file=sys.stderr)
        print("  ✓ my-app", file=sys.stderr)
        print("  ✓ backend-staging", file=sys.stderr)
        print("\nExamples of invalid names:", file=sys.stderr)
        print("  ✗ my.app (contains dot)", file=sys.stderr)
        print("  ✗ my app (contains space)", file=sys.stderr)
        sys.exit(2)


def validate_env_file(path: str) -> Path:
    """
    Validate that a local .env file exists and is a regular file.

    Returns:
        Resolved path

    Raises:
        SystemExit with code 1 if the file is missing
    """
    resolved = Path(path).resolve()
    if not resolved.exists():
        print(f"Error: File not found: {resolved}", file=sys.stderr)
        sys.exit(1)
    if not resolved.is_file():
        print(f"Error: Path is not a file: {resolved}", file=sys.stderr)
        sys.exit(1)
    return resolved
