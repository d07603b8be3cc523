"""Local header written at the top of pulled .env files."""

LEGACY_HEADER_PREFIX = "# envhub: secret="
MANAGED_LINE = "# 🔐 Managed by envhub-cli"
ENVIRONMENT_LINE_PREFIX = "# Environment: "


def strip_envhub_header(content: str) -> str:
    """Remove an envhub header (current or legacy form) from the start of content."""
    lines = content.split("\n")
    first = lines[0] if lines else ""
    second = lines[1] if len(lines) > 1 else ""

    if first == MANAGED_LINE and second.startswith(ENVIRONMENT_LINE_PREFIX):
        rest = lines[2:]
    elif first.startswith(LEGACY_HEADER_PREFIX):
        rest = lines[1:]
    else:
        return content

    if rest and rest[0] == "":
        rest = rest[1:]
    return "\n".join(rest)


def add_envhub_header(secret_name: str, content: str) -> str:
    """Add (or replace) the envhub header at the top of content."""
    body = strip_envhub_header(content).lstrip("\n")
    return f"{MANAGED_LINE}\n{ENVIRONMENT_LINE_PREFIX}{secret_name}\n\n{body}"
