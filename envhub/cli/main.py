"""CLI entrypoint for envhub."""
import sys
import argparse
import logging
from pathlib import Path

from envhub.secrets.domains.config_loader import (
    CONFIG_FILENAMES,
    DEFAULT_PREFIX,
    ConfigManager,
    add_to_gitignore,
)
from envhub.secrets.domains.diff import format_changes, mask_value, summarize_changes
from envhub.secrets.domains.env_codec import parse_env_content
from envhub.secrets.domains.errors import EnvhubError
from envhub.secrets.domains.tracking import ConfigTrackingStore
from envhub.secrets.providers.factory import available_providers, create_provider
from envhub.secrets.workflows.secret_operations import (
    delete_secret,
    execute_push,
    plan_push,
    pull_secret,
    read_local_content,
)
from envhub.secrets.workflows.version_control import VersionControl

from .validators import validate_env_file, validate_secret_name

VERSION = "0.1.0"

# Configure logging to stderr
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


def _confirm(message: str, default: bool) -> bool:
    """Ask a yes/no question; non-interactive input falls back to the default."""
    suffix = "(Y/n)" if default else "(y/N)"
    try:
        response = input(f"{message} {suffix}: ").strip().lower()
    except EOFError:
        return default
    if not response:
        return default
    return response in ("y", "yes")


def _prompt(label: str, default: str = None) -> str:
    """Ask for a value, exiting with a usage error if none is given."""
    hint = f" [{default}]" if default else ""
    try:
        value = input(f"{label}{hint}: ").strip()
    except EOFError:
        value = ""
    value = value or default
    if not value:
        print(f"Error: {label} is required.", file=sys.stderr)
        sys.exit(2)
    return value


def _load_context():
    """Load project config and build the provider, tracking store and version control."""
    config_manager = ConfigManager()
    config = config_manager.load()
    provider = create_provider(config)
    tracking = ConfigTrackingStore(config_manager)
    return provider, tracking, VersionControl(tracking, provider)


def _print_table(headers, rows) -> None:
    widths = [
        max([len(str(h))] + [len(str(row[i])) for row in rows])
        for i, h in enumerate(headers)
    ]
    header = "  ".join(str(h).ljust(w) for h, w in zip(headers, widths))
    print(header)
    print("-" * len(header))
    for row in rows:
        print("  ".join(str(cell).ljust(w) for cell, w in zip(row, widths)).rstrip())


def _format_new_entries(content: str) -> str:
    entries = parse_env_content(content)
    if not entries:
        return "  (empty file)"
    lines = [f"  New secret with {len(entries)} entries:"]
    lines.extend(f"     + {key}={mask_value(value)}" for key, value in entries.items())
    return "\n".join(lines)


def cmd_version(args):
    """Show version information."""
    print(f"envhub {VERSION}")


def cmd_init(args):
    """Create the project config file (prompts for anything not given as a flag)."""
    directory = Path.cwd()
    existing = [name for name in CONFIG_FILENAMES if (directory / name).exists()]
    if existing and not args.force:
        print(f"Configuration file already exists: {directory / existing[0]}")
        if not _confirm("Overwrite it?", False):
            print("Init cancelled.")
            return

    provider_types = [p["type"] for p in available_providers()]
    provider = args.provider
    if not provider:
        print("Available providers:")
        for p in available_providers():
            print(f"  {p['type']:<6} {p['label']}")
        provider = _prompt("Provider", provider_types[0])
    if provider not in provider_types:
        print(f"Error: Unknown provider '{provider}'. Supported: {', '.join(provider_types)}", file=sys.stderr)
        sys.exit(2)

    config = {"provider": provider, "prefix": args.prefix or DEFAULT_PREFIX}
    if provider == "aws":
        config["aws"] = {
            "profile": args.profile or _prompt("AWS profile", "default"),
            "region": args.region or _prompt("AWS region"),
        }
    elif provider == "azure":
        config["azure"] = {"vaultUrl": args.vault_url or _prompt("Azure Key Vault URL")}
    elif provider == "gcp":
        config["gcp"] = {"projectId": args.project_id or _prompt("GCP project ID")}
    config["secrets"] = {}

    config_path = ConfigManager().create(config, directory)
    print(f"Configuration written to: {config_path}")
    if add_to_gitignore(directory, Path(config_path).name):
        print(f"Added {Path(config_path).name} to .gitignore")


def cmd_push(args):
    """Push a local .env file to the configured provider."""
    validate_secret_name(args.name)
    path = validate_env_file(args.file)
    provider, _tracking, version_control = _load_context()

    content = read_local_content(path)
    plan = plan_push(provider, version_control, args.name, content, force=args.force)
    force = args.force

    if plan.has_conflict:
        print(f"Warning: {plan.check.reason}", file=sys.stderr)
        if not _confirm("Do you want to force push anyway?", False):
            print("Push cancelled. Run 'envhub pull' first.")
            return
        force = True

    if plan.is_new:
        print(_format_new_entries(content))
        if not args.force and not _confirm(f"Create new secret '{args.name}'?", True):
            print("Push cancelled.")
            return
    elif not plan.changes and not args.force:
        print("No changes detected. Remote is already up to date.")
        return
    elif plan.changes:
        print("Changes to push:")
        print(format_changes(plan.changes))
        if not args.force and not _confirm("Push these changes?", True):
            print("Push cancelled.")
            return

    result = execute_push(provider, version_control, args.name, content, args.file,
                          message=args.message, force=force)
    print(f"Pushed '{result.name}' (v{result.version}) to {provider.label}.")
    if plan.changes:
        print(f"  Changes: {summarize_changes(plan.changes)}")
    if args.message:
        print(f"  Message: {args.message}")


def cmd_pull(args):
    """Pull the latest version of a secret into a local file."""
    validate_secret_name(args.name)
    provider, _tracking, version_control = _load_context()

    result, key_count = pull_secret(provider, version_control, args.name, args.file,
                                    with_header=not args.no_header)
    print(f"Pulled '{result.name}' (v{result.version}) -> {args.file} ({key_count} keys)")


def cmd_cat(args):
    """Print the contents of a secret without writing to disk."""
    validate_secret_name(args.name)
    provider, _tracking, _version_control = _load_context()

    entries = parse_env_content(provider.cat(args.name))
    print(f"{args.name} ({len(entries)} keys)")
    if not entries:
        print("  (empty)")
        return

    width = max(len(key) for key in entries)
    for key, value in entries.items():
        print(f"  {key.ljust(width)}  =  {value}")


def cmd_list(args):
    """List all secrets managed by envhub for the configured provider."""
    provider, _tracking, _version_control = _load_context()
    secrets = provider.list()

    if not secrets:
        print("No secrets found. Push your first secret with 'envhub push <name> <file>'.")
        return

    rows = [
        (
            item.name,
            item.secrets_count,
            item.updated_at.strftime("%Y-%m-%d %H:%M") if item.updated_at else "-",
            item.last_message or "-",
        )
        for item in secrets
    ]
    _print_table(("Name", "Secrets", "Updated", "Message"), rows)
    print(f"\n{len(secrets)} secret(s) found.")


def cmd_delete(args):
    """Delete a secret from the provider and stop tracking it."""
    validate_secret_name(args.name)
    provider, tracking, _version_control = _load_context()

    if not args.force and not _confirm(
            f"Are you sure you want to delete '{args.name}'? This action cannot be undone.", False):
        print("Deletion cancelled.")
        return

    delete_secret(provider, tracking, args.name, force=args.force)
    print(f"Deleted '{args.name}'.")
    if not args.force and provider.name == "aws":
        print("  Note: The secret is scheduled for deletion. Use --force for immediate deletion.")


def cmd_grant(args):
    """Grant another user read access to a secret."""
    validate_secret_name(args.name)
    provider, _tracking, _version_control = _load_context()
    provider.grant(args.name, args.user)
    print(f"Granted '{args.user}' access to '{args.name}'.")


def cmd_revoke(args):
    """Revoke a user's access to a secret."""
    validate_secret_name(args.name)
    provider, _tracking, _version_control = _load_context()
    provider.revoke(args.name, args.user)
    print(f"Revoked '{args.user}' access to '{args.name}'.")


def cmd_status(args):
    """Compare locally tracked versions with the remote ones."""
    provider, tracking, _version_control = _load_context()
    names = tracking.names()

    if not names:
        print("No tracked secrets. Push or pull a secret first.")
        return

    rows = []
    for name in names:
        record = tracking.get(name)
        try:
            remote = provider.get_version(name)
        except EnvhubError as e:
            logger.debug(f"Status check failed for '{name}': {e}")
            rows.append((name, record.file, record.version, "-", f"error: {e}"))
            continue
        if remote == 0:
            state = "missing remotely"
        elif record.version < remote:
            state = "behind"
        else:
            state = "up to date"
        rows.append((name, record.file, record.version, remote, state))
    _print_table(("Name", "File", "Local", "Remote", "Status"), rows)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="envhub",
        description="Securely share .env files between developers using cloud secret managers",
        epilog="""
Exit codes:
  0 - Success
  1 - Runtime error (authentication, network, secret not found, etc.)
  2 - Usage error (invalid arguments, invalid secret name format, etc.)

Environment variables:
  ENVHUB_CONFIG - Path to the project config file (overrides the search)
  GCP_PROJECT   - GCP project ID (overrides the config file)

Configuration:
  Searched upward from the working directory: .envhub.yml, .envhub.yaml,
  .envhubrc.json, .envhubrc. Create one with 'envhub init'.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Show debug logging on stderr"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "version",
        help="Show version information",
        description="Display the current version of envhub"
    )

    init_parser = subparsers.add_parser(
        "init",
        help="Set up envhub for this project",
        description="""
Create the project config file in the current directory and add it to
.gitignore. Values not passed as flags are asked for interactively.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    init_parser.add_argument("--provider", choices=[p["type"] for p in available_providers()],
                             help="Secret backend to use")
    init_parser.add_argument("--prefix", help=f"Namespace prefix for secret names (default: {DEFAULT_PREFIX})")
    init_parser.add_argument("--profile", help="AWS profile name")
    init_parser.add_argument("--region", help="AWS region")
    init_parser.add_argument("--vault-url", help="Azure Key Vault URL")
    init_parser.add_argument("--project-id", help="GCP project ID")
    init_parser.add_argument("-f", "--force", action="store_true", help="Overwrite an existing config file")

    push_parser = subparsers.add_parser(
        "push",
        help="Push a local .env file",
        description="""
Push a local .env file as the next version of a secret.

Before writing, the locally tracked version is compared with the remote one.
If someone else pushed in the meantime you are asked whether to overwrite.
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    push_parser.add_argument("name", help="Name for the secret")
    push_parser.add_argument("file", help="Path to the .env file")
    push_parser.add_argument("-m", "--message", help="A message describing this version")
    push_parser.add_argument("-f", "--force", action="store_true",
                             help="Bypass version conflict checking and confirmations")

    pull_parser = subparsers.add_parser("pull", help="Pull a secret into a local .env file")
    pull_parser.add_argument("name", help="Name of the secret to pull")
    pull_parser.add_argument("file", help="Path to write the .env file to")
    pull_parser.add_argument("--no-header", action="store_true",
                             help="Write the content without the envhub header")

    cat_parser = subparsers.add_parser("cat", help="Display the contents of a secret")
    cat_parser.add_argument("name", help="Name of the secret to display")

    subparsers.add_parser("list", aliases=["ls"], help="List all secrets managed by envhub")

    delete_parser = subparsers.add_parser("delete", aliases=["rm"], help="Delete a secret")
    delete_parser.add_argument("name", help="Name of the secret to delete")
    delete_parser.add_argument("-f", "--force", action="store_true",
                               help="Delete immediately without recovery window or confirmation")

    grant_parser = subparsers.add_parser("grant", help="Grant another user access to a secret")
    grant_parser.add_argument("name", help="Name of the secret")
    grant_parser.add_argument("user", help="User identifier (IAM username/ARN on AWS, e-mail or member on GCP)")

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a user's access to a secret")
    revoke_parser.add_argument("name", help="Name of the secret")
    revoke_parser.add_argument("user", help="User identifier (IAM username/ARN on AWS, e-mail or member on GCP)")

    subparsers.add_parser("status", help="Compare tracked versions with the remote ones")

    return parser


COMMANDS = {
    "version": cmd_version,
    "init": cmd_init,
    "push": cmd_push,
    "pull": cmd_pull,
    "cat": cmd_cat,
    "list": cmd_list,
    "ls": cmd_list,
    "delete": cmd_delete,
    "rm": cmd_delete,
    "grant": cmd_grant,
    "revoke": cmd_revoke,
    "status": cmd_status,
}


def main(argv=None):
    """Main CLI entrypoint.

    Exit codes:
        0 - Success
        1 - Runtime errors (authentication, network, secret not found, etc.)
        2 - Usage errors (invalid arguments, invalid secret name format, etc.)
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # If no command provided, show help and exit with usage error code
    if not args.command:
        parser.print_help()
        sys.exit(2)

    try:
        COMMANDS[args.command](args)
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
