"""Parsing and serialization of .env file content."""
import logging
import re
from pathlib import Path
from typing import Dict, Mapping, Union

logger = logging.getLogger(__name__)

# Values matching this pattern are written inside double quotes
_NEEDS_QUOTING = re.compile(r"[\s#\"'\\]")


def _unquote(value: str) -> str:
    """Strip exactly one matching pair of outer single or double quotes."""
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def parse_env_content(content: str) -> Dict[str, str]:
    """
    Parse .env text into a key -> value mapping.

    Blank lines, comment lines and lines without ``=`` are skipped. The line
    is split on the first ``=`` only, so values may contain ``=``. Entries
    with an empty key are dropped and the last occurrence of a duplicate key
    wins.

    Args:
        content: Raw .env file body

    Returns:
        Dictionary of parsed entries in file order
    """
    result: Dict[str, str] = {}

    for line in content.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith("#"):
            continue

        key, sep, value = trimmed.partition("=")
        if not sep:
            continue

        key = key.strip()
        if not key:
            continue

        result[key] = _unquote(value.strip())

    return result


def serialize_env(entries: Mapping[str, str]) -> str:
    """Serialize a mapping back to .env text with a trailing newline."""
    lines = []
    for key, value in entries.items():
        if value == "" or _NEEDS_QUOTING.search(value):
            value = f'"{value}"'
        lines.append(f"{key}={value}")
    return "\n".join(lines) + "\n"


def read_env_file_raw(path: Union[str, Path]) -> str:
    """Read the raw content of an .env file."""
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


def write_env_file_raw(path: Union[str, Path], content: str) -> None:
    """Write raw content to an .env file, replacing it."""
    with open(path, "w", encoding="utf-8") as f:
        f.write(content)
    logger.debug(f"Wrote {len(content)} characters to {path}")


def read_env_file(path: Union[str, Path]) -> Dict[str, str]:
    """Read and parse an .env file from disk."""
    return parse_env_content(read_env_file_raw(path))


def write_env_file(path: Union[str, Path], entries: Mapping[str, str]) -> None:
    """Serialize entries and write them to an .env file."""
    write_env_file_raw(path, serialize_env(entries))
