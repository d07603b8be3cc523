"""Configuration loader for envhub projects."""
import json
import os
import logging
from pathlib import Path
from typing import Dict, Any, List, Optional, Union
from urllib.parse import urlparse

import yaml

from .errors import ConfigError

logger = logging.getLogger(__name__)

# Search order inside each directory, nearest directory first
CONFIG_FILENAMES = [".envhub.yml", ".envhub.yaml", ".envhubrc.json", ".envhubrc"]
DEFAULT_CONFIG_FILENAME = CONFIG_FILENAMES[0]
CONFIG_ENV_VAR = "ENVHUB_CONFIG"

DEFAULT_PREFIX = "envhub-"
SUPPORTED_PROVIDERS = ("aws", "azure", "gcp")


def _get_config_path(start: Optional[Union[str, Path]] = None) -> str:
    """
    Locate the project config file.

    Priority order:
    1. ENVHUB_CONFIG environment variable
    2. First of CONFIG_FILENAMES found in the start directory or any parent

    Args:
        start: Directory to start searching from (defaults to the working directory)

    Returns:
        Absolute path to config file

    Raises:
        FileNotFoundError: If no config file exists in any location
    """
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        config_path = Path(env_path).expanduser()
        if config_path.exists():
            logger.info(f"Using config from {CONFIG_ENV_VAR}: {config_path}")
            return str(config_path.resolve())
        else:
            logger.warning(f"Config path from {CONFIG_ENV_VAR} doesn't exist: {config_path}")

    directory = Path(start or Path.cwd()).resolve()
    for candidate_dir in [directory, *directory.parents]:
        for filename in CONFIG_FILENAMES:
            config_path = candidate_dir / filename
            if config_path.is_file():
                logger.info(f"Using config: {config_path}")
                return str(config_path)

    raise FileNotFoundError(
        "No envhub configuration found. Set up your project using one of these methods:\n\n"
        "1. Run the setup command in your project root:\n"
        "   envhub init\n\n"
        f"2. Point to an existing config file:\n"
        f"   export {CONFIG_ENV_VAR}=/path/to/{DEFAULT_CONFIG_FILENAME}\n"
    )


def _is_https_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme == "https" and bool(parsed.netloc)


def validate_config(config: Dict[str, Any]) -> List[str]:
    """
    Validate the essential fields of a config document.

    Returns:
        List of error messages (empty if valid)
    """
    errors = []
    provider = config.get("provider")

    if not provider:
        errors.append("'provider' is required in configuration.")
    elif provider not in SUPPORTED_PROVIDERS:
        errors.append(f"Unknown provider '{provider}'. Supported: {', '.join(SUPPORTED_PROVIDERS)}")

    prefix = config.get("prefix")
    if prefix is not None and not isinstance(prefix, str):
        errors.append("'prefix' must be a string.")

    secrets = config.get("secrets")
    if secrets is not None and not isinstance(secrets, dict):
        errors.append("'secrets' must be a mapping of secret name to tracking record.")

    if provider == "aws":
        aws = config.get("aws")
        if not aws:
            errors.append("AWS configuration ('aws') is required when provider is 'aws'.")
        else:
            if not aws.get("profile"):
                errors.append("'aws.profile' is required.")
            if not aws.get("region"):
                errors.append("'aws.region' is required.")

    if provider == "azure":
        azure = config.get("azure")
        if not azure:
            errors.append("Azure configuration ('azure') is required when provider is 'azure'.")
        elif not azure.get("vaultUrl"):
            errors.append("'azure.vaultUrl' is required.")
        elif not _is_https_url(str(azure["vaultUrl"])):
            errors.append("'azure.vaultUrl' must be a valid HTTPS URL.")

    if provider == "gcp":
        gcp = config.get("gcp") or {}
        if not gcp.get("projectId") and not os.getenv("GCP_PROJECT"):
            errors.append("'gcp.projectId' is required (or set the GCP_PROJECT environment variable).")

    return errors


def _read_document(config_path: str) -> Dict[str, Any]:
    try:
        with open(config_path, 'r') as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse config at {config_path}: {e}")
    except OSError as e:
        raise ConfigError(f"Failed to read config file at {config_path}: {e}")

    if not config:
        raise ConfigError(f"Config file at {config_path} is empty")
    if not isinstance(config, dict):
        raise ConfigError(f"Config file at {config_path} must contain a mapping")
    return config


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load and validate configuration from a YAML or JSON file.

    Args:
        config_path: Explicit path; searched for when omitted

    Returns:
        Dict containing configuration with keys:
        - provider: selected backend ("aws", "azure" or "gcp")
        - prefix: namespace prefix for secret names
        - aws / azure / gcp: backend-specific settings
        - secrets: tracking records keyed by secret name

    Raises:
        FileNotFoundError: If no config file can be found
        ConfigError: If the config file is invalid
    """
    # Resolved on every call, never cached at module level
    config_path = config_path or _get_config_path()

    if not os.path.exists(config_path):
        raise ConfigError(
            f"Configuration file not found at: {config_path}\n"
            f"Run 'envhub init' to create it."
        )

    config = _read_document(config_path)
    config.setdefault("prefix", DEFAULT_PREFIX)
    if config.get("secrets") is None:
        config["secrets"] = {}

    errors = validate_config(config)
    if errors:
        raise ConfigError(f"Invalid configuration in {config_path}:\n  - " + "\n  - ".join(errors))

    logger.info(f"Configuration loaded successfully from {config_path}")
    logger.debug(f"Using provider: {config['provider']}, prefix: {config['prefix']}")

    return config


def save_config(config: Dict[str, Any], config_path: Union[str, Path]) -> None:
    """Write the config document, as JSON for ``.json`` paths and YAML otherwise."""
    config_path = Path(config_path)
    try:
        with open(config_path, 'w') as f:
            if config_path.suffix == ".json":
                json.dump(config, f, indent=2)
                f.write("\n")
            else:
                yaml.safe_dump(config, f, sort_keys=False, allow_unicode=True)
    except OSError as e:
        logger.error(f"Failed to save config to {config_path}: {e}")
        raise ConfigError(f"Failed to save config to {config_path}: {e}")
    logger.debug(f"Saved configuration to {config_path}")


def add_to_gitignore(directory: Union[str, Path], filename: str) -> bool:
    """
    Append filename to the directory's .gitignore unless already listed.

    Returns:
        True if the file was added, False if it was already ignored
    """
    gitignore = Path(directory) / ".gitignore"
    existing = gitignore.read_text() if gitignore.exists() else ""
    if filename in (line.strip() for line in existing.splitlines()):
        return False

    with open(gitignore, 'a') as f:
        if existing and not existing.endswith("\n"):
            f.write("\n")
        f.write(f"{filename}\n")
    logger.info(f"Added {filename} to {gitignore}")
    return True


class ConfigManager:
    """Loads, holds and persists one project config document."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self._config_path = str(config_path) if config_path else None
        self._config: Optional[Dict[str, Any]] = None

    @property
    def config(self) -> Dict[str, Any]:
        if self._config is None:
            raise ConfigError("Configuration not loaded. Call load() first or run 'envhub init'.")
        return self._config

    @property
    def config_path(self) -> str:
        return self._config_path or str(Path.cwd() / DEFAULT_CONFIG_FILENAME)

    def load(self) -> Dict[str, Any]:
        if self._config_path is None:
            self._config_path = _get_config_path()
        self._config = load_config(self._config_path)
        return self._config

    def save(self) -> None:
        save_config(self.config, self.config_path)
        self._config_path = self.config_path

    def create(self, config: Dict[str, Any], directory: Optional[Union[str, Path]] = None,
               filename: str = DEFAULT_CONFIG_FILENAME) -> str:
        """Validate and write a fresh config document, returning its path."""
        config.setdefault("prefix", DEFAULT_PREFIX)
        config.setdefault("secrets", {})

        errors = validate_config(config)
        if errors:
            raise ConfigError("Invalid configuration:\n  - " + "\n  - ".join(errors))

        config_path = Path(directory or Path.cwd()) / filename
        save_config(config, config_path)
        self._config = config
        self._config_path = str(config_path)
        return self._config_path
