"""Selects the provider implementation configured for a project."""
import logging
from typing import Any, Dict, List

from ..domains.config_loader import DEFAULT_PREFIX
from ..domains.errors import ConfigError
from .base import SecretProvider

logger = logging.getLogger(__name__)

PROVIDERS = [
    {"type": "aws", "label": "AWS Secrets Manager"},
    {"type": "azure", "label": "Azure Key Vault"},
    {"type": "gcp", "label": "GCP Secret Manager"},
]


def available_providers() -> List[Dict[str, str]]:
    """All provider types this build can create."""
    return [dict(p) for p in PROVIDERS]


def _section(config: Dict[str, Any], key: str, label: str) -> Dict[str, Any]:
    section = config.get(key)
    if not section:
        raise ConfigError(f"{label} configuration is missing. Run 'envhub init' first.")
    return section


def create_provider(config: Dict[str, Any]) -> SecretProvider:
    """
    Create a provider instance from a loaded config document.

    SDK modules are imported only for the selected backend.

    Raises:
        ConfigError: If the provider type is unknown or its section is missing
    """
    provider_type = config.get("provider")
    prefix = config.get("prefix", DEFAULT_PREFIX)
    logger.debug(f"Creating provider '{provider_type}' with prefix '{prefix}'")

    if provider_type == "aws":
        aws = _section(config, "aws", "AWS")
        from .aws_secrets import AWSSecretsProvider
        return AWSSecretsProvider(profile=aws["profile"], region=aws["region"], prefix=prefix)

    if provider_type == "azure":
        azure = _section(config, "azure", "Azure")
        from .azure_key_vault import AzureKeyVaultProvider
        return AzureKeyVaultProvider(vault_url=azure["vaultUrl"], prefix=prefix)

    if provider_type == "gcp":
        from .gcp_secret_manager import GCPSecretManagerProvider, resolve_project_id
        project_id = resolve_project_id((config.get("gcp") or {}).get("projectId"))
        return GCPSecretManagerProvider(project_id=project_id, prefix=prefix)

    supported = ", ".join(p["type"] for p in PROVIDERS)
    raise ConfigError(f"Unknown provider '{provider_type}'. Supported: {supported}")
