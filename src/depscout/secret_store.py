"""Credential lookup for model providers and source-control hosts.

Project-scoped secrets in ``{project}/.vibe/secrets.json`` take precedence over
process-wide settings. The file is a flat JSON object keyed by provider name:

    {"openai": "sk-...", "github": "ghp_..."}

Secrets are plain text here; storing them encrypted is a concern of the tool
that writes the file.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from pydantic import SecretStr

from depscout.config import DiscoverySettings, get_settings

logger = logging.getLogger(__name__)

PROJECT_SECRETS_FILE = Path(".vibe") / "secrets.json"


class SecretStore:
    """Looks up credentials by provider name.

    Example:
        >>> store = SecretStore()
        >>> store.get_secret("openai", project_path="/path/to/project")
        'sk-...'
    """

    def __init__(self, settings: DiscoverySettings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_secret(self, provider: str, project_path: str | Path | None = None) -> str | None:
        """Return the credential for ``provider``, or None when absent.

        Args:
            provider: Provider name (openai, anthropic, ollama, github, ...).
            project_path: Optional project root whose secrets file is checked first.
        """
        if project_path is not None:
            secret = self._read_project_secret(Path(project_path), provider)
            if secret:
                return secret
        return self._read_global_secret(provider)

    def has_secret(self, provider: str, project_path: str | Path | None = None) -> bool:
        return self.get_secret(provider, project_path) is not None

    def _read_project_secret(self, project_path: Path, provider: str) -> str | None:
        secrets_file = project_path / PROJECT_SECRETS_FILE
        if not secrets_file.is_file():
            return None
        try:
            data = json.loads(secrets_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Ignoring unreadable secrets file %s: %s", secrets_file, e)
            return None
        value = data.get(provider) if isinstance(data, dict) else None
        return value if isinstance(value, str) and value else None

    def _read_global_secret(self, provider: str) -> str | None:
        settings = self._settings
        value: SecretStr | str | None
        match provider:
            case "openai":
                value = settings.openai_api_key
            case "anthropic":
                value = settings.anthropic_api_key
            case "github":
                value = settings.github_token
            case "ollama":
                value = settings.ollama_host
            case _:
                value = None
        if isinstance(value, SecretStr):
            return value.get_secret_value() or None
        return value or None
