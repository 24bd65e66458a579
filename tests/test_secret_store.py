"""Tests for credential lookup."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import SecretStr

from depscout.config import DiscoverySettings
from depscout.secret_store import SecretStore


def _write_secrets(project: Path, data: object) -> None:
    secrets_dir = project / ".vibe"
    secrets_dir.mkdir(parents=True, exist_ok=True)
    (secrets_dir / "secrets.json").write_text(json.dumps(data))


class TestSecretStore:
    """Tests for SecretStore."""

    def test_missing_everywhere_returns_none(self, settings: DiscoverySettings, tmp_path: Path) -> None:
        """No project file and no settings means no secret."""
        store = SecretStore(settings)
        assert store.get_secret("openai", tmp_path) is None
        assert store.has_secret("anthropic") is False

    def test_reads_global_settings(self, settings: DiscoverySettings) -> None:
        """Provider names map onto settings fields."""
        configured = settings.model_copy(
            update={
                "anthropic_api_key": SecretStr("sk-ant"),
                "github_token": SecretStr("ghp"),
                "ollama_host": "http://localhost:11434",
            }
        )
        store = SecretStore(configured)
        assert store.get_secret("anthropic") == "sk-ant"
        assert store.get_secret("github") == "ghp"
        assert store.get_secret("ollama") == "http://localhost:11434"
        assert store.get_secret("gitlab") is None

    def test_project_secret_takes_precedence(self, settings: DiscoverySettings, tmp_path: Path) -> None:
        """The project secrets file wins over settings."""
        _write_secrets(tmp_path, {"openai": "sk-project"})
        configured = settings.model_copy(update={"openai_api_key": SecretStr("sk-global")})
        store = SecretStore(configured)
        assert store.get_secret("openai", tmp_path) == "sk-project"
        assert store.get_secret("openai") == "sk-global"

    def test_project_file_falls_through_for_other_providers(
        self, settings: DiscoverySettings, tmp_path: Path
    ) -> None:
        """Providers missing from the project file use settings."""
        _write_secrets(tmp_path, {"openai": "sk-project"})
        configured = settings.model_copy(update={"github_token": SecretStr("ghp")})
        assert SecretStore(configured).get_secret("github", tmp_path) == "ghp"

    def test_unreadable_project_file_is_ignored(self, settings: DiscoverySettings, tmp_path: Path) -> None:
        """A corrupt secrets file behaves as if absent."""
        (tmp_path / ".vibe").mkdir()
        (tmp_path / ".vibe" / "secrets.json").write_text("{oops")
        assert SecretStore(settings).get_secret("openai", tmp_path) is None

    def test_non_string_values_are_ignored(self, settings: DiscoverySettings, tmp_path: Path) -> None:
        """Only non-empty strings count as credentials."""
        _write_secrets(tmp_path, {"openai": "", "anthropic": {"key": "x"}})
        store = SecretStore(settings)
        assert store.get_secret("openai", tmp_path) is None
        assert store.get_secret("anthropic", tmp_path) is None
