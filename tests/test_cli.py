"""Tests for the depscout command-line interface."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from conftest import make_rule

from depscout import __version__
from depscout.cli import main, summarize
from depscout.discovery import DiscoverySession
from depscout.discovery.conversion import to_canonical_rule


def _mock_service_class(session: DiscoverySession) -> MagicMock:
    service = MagicMock()
    service.__aenter__.return_value = service
    service.run_discovery = AsyncMock(return_value=session)
    return MagicMock(return_value=service)


class TestSummarize:
    """Tests for summarize."""

    def test_summary_fields(self) -> None:
        """The summary counts results and lists packages with rules."""
        session = DiscoverySession(project_path="/repo")
        session.results.discovered_rules.extend([make_rule("A", package="react", version="18.2.0")])
        session.results.converted_rules.extend(
            [
                to_canonical_rule(make_rule("A", package="react", version="18.2.0")),
                to_canonical_rule(make_rule("B", package="react", version="18.2.0")),
                to_canonical_rule(make_rule("C", package="axios", version="1.6.0")),
            ]
        )
        session.errors.append("Discovery failed for x: boom")
        session.complete()

        summary = summarize(session)

        assert summary["status"] == "completed"
        assert summary["discovered_rules"] == 1
        assert summary["converted_rules"] == 3
        assert summary["packages"] == ["axios@1.6.0", "react@18.2.0"]
        assert summary["errors"] == ["Discovery failed for x: boom"]


class TestDiscoverCommand:
    """Tests for `depscout discover`."""

    def test_empty_project(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A project without manifests completes and prints a summary."""
        exit_code = main(["discover", str(tmp_path), "--no-cache", "--no-inference"])

        assert exit_code == 0
        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "completed"
        assert summary["dependencies"] == 0
        assert not (tmp_path / ".vibe").exists()

    def test_missing_project_fails(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """A path that is not a directory exits with 1 and a failed summary."""
        exit_code = main(["discover", str(tmp_path / "missing"), "--no-cache"])

        assert exit_code == 1
        summary = json.loads(capsys.readouterr().out)
        assert summary["status"] == "failed"
        assert summary["errors"]

    def test_invalid_config(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        """An out-of-range option exits with 2."""
        exit_code = main(["discover", str(tmp_path), "--max-concurrency", "0"])

        assert exit_code == 2
        assert "Invalid configuration" in capsys.readouterr().err

    def test_options_become_overrides(self, capsys: pytest.CaptureFixture[str]) -> None:
        """Flags map onto per-session config overrides; unset flags stay None."""
        session = DiscoverySession(project_path="/repo")
        session.complete()
        service_class = _mock_service_class(session)

        with patch("depscout.cli.DiscoveryService", service_class):
            exit_code = main(
                ["discover", "/repo", "--max-concurrency", "3", "--no-inference"]
            )

        assert exit_code == 0
        service = service_class.return_value
        service.run_discovery.assert_awaited_once_with(
            "/repo",
            {
                "max_concurrency": 3,
                "min_confidence": None,
                "inference_enabled": False,
                "cache_enabled": None,
            },
        )
        assert json.loads(capsys.readouterr().out)["session_id"] == session.id


class TestServeCommand:
    """Tests for `depscout serve`."""

    def test_serve_runs_uvicorn(self) -> None:
        """serve starts uvicorn with the given host and port."""
        with patch("depscout.cli.uvicorn.run") as run:
            exit_code = main(["serve", "--host", "0.0.0.0", "--port", "9000", "--reload"])

        assert exit_code == 0
        run.assert_called_once_with(
            "depscout.server.app:app", host="0.0.0.0", port=9000, reload=True
        )

    def test_serve_is_default(self) -> None:
        """No subcommand runs the server with defaults."""
        with patch("depscout.cli.uvicorn.run") as run:
            exit_code = main([])

        assert exit_code == 0
        run.assert_called_once_with(
            "depscout.server.app:app", host="127.0.0.1", port=8000, reload=False
        )

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        """--version prints the package version and exits."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert __version__ in capsys.readouterr().out
