"""Tests for the discovery session lifecycle."""

from __future__ import annotations

import pytest
from conftest import make_rule

from depscout.discovery import DiscoverySession, SessionStatus
from depscout.exceptions import SessionStateError


class TestDiscoverySession:
    """Tests for DiscoverySession."""

    def test_new_session_is_running(self) -> None:
        """A fresh session is running with empty results."""
        session = DiscoverySession(project_path="/project")
        assert session.status == SessionStatus.RUNNING
        assert session.completed_at is None
        assert session.progress.current == "Initializing..."
        assert session.results.discovered_rules == []
        assert session.is_terminal is False

    def test_ids_are_unique(self) -> None:
        """Each session gets its own id."""
        assert DiscoverySession(project_path="/p").id != DiscoverySession(project_path="/p").id

    def test_complete(self) -> None:
        """complete() sets status, timestamp and progress text."""
        session = DiscoverySession(project_path="/project")
        session.complete()
        assert session.status == SessionStatus.COMPLETED
        assert session.completed_at is not None
        assert session.progress.current == "Completed"

    def test_fail_keeps_partial_results(self) -> None:
        """fail() records the error and keeps what was gathered."""
        session = DiscoverySession(project_path="/project")
        session.results.discovered_rules.append(make_rule())
        session.fail("boom")
        assert session.status == SessionStatus.FAILED
        assert session.errors == ["boom"]
        assert len(session.results.discovered_rules) == 1

    @pytest.mark.parametrize("first", ["complete", "fail"])
    def test_terminal_state_is_final(self, first: str) -> None:
        """No transition is allowed out of a terminal state."""
        session = DiscoverySession(project_path="/project")
        if first == "complete":
            session.complete()
        else:
            session.fail("x")
        with pytest.raises(SessionStateError):
            session.complete()
        with pytest.raises(SessionStateError):
            session.fail("again")

    def test_snapshot_is_independent(self) -> None:
        """Mutating a snapshot never touches the session."""
        session = DiscoverySession(project_path="/project")
        snapshot = session.snapshot()
        snapshot.errors.append("tampered")
        snapshot.progress.rules = 99
        assert session.errors == []
        assert session.progress.rules == 0

    def test_serializes_to_json(self) -> None:
        """Sessions serialize with their status as a plain string."""
        data = DiscoverySession(project_path="/project").model_dump(mode="json")
        assert data["status"] == "running"
        assert data["results"]["converted_rules"] == []
