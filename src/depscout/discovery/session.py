"""Discovery session: the observable record of one discovery run."""

from __future__ import annotations

import uuid
from enum import StrEnum

from pydantic import BaseModel, Field

from depscout.exceptions import SessionStateError
from depscout.models import (
    CanonicalRule,
    DependencyRecord,
    DiscoveredRule,
    ManifestParseResult,
    utc_now_iso,
)


class SessionStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class SessionProgress(BaseModel):
    manifests: int = 0
    dependencies: int = 0
    rules: int = 0
    current: str = "Initializing..."


class SessionResults(BaseModel):
    """Per-phase accumulators; each starts empty and is only ever filled."""

    manifest_results: list[ManifestParseResult] = Field(default_factory=list)
    dependencies: list[DependencyRecord] = Field(default_factory=list)
    discovered_rules: list[DiscoveredRule] = Field(default_factory=list)
    converted_rules: list[CanonicalRule] = Field(default_factory=list)


class DiscoverySession(BaseModel):
    """One end-to-end discovery run for a project.

    Status moves from running to exactly one of completed or failed; any
    further transition raises ``SessionStateError``. Results gathered before
    a failure stay visible.

    Only ``DiscoveryService`` mutates a session. Everyone else works with
    ``snapshot()`` copies.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_path: str
    status: SessionStatus = SessionStatus.RUNNING
    started_at: str = Field(default_factory=utc_now_iso)
    completed_at: str | None = None
    progress: SessionProgress = Field(default_factory=SessionProgress)
    results: SessionResults = Field(default_factory=SessionResults)
    errors: list[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status != SessionStatus.RUNNING

    def complete(self) -> None:
        self._finish(SessionStatus.COMPLETED)
        self.progress.current = "Completed"

    def fail(self, error: str) -> None:
        self._finish(SessionStatus.FAILED)
        self.errors.append(error)
        self.progress.current = "Failed"

    def _finish(self, status: SessionStatus) -> None:
        if self.is_terminal:
            raise SessionStateError(
                f"Session {self.id} is already {self.status}; cannot move to {status}"
            )
        self.status = status
        self.completed_at = utc_now_iso()

    def snapshot(self) -> DiscoverySession:
        """Deep copy for readers outside the service."""
        return self.model_copy(deep=True)
