"""Discovery service: owns sessions and drives the five-phase pipeline.

Phases run strictly in order:

1. scan manifests
2. consolidate dependencies
3. discover rules per dependency (bounded concurrency)
4. prioritize, filter and convert rules
5. cache the session and per-package rules

A failure inside one dependency's discovery is recorded in the session's
errors and that dependency contributes no rules. Any other exception fails
the session; results gathered so far stay visible.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx

from depscout.config import DiscoveryConfig, DiscoverySettings, get_settings
from depscout.discovery import events
from depscout.discovery.cache import DiscoveryCache
from depscout.discovery.conversion import convert_rules, prioritize_rules
from depscout.discovery.events import EventBus, Listener
from depscout.discovery.orchestrator import DiscoveryOrchestrator
from depscout.discovery.probes import HomepageProbe, RepositoryProbe
from depscout.discovery.session import DiscoverySession
from depscout.inference.engine import InferenceEngine
from depscout.manifests import ManifestScanner, consolidate_dependencies
from depscout.models import DependencyRecord, DiscoveredRule, ManifestParseResult
from depscout.registry import RegistryResolver
from depscout.secret_store import SecretStore

logger = logging.getLogger(__name__)

Consolidator = Callable[[list[ManifestParseResult]], list[DependencyRecord]]


class DiscoveryService:
    """Entry point for autonomous dependency rule discovery.

    Every collaborator can be injected; anything left out is built from
    ``settings``. Each service instance keeps its own session registry.

    Example:
        >>> async with DiscoveryService() as service:
        ...     session_id = await service.start_discovery("/path/to/project")
        ...     session = await service.wait_for(session_id)
        >>> session.status
        <SessionStatus.COMPLETED: 'completed'>
    """

    def __init__(
        self,
        settings: DiscoverySettings | None = None,
        defaults: DiscoveryConfig | None = None,
        scanner: ManifestScanner | None = None,
        consolidate: Consolidator = consolidate_dependencies,
        resolver: RegistryResolver | None = None,
        orchestrator: DiscoveryOrchestrator | None = None,
        secret_store: SecretStore | None = None,
        http_client: httpx.AsyncClient | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        """Initialize the discovery service.

        Args:
            settings: Process settings. Loads from environment if not provided.
            defaults: Default per-session configuration.
            scanner: Manifest scanner.
            consolidate: Function merging manifest results into dependencies.
            resolver: Registry metadata resolver.
            orchestrator: Per-dependency discovery orchestrator.
            secret_store: Credential lookup.
            http_client: Shared HTTP client. One is created (and owned) if not provided.
            event_bus: Event registry for subscribers.
        """
        self._settings = settings or get_settings()
        self._defaults = defaults or DiscoveryConfig()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(
            timeout=self._settings.http_timeout, follow_redirects=True
        )
        self._secret_store = secret_store or SecretStore(self._settings)
        self._scanner = scanner or ManifestScanner()
        self._consolidate = consolidate
        self._resolver = resolver or RegistryResolver(self._settings, self._http)
        self._orchestrator = orchestrator or DiscoveryOrchestrator(
            RepositoryProbe(self._http, self._secret_store, self._settings),
            HomepageProbe(self._http, self._settings),
            InferenceEngine(self._http, self._secret_store, self._settings),
        )
        self._events = event_bus or EventBus()
        self._sessions: dict[str, DiscoverySession] = {}
        self._tasks: dict[str, asyncio.Task[None]] = {}

    async def __aenter__(self) -> DiscoveryService:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Wait for scheduled runs and close the owned HTTP client."""
        pending = [task for task in self._tasks.values() if not task.done()]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        if self._owns_http:
            await self._http.aclose()

    @property
    def defaults(self) -> DiscoveryConfig:
        return self._defaults

    # Public API

    async def start_discovery(
        self, project_path: str | Path, config_overrides: dict[str, Any] | None = None
    ) -> str:
        """Register a session and schedule its pipeline on the running loop.

        Args:
            project_path: Root of the project to analyze.
            config_overrides: Partial ``DiscoveryConfig`` values for this session.

        Returns:
            The new session id; the pipeline runs in the background.

        Raises:
            ConfigError: If an override is unknown or invalid.
        """
        session, config = self._create_session(project_path, config_overrides)
        task = asyncio.create_task(self._run(session, config), name=f"discovery-{session.id}")
        self._tasks[session.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(session.id, None))
        return session.id

    async def run_discovery(
        self, project_path: str | Path, config_overrides: dict[str, Any] | None = None
    ) -> DiscoverySession:
        """Run the full pipeline and return a snapshot of the finished session.

        Raises:
            ConfigError: If an override is unknown or invalid.
        """
        session, config = self._create_session(project_path, config_overrides)
        await self._run(session, config)
        return session.snapshot()

    async def wait_for(self, session_id: str) -> DiscoverySession | None:
        """Wait for a scheduled session to finish and return its snapshot."""
        task = self._tasks.get(session_id)
        if task is not None:
            await asyncio.shield(task)
        return self.get_session(session_id)

    def get_session(self, session_id: str) -> DiscoverySession | None:
        session = self._sessions.get(session_id)
        return session.snapshot() if session is not None else None

    def get_all_sessions(self) -> list[DiscoverySession]:
        return [session.snapshot() for session in self._sessions.values()]

    def subscribe(self, event_type: str, listener: Listener) -> Callable[[], None]:
        """Subscribe to a ``discovery:*`` event; returns an unsubscribe function."""
        return self._events.subscribe(event_type, listener)

    # Pipeline

    def _create_session(
        self, project_path: str | Path, config_overrides: dict[str, Any] | None
    ) -> tuple[DiscoverySession, DiscoveryConfig]:
        config = self._defaults.merged(config_overrides)
        session = DiscoverySession(project_path=str(Path(project_path).resolve()))
        self._sessions[session.id] = session
        logger.info("Created discovery session %s for %s", session.id, session.project_path)
        self._events.emit(
            events.STARTED, {"session_id": session.id, "project_path": session.project_path}
        )
        return session, config

    async def _run(self, session: DiscoverySession, config: DiscoveryConfig) -> None:
        try:
            await self._run_phases(session, config)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.exception("Discovery failed for session %s", session.id)
            session.fail(message)
            self._events.emit(events.ERROR, {"session_id": session.id, "error": message})

    async def _run_phases(self, session: DiscoverySession, config: DiscoveryConfig) -> None:
        logger.info("Starting discovery for %s", session.project_path)

        # Phase 1: manifests
        self._update_progress(session, "Discovering manifests...")
        manifest_results = await asyncio.to_thread(self._scanner.scan, session.project_path)
        session.results.manifest_results.extend(manifest_results)
        session.progress.manifests = len(manifest_results)
        self._events.emit(
            events.MANIFESTS, {"session_id": session.id, "manifests": len(manifest_results)}
        )

        # Phase 2: dependencies
        self._update_progress(session, "Analyzing dependencies...")
        dependencies = self._consolidate(manifest_results)
        session.results.dependencies.extend(dependencies)
        session.progress.dependencies = len(dependencies)
        self._events.emit(
            events.DEPENDENCIES, {"session_id": session.id, "dependencies": len(dependencies)}
        )

        # Phase 3: direct discovery and inference
        self._update_progress(session, "Enhanced discovery: checking repositories and inference...")
        discovered = await self._discover_all(session, dependencies, config)
        session.results.discovered_rules.extend(discovered)
        session.progress.rules = len(discovered)
        self._events.emit(
            events.RULES, {"session_id": session.id, "rules": len(discovered), "enhanced": True}
        )

        # Phase 4: prioritize and convert
        self._update_progress(session, "Converting and prioritizing rules...")
        converted = convert_rules(prioritize_rules(discovered), config)
        session.results.converted_rules.extend(converted)
        self._events.emit(
            events.CONVERTED, {"session_id": session.id, "converted_rules": len(converted)}
        )

        # Phase 5: cache
        if config.cache_enabled:
            self._update_progress(session, "Caching results...")
            cache = DiscoveryCache.for_project(
                session.project_path, self._settings.discovery_cache_dir
            )
            _, write_errors = await cache.write_package_rules(converted)
            session.errors.extend(write_errors)
            await cache.write_session(session)

        session.complete()
        logger.info(
            "Discovery completed for %s: %d dependencies, %d rules, %d errors",
            session.project_path,
            len(dependencies),
            len(converted),
            len(session.errors),
        )
        self._events.emit(
            events.COMPLETED, {"session_id": session.id, "results": session.snapshot().results}
        )

    async def _discover_all(
        self,
        session: DiscoverySession,
        dependencies: list[DependencyRecord],
        config: DiscoveryConfig,
    ) -> list[DiscoveredRule]:
        semaphore = asyncio.Semaphore(config.max_concurrency)

        async def discover_one(dependency: DependencyRecord) -> list[DiscoveredRule]:
            async with semaphore:
                self._update_progress(session, f"Discovering rules for {dependency.name}...")
                try:
                    metadata = await self._resolver.resolve(dependency)
                    result = await self._orchestrator.discover(
                        metadata,
                        session.project_path,
                        inference_enabled=config.inference_enabled,
                    )
                except Exception as e:
                    logger.warning("Discovery failed for %s: %s", dependency.name, e)
                    session.errors.append(f"Discovery failed for {dependency.name}: {e}")
                    return []
                return result.rules

        logger.info("Starting enhanced discovery for %d dependencies", len(dependencies))
        per_dependency = await asyncio.gather(*(discover_one(d) for d in dependencies))
        rules = [rule for rules in per_dependency for rule in rules]
        logger.info("Enhanced discovery completed: %d total rules", len(rules))
        return rules

    def _update_progress(self, session: DiscoverySession, current: str) -> None:
        session.progress.current = current
        self._events.emit(
            events.PROGRESS,
            {"session_id": session.id, "progress": session.progress.model_copy()},
        )
