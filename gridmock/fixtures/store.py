"""
Fixture Store - Black Box Component

Holds fixture definitions and the ServerState they read and write.

Public Interface:
- register(fixture) -> Fixture
- seal_baseline() -> None
- resolve(method, path) -> (Fixture, path_params) | None
- lookup(method, path, params) -> FixtureResponse | None
- apply_mutation(method, path, body, params) -> FixtureResponse | None
- reset() -> int (new generation)
- set_scenario(route, scenario, scope) -> RouteOverride
- register_preset(name, mapping) / apply_preset(name) -> int

Registration rules:
- Fixtures are keyed by (method, pattern); re-registering a key replaces
  the definition but keeps the position of the first registration.
- Everything registered before seal_baseline() is the baseline. Later
  registrations form an overlay that reset() throws away.

All public operations run under one lock and never await, so a request
always sees a whole state: either before or after another request's
mutation or a reset, never in between.
"""

import logging
import threading
from typing import Any, Mapping, Optional

from gridmock.errors import MalformedRequestError, UnknownPresetError, UnknownRouteError
from gridmock.fixtures.matcher import Matcher, PathPattern, best_match, normalize_path
from gridmock.fixtures.models import (
    ERROR_SCOPE,
    SCOPES,
    Fixture,
    FixtureRequest,
    FixtureResponse,
    RouteOverride,
)
from gridmock.fixtures.state import ServerState

logger = logging.getLogger(__name__)

FixtureKey = tuple[str, str]

DEFAULT_PRESET = "default"


class FixtureStore:
    """
    Black Box: Fixture Store

    Owns the fixture catalog; ServerState is injected so that each server
    instance gets its own.
    """

    def __init__(self, state: Optional[ServerState] = None):
        self.state = state if state is not None else ServerState()
        self._baseline: dict[FixtureKey, Fixture] = {}
        self._overlay: dict[FixtureKey, Fixture] = {}
        self._patterns: dict[FixtureKey, PathPattern] = {}
        self._order: dict[FixtureKey, int] = {}
        self._next_order = 0
        self._baseline_next_order = 0
        self._sealed = False
        self._presets: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    @property
    def sealed(self) -> bool:
        return self._sealed

    @property
    def generation(self) -> int:
        return self.state.generation

    def register(self, fixture: Fixture) -> Fixture:
        """Add or replace a fixture; last registration for a key wins."""
        pattern = PathPattern.compile(fixture.pattern)
        key = fixture.key
        with self._lock:
            target = self._overlay if self._sealed else self._baseline
            if key in self._baseline or key in self._overlay:
                logger.debug(f"Replacing fixture {fixture.method} {fixture.pattern}")
            if key not in self._order:
                self._order[key] = self._next_order
                self._next_order += 1
            self._patterns[key] = pattern
            target[key] = fixture
        return fixture

    def register_all(self, fixtures) -> None:
        for fixture in fixtures:
            self.register(fixture)

    def seal_baseline(self) -> None:
        """Freeze the current registrations as the baseline reset restores."""
        with self._lock:
            self._sealed = True
            self._baseline_next_order = self._next_order
        logger.info(f"📌 Baseline sealed with {len(self._baseline)} fixtures")

    def _active(self) -> dict[FixtureKey, Fixture]:
        merged = dict(self._baseline)
        merged.update(self._overlay)
        return merged

    def fixtures(self) -> list[Fixture]:
        """Active fixtures in registration order."""
        with self._lock:
            active = self._active()
            return [active[k] for k in sorted(active, key=self._order.__getitem__)]

    # ------------------------------------------------------------------
    # Lookup and mutation
    # ------------------------------------------------------------------

    def resolve(
        self, method: str, path: str
    ) -> Optional[tuple[Fixture, dict[str, str]]]:
        """Find the fixture serving method+path, with its path params."""
        method = method.upper()
        path = normalize_path(path)
        with self._lock:
            active = self._active()
            by_matcher: dict[Matcher, Fixture] = {}
            for key, fixture in active.items():
                if key[0] != method:
                    continue
                by_matcher[Matcher(self._patterns[key], self._order[key])] = fixture
            found = best_match(list(by_matcher), path)
            if found is None:
                return None
            matcher, params = found
            return by_matcher[matcher], params

    def _override_for(self, fixture: Fixture) -> RouteOverride:
        return self.state.overrides.get(fixture.name) or RouteOverride()

    def lookup(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[FixtureResponse]:
        """Current response for method+path, or None when nothing matches."""
        with self._lock:
            resolved = self.resolve(method, path)
            if resolved is None:
                return None
            fixture, path_params = resolved
            request = FixtureRequest(
                method=fixture.method,
                path=normalize_path(path),
                path_params=path_params,
                query=dict(params or {}),
                headers=dict(headers or {}),
            )
            override = self._override_for(fixture)
            return fixture.render(request, self.state, override.scenario, override.scope)

    def apply_mutation(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Optional[FixtureResponse]:
        """
        Run a stateful fixture's mutation and return the new representation.

        Returns None when nothing matches. A route switched to the error
        scope answers with its error response and leaves state untouched,
        as does a mutation that raises (its partial writes are rolled back).

        Raises:
            MalformedRequestError: If the matched fixture is not stateful
        """
        with self._lock:
            resolved = self.resolve(method, path)
            if resolved is None:
                return None
            fixture, path_params = resolved
            if not fixture.stateful:
                raise MalformedRequestError(
                    f"{fixture.method} {fixture.pattern} does not accept mutations",
                    path=path,
                )
            request = FixtureRequest(
                method=fixture.method,
                path=normalize_path(path),
                path_params=path_params,
                query=dict(params or {}),
                headers=dict(headers or {}),
                body=body,
            )
            override = self._override_for(fixture)
            if override.scope == ERROR_SCOPE:
                return fixture.render(
                    request, self.state, override.scenario, override.scope
                )
            checkpoint = self.state.checkpoint()
            try:
                return fixture.coerce(fixture.mutate(request, self.state))
            except Exception:
                self.state.rollback(checkpoint)
                logger.warning(f"↩️ Mutation for '{fixture.name}' failed, state rolled back")
                raise

    def latency_for(self, method: str, path: str) -> Optional[int]:
        """Simulated latency in milliseconds for the matching route."""
        with self._lock:
            resolved = self.resolve(method, path)
            if resolved is None:
                return None
            override = self.state.overrides.get(resolved[0].name)
            return override.latency_ms if override else None

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------

    def reset(self) -> int:
        """
        Restore the baseline: drop overlay fixtures, collection mutations,
        route overrides and the active preset. Returns the new generation.
        """
        with self._lock:
            dropped = len(self._overlay)
            for key in self._overlay:
                if key not in self._baseline:
                    self._order.pop(key, None)
                    self._patterns.pop(key, None)
            self._overlay.clear()
            self._next_order = self._baseline_next_order
            generation = self.state.reset()
        logger.info(
            f"🔄 State reset to baseline (generation={generation}, "
            f"overlay fixtures dropped={dropped})"
        )
        return generation

    # ------------------------------------------------------------------
    # Scenarios and presets
    # ------------------------------------------------------------------

    def route_names(self) -> list[str]:
        return [f.name for f in self.fixtures()]

    def find_route(self, name: str) -> Optional[Fixture]:
        for fixture in self.fixtures():
            if fixture.name == name:
                return fixture
        return None

    def set_scenario(
        self,
        route: str,
        scenario: Optional[str] = None,
        scope: Optional[str] = None,
    ) -> RouteOverride:
        """
        Switch one route to another scenario and/or scope until next reset.

        Raises:
            UnknownRouteError: If no fixture carries this route name
            MalformedRequestError: If scope is not "success" or "error"
        """
        if scope is not None and scope not in SCOPES:
            raise MalformedRequestError(
                f"Scope must be one of {list(SCOPES)}, got '{scope}'"
            )
        with self._lock:
            fixture = self.find_route(route)
            if fixture is None:
                raise UnknownRouteError(route, self.route_names())
            override = self.state.overrides.setdefault(fixture.name, RouteOverride())
            if scenario is not None:
                override.scenario = scenario
            if scope is not None:
                override.scope = scope
        logger.info(
            f"🎬 Route '{route}' now scenario={override.scenario} scope={override.scope}"
        )
        return override

    def register_preset(self, name: str, mapping: Mapping[str, Mapping[str, Any]]) -> None:
        """
        Define a preset: route selector -> {"scenario", "scope", "latency"}.

        Selectors are an exact route name, "*" for every route, or a
        "prefix*" pattern.
        """
        if name == DEFAULT_PRESET:
            raise ValueError(f"'{DEFAULT_PRESET}' is reserved for clearing presets")
        with self._lock:
            self._presets[name] = {k: dict(v) for k, v in mapping.items()}

    def preset_names(self) -> list[str]:
        with self._lock:
            return list(self._presets)

    @property
    def active_preset(self) -> Optional[str]:
        return self.state.active_preset

    @staticmethod
    def _preset_entry(
        preset: Mapping[str, Mapping[str, Any]], route_name: str
    ) -> Optional[Mapping[str, Any]]:
        if route_name in preset:
            return preset[route_name]
        if "*" in preset:
            return preset["*"]
        for selector, config in preset.items():
            if selector.endswith("*") and route_name.startswith(selector[:-1]):
                return config
        return None

    def apply_preset(self, name: Optional[str]) -> int:
        """
        Activate a preset; None or "default" clears all route overrides.

        Returns:
            Number of routes the preset touched

        Raises:
            UnknownPresetError: If the preset was never registered
        """
        with self._lock:
            fixtures = self.fixtures()
            if name is None or name == DEFAULT_PRESET:
                self.state.overrides.clear()
                self.state.active_preset = None
                logger.info("🎛️ Presets cleared, all routes on default scenario")
                return len(fixtures)

            preset = self._presets.get(name)
            if preset is None:
                raise UnknownPresetError(name, self.preset_names())

            updated = 0
            for fixture in fixtures:
                config = self._preset_entry(preset, fixture.name)
                if config is None:
                    continue
                override = self.state.overrides.setdefault(fixture.name, RouteOverride())
                if config.get("scenario") is not None:
                    override.scenario = config["scenario"]
                if config.get("scope") is not None:
                    override.scope = config["scope"]
                if config.get("latency") is not None:
                    override.latency_ms = int(config["latency"])
                updated += 1
            self.state.active_preset = name
        logger.info(f"🎛️ Preset '{name}' activated ({updated} routes updated)")
        return updated

    def describe_routes(self) -> list[dict[str, Any]]:
        """Registered routes with their scenarios and current overrides."""
        with self._lock:
            return [
                {
                    "name": f.name,
                    "method": f.method,
                    "path": f.pattern,
                    "stateful": f.stateful,
                    "scenarios": f.scenario_names(),
                    "errorScenarios": f.scenario_names(ERROR_SCOPE),
                    "override": self._override_for(f).to_dict(),
                }
                for f in self.fixtures()
            ]
