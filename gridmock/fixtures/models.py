"""
Fixture data model.

A Fixture pairs (method, path pattern) with canned responses. Responses
are grouped into named scenarios under two scopes, "success" and "error";
the active scenario per route lives in ServerState so that a reset puts
every route back on its default.
"""

import copy
import dataclasses
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional, Union

if TYPE_CHECKING:
    from gridmock.fixtures.state import ServerState

JSON_CONTENT_TYPE = "application/json"
DEFAULT_SCENARIO = "defaultScenario"
SUCCESS_SCOPE = "success"
ERROR_SCOPE = "error"
SCOPES = (SUCCESS_SCOPE, ERROR_SCOPE)


@dataclass(frozen=True)
class FixtureRequest:
    """The parts of an HTTP request a fixture responder may look at."""

    method: str
    path: str
    path_params: Mapping[str, str] = field(default_factory=dict)
    query: Mapping[str, str] = field(default_factory=dict)
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None


@dataclass
class FixtureResponse:
    """A fully materialized response ready to be sent."""

    status: int = 200
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    content_type: str = JSON_CONTENT_TYPE

    @property
    def is_json(self) -> bool:
        return self.content_type == JSON_CONTENT_TYPE


# A responder returns a FixtureResponse, or a bare body (status taken from
# the fixture), or a (status, body) tuple.
ResponderResult = Union[FixtureResponse, tuple, Any]
Responder = Callable[[FixtureRequest, "ServerState"], ResponderResult]
Mutation = Callable[[FixtureRequest, "ServerState"], ResponderResult]


@dataclass
class Fixture:
    """
    Baseline definition of a mocked route.

    Either `body` (static) or `scenarios` (computed) provides the success
    response. Static bodies are deep-copied on every lookup so callers can
    never mutate the baseline.
    """

    method: str
    pattern: str
    name: str = ""
    status: int = 200
    body: Any = None
    headers: dict[str, str] = field(default_factory=dict)
    content_type: str = JSON_CONTENT_TYPE
    scenarios: dict[str, Responder] = field(default_factory=dict)
    error_scenarios: dict[str, Responder] = field(default_factory=dict)
    mutate: Optional[Mutation] = None

    def __post_init__(self):
        self.method = self.method.upper()
        if not self.name:
            self.name = f"{self.method} {self.pattern}"

    @property
    def key(self) -> tuple[str, str]:
        return (self.method, self.pattern)

    @property
    def stateful(self) -> bool:
        return self.mutate is not None

    def scenario_names(self, scope: str = SUCCESS_SCOPE) -> list[str]:
        names = self.scenarios if scope == SUCCESS_SCOPE else self.error_scenarios
        if scope == SUCCESS_SCOPE and DEFAULT_SCENARIO not in names:
            return [DEFAULT_SCENARIO, *names]
        return list(names)

    def render(
        self,
        request: FixtureRequest,
        state: "ServerState",
        scenario: str = DEFAULT_SCENARIO,
        scope: str = SUCCESS_SCOPE,
    ) -> FixtureResponse:
        """Produce the response for the given scenario and scope."""
        if scope == ERROR_SCOPE:
            responder = self.error_scenarios.get(scenario) or self.error_scenarios.get(
                ERROR_SCOPE
            )
            if responder is None and self.error_scenarios:
                responder = next(iter(self.error_scenarios.values()))
            if responder is None:
                return FixtureResponse(
                    status=500,
                    body={"error": "Internal server error"},
                )
            return self.coerce(responder(request, state), default_status=500)

        responder = self.scenarios.get(scenario)
        if responder is None and scenario != DEFAULT_SCENARIO:
            responder = self.scenarios.get(DEFAULT_SCENARIO)
        if responder is None:
            return self.coerce(self.body)
        return self.coerce(responder(request, state))

    def coerce(
        self, result: ResponderResult, default_status: Optional[int] = None
    ) -> FixtureResponse:
        """
        Normalize whatever a responder returned into a FixtureResponse.

        The body is deep-copied so responders may hand back live state.
        """
        if isinstance(result, FixtureResponse):
            return dataclasses.replace(
                result, body=copy.deepcopy(result.body), headers=dict(result.headers)
            )
        if isinstance(result, tuple) and len(result) == 2 and isinstance(result[0], int):
            status, body = result
        else:
            status, body = default_status or self.status, result
        return FixtureResponse(
            status=status,
            body=copy.deepcopy(body),
            headers=dict(self.headers),
            content_type=self.content_type,
        )


@dataclass
class RouteOverride:
    """Per-route overlay set by /_scenario or a preset; cleared on reset."""

    scenario: str = DEFAULT_SCENARIO
    scope: str = SUCCESS_SCOPE
    latency_ms: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "scenario": self.scenario,
            "scope": self.scope,
            "latency": self.latency_ms,
        }
