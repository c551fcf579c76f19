"""
Default Gridiron fixture catalog.

Seed data, the routes the frontend talks to, and the presets the e2e
suite switches between. The content is illustrative; tests that need
other data register their own fixtures or point SEED_PATH at a file.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from gridmock.fixtures.models import Fixture, FixtureRequest, FixtureResponse
from gridmock.fixtures.state import ServerState
from gridmock.fixtures.store import FixtureStore

logger = logging.getLogger(__name__)

LEAGUES = "leagues"
TEAMS = "teams"

DEFAULT_CONSTRAINTS = {
    "minConferences": 1,
    "maxConferences": 4,
    "minDivisionsPerConference": 1,
    "maxDivisionsPerConference": 8,
    "minTeamsPerDivision": 1,
    "maxTeamsPerDivision": 8,
}

DEFAULT_SEED: dict[str, Any] = {
    "constraints": DEFAULT_CONSTRAINTS,
    "user": {
        "id": 1,
        "email": "testuser@example.com",
        "displayName": "Test User",
        "isGlobalAdmin": True,
        "createdAt": "2024-01-15T10:00:00Z",
        "leagueRoles": [
            {"id": 1, "leagueId": 1, "role": "Commissioner", "teamId": None},
            {"id": 2, "leagueId": 1, "role": "GeneralManager", "teamId": 1},
        ],
    },
    LEAGUES: [
        {
            "id": 1,
            "name": "Test League",
            "season": 2024,
            "totalTeams": 4,
            "totalConferences": 1,
            "isActive": True,
        }
    ],
    TEAMS: [
        {"id": 1, "divisionId": 1, "name": "Falcons", "city": "Atlanta", "wins": 10, "losses": 6},
        {"id": 2, "divisionId": 1, "name": "Eagles", "city": "Philadelphia", "wins": 12, "losses": 4},
    ],
    "preferences": {},
    "preferencesUpdatedAt": None,
}

DEFAULT_COUNTERS = {
    "conferences": 1000,
    "divisions": 2000,
}

DEFAULT_PRESETS: dict[str, dict[str, dict[str, Any]]] = {
    "new-user": {
        "listLeagues": {"scenario": "empty"},
        "listTeams": {"scenario": "empty"},
    },
    "error-mode": {
        "listLeagues": {"scope": "error"},
        "listTeams": {"scope": "error"},
        "createLeague": {"scope": "error"},
    },
    "slow-network": {
        "*": {"latency": 2000},
    },
}


def _server_error(request: FixtureRequest, state: ServerState):
    return 500, {"error": "Internal server error"}


def _unauthorized(request: FixtureRequest, state: ServerState):
    return 401, {"error": "Unauthorized"}


ERRORS = {"error": _server_error, "unauthorized": _unauthorized}


def _empty_list(request: FixtureRequest, state: ServerState):
    return []


def _constraints(request: FixtureRequest, state: ServerState):
    return state.get("constraints")


def _list_leagues(request: FixtureRequest, state: ServerState):
    return state.collection(LEAGUES)


def _get_league(request: FixtureRequest, state: ServerState):
    league = state.find(LEAGUES, request.path_params["id"])
    if league is None:
        return 404, {"error": "League not found"}
    return league


def _build_conferences(
    state: ServerState, league_id: int, conferences: int, divisions: int, teams: int
) -> list[dict]:
    result = []
    for c in range(1, conferences + 1):
        conference_id = state.next_id("conferences")
        division_list = []
        for d in range(1, divisions + 1):
            division_id = state.next_id("divisions")
            division_list.append(
                {
                    "id": division_id,
                    "name": f"Division {c}-{d}",
                    "conferenceId": conference_id,
                    "teams": [
                        {
                            "id": state.next_id(TEAMS),
                            "name": f"City {c}-{d}-{t} Team {t}",
                            "divisionId": division_id,
                        }
                        for t in range(1, teams + 1)
                    ],
                }
            )
        result.append(
            {
                "id": conference_id,
                "name": f"Conference {c}",
                "leagueId": league_id,
                "divisions": division_list,
            }
        )
    return result


def _create_league(request: FixtureRequest, state: ServerState):
    body = request.body or {}
    if not isinstance(body, dict) or not body.get("name"):
        return 400, {"error": "League name is required"}
    try:
        conferences = int(body.get("numberOfConferences", 2))
        divisions = int(body.get("divisionsPerConference", 4))
        teams = int(body.get("teamsPerDivision", 4))
    except (TypeError, ValueError):
        return 400, {"error": "League structure sizes must be integers"}
    league_id = state.next_id(LEAGUES)
    league = {
        "id": league_id,
        "name": body["name"],
        "season": 2024,
        "totalTeams": conferences * divisions * teams,
        "totalConferences": conferences,
        "isActive": True,
        "conferences": _build_conferences(state, league_id, conferences, divisions, teams),
    }
    state.append(LEAGUES, league)
    return 201, league


def _update_league(request: FixtureRequest, state: ServerState):
    league = state.find(LEAGUES, request.path_params["id"])
    if league is None:
        return 404, {"error": "League not found"}
    body = request.body if isinstance(request.body, dict) else {}
    updated = {**league, **body, "id": league["id"]}
    state.replace(LEAGUES, updated)
    return updated


def _list_teams(request: FixtureRequest, state: ServerState):
    return state.collection(TEAMS)


def _get_team(request: FixtureRequest, state: ServerState):
    team = state.find(TEAMS, request.path_params["id"])
    if team is None:
        return 404, {"error": "Team not found"}
    return team


def _current_user(request: FixtureRequest, state: ServerState):
    return state.get("user")


def _get_preferences(request: FixtureRequest, state: ServerState):
    return {
        "preferences": state.get("preferences", {}),
        "lastUpdated": state.get("preferencesUpdatedAt"),
    }


def _update_preferences(request: FixtureRequest, state: ServerState):
    body = request.body if isinstance(request.body, dict) else {}
    preferences = body.get("preferences") or {}
    state.set("preferences", preferences)
    state.set("preferencesUpdatedAt", datetime.now(timezone.utc).isoformat())
    return _get_preferences(request, state)


def _dark_theme(request: FixtureRequest, state: ServerState):
    return {"preferences": {"ui": {"theme": "dark"}}, "lastUpdated": None}


def _health(request: FixtureRequest, state: ServerState):
    return FixtureResponse(body="ok", content_type="text/plain")


def default_fixtures() -> list[Fixture]:
    return [
        Fixture(
            "GET",
            "/api/leagues-management/constraints",
            name="getConstraints",
            scenarios={"defaultScenario": _constraints},
        ),
        Fixture(
            "GET",
            "/api/leagues-management",
            name="listLeagues",
            scenarios={"defaultScenario": _list_leagues, "empty": _empty_list},
            error_scenarios=ERRORS,
        ),
        Fixture(
            "POST",
            "/api/leagues-management",
            name="createLeague",
            status=201,
            mutate=_create_league,
            error_scenarios=ERRORS,
        ),
        Fixture(
            "GET",
            "/api/leagues-management/:id",
            name="getLeague",
            scenarios={"defaultScenario": _get_league},
            error_scenarios=ERRORS,
        ),
        Fixture(
            "PUT",
            "/api/leagues-management/:id",
            name="updateLeague",
            mutate=_update_league,
            error_scenarios=ERRORS,
        ),
        Fixture(
            "GET",
            "/api/teams",
            name="listTeams",
            scenarios={"defaultScenario": _list_teams, "empty": _empty_list},
            error_scenarios=ERRORS,
        ),
        Fixture(
            "GET",
            "/api/teams/:id",
            name="getTeam",
            scenarios={"defaultScenario": _get_team},
            error_scenarios=ERRORS,
        ),
        Fixture(
            "GET",
            "/api/users/me",
            name="getCurrentUser",
            scenarios={"defaultScenario": _current_user},
            error_scenarios=ERRORS,
        ),
        Fixture(
            "GET",
            "/api/users/me/preferences",
            name="getPreferences",
            scenarios={
                "defaultScenario": _get_preferences,
                "darkThemeScenario": _dark_theme,
            },
            error_scenarios=ERRORS,
        ),
        Fixture(
            "PUT",
            "/api/users/me/preferences",
            name="updatePreferences",
            mutate=_update_preferences,
            error_scenarios=ERRORS,
        ),
        Fixture("GET", "/health", name="health", scenarios={"defaultScenario": _health}),
    ]


def build_default_store(seed: Optional[Mapping[str, Any]] = None) -> FixtureStore:
    """
    Create a sealed store loaded with the default catalog.

    Args:
        seed: Top-level keys that replace the built-in seed data
    """
    merged = dict(DEFAULT_SEED)
    if seed:
        merged.update(seed)
    store = FixtureStore(ServerState(seed=merged, counters=DEFAULT_COUNTERS))
    store.register_all(default_fixtures())
    for name, mapping in DEFAULT_PRESETS.items():
        store.register_preset(name, mapping)
    store.seal_baseline()
    logger.debug(f"Default catalog loaded: {len(store.fixtures())} fixtures")
    return store
