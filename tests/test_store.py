"""
Tests for FixtureStore - registration, lookup, mutation, reset, scenarios
"""

import pytest

from gridmock.errors import MalformedRequestError, UnknownPresetError, UnknownRouteError
from gridmock.fixtures import Fixture, FixtureResponse, FixtureStore, ServerState


def _list_bodies(store):
    return [f.body for f in store.fixtures()]


class TestRegistration:
    def test_last_registration_wins(self):
        store = FixtureStore()
        store.register(Fixture("GET", "/a", body={"v": 1}))
        store.register(Fixture("GET", "/b", body={"v": 2}))
        store.register(Fixture("GET", "/a", body={"v": 3}))

        assert store.lookup("GET", "/a").body == {"v": 3}

    def test_replacement_keeps_first_position(self):
        store = FixtureStore()
        store.register(Fixture("GET", "/a", body="a1"))
        store.register(Fixture("GET", "/b", body="b"))
        store.register(Fixture("GET", "/a", body="a2"))

        assert _list_bodies(store) == ["a2", "b"]

    def test_method_is_part_of_the_key(self):
        store = FixtureStore()
        store.register(Fixture("get", "/items", body="read"))

        assert store.lookup("GET", "/items").body == "read"
        assert store.lookup("DELETE", "/items") is None

    def test_register_rejects_bad_pattern(self):
        with pytest.raises(ValueError):
            FixtureStore().register(Fixture("GET", "items"))

    def test_default_name(self):
        fixture = FixtureStore().register(Fixture("post", "/items"))

        assert fixture.name == "POST /items"


class TestLookup:
    def test_unknown_route_returns_none(self, items_store):
        assert items_store.lookup("GET", "/nope") is None

    def test_static_body_cannot_be_mutated_by_caller(self, items_store):
        first = items_store.lookup("GET", "/api/leagues-management/constraints")
        first.body["maxTeams"] = 0

        second = items_store.lookup("GET", "/api/leagues-management/constraints")

        assert second.body == {"maxTeams": 16}

    def test_path_params_reach_the_responder(self):
        store = FixtureStore()
        store.register(
            Fixture(
                "GET",
                "/teams/:id",
                scenarios={"defaultScenario": lambda req, state: {"id": req.path_params["id"]}},
            )
        )

        assert store.lookup("GET", "/teams/9").body == {"id": "9"}

    def test_query_params_reach_the_responder(self):
        store = FixtureStore()
        store.register(
            Fixture(
                "GET",
                "/search",
                scenarios={"defaultScenario": lambda req, state: dict(req.query)},
            )
        )

        assert store.lookup("GET", "/search", params={"q": "x"}).body == {"q": "x"}

    def test_responder_may_return_status_tuple(self):
        store = FixtureStore()
        store.register(
            Fixture(
                "GET",
                "/teapot",
                scenarios={"defaultScenario": lambda req, state: (418, {"short": True})},
            )
        )

        response = store.lookup("GET", "/teapot")

        assert response.status == 418
        assert response.body == {"short": True}

    def test_responder_may_return_fixture_response(self):
        store = FixtureStore()
        store.register(
            Fixture(
                "GET",
                "/plain",
                scenarios={
                    "defaultScenario": lambda req, state: FixtureResponse(
                        body="hi", content_type="text/plain"
                    )
                },
            )
        )

        response = store.lookup("GET", "/plain")

        assert response.body == "hi"
        assert not response.is_json

    def test_captured_body_does_not_follow_later_mutations(self, items_store):
        items_store.apply_mutation("POST", "/items", body={"name": "first"})
        before = items_store.lookup("GET", "/items").body

        items_store.apply_mutation("POST", "/items", body={"name": "second"})

        assert len(before) == 1
        assert len(items_store.lookup("GET", "/items").body) == 2

    def test_editing_returned_body_leaves_state_alone(self, items_store):
        items_store.lookup("GET", "/items").body.append({"id": 99})

        assert items_store.lookup("GET", "/items").body == []
        assert items_store.state.collection("items") == []

    def test_fixture_response_body_is_detached(self):
        store = FixtureStore(ServerState(seed={"profile": {"name": "Test"}}))
        store.register(
            Fixture(
                "GET",
                "/profile",
                scenarios={
                    "defaultScenario": lambda req, state: FixtureResponse(
                        body=state.get("profile")
                    )
                },
            )
        )

        store.lookup("GET", "/profile").body["name"] = "Changed"

        assert store.state.get("profile") == {"name": "Test"}


class TestMutation:
    def test_items_scenario(self, items_store):
        """POST one item, see it listed, reset, see the empty baseline."""
        created = items_store.apply_mutation("POST", "/items", body={"name": "widget"})

        assert created.status == 201
        assert created.body == [{"name": "widget", "id": 1}]
        assert len(items_store.lookup("GET", "/items").body) == 1

        items_store.reset()

        assert items_store.lookup("GET", "/items").body == []

    def test_no_match_returns_none(self, items_store):
        assert items_store.apply_mutation("POST", "/nope", body={}) is None

    def test_non_stateful_fixture_rejects_mutation(self, items_store):
        with pytest.raises(MalformedRequestError, match="does not accept mutations"):
            items_store.apply_mutation("GET", "/items")

    def test_error_scope_skips_mutation(self, items_store):
        items_store.set_scenario("createItem", scope="error")

        response = items_store.apply_mutation("POST", "/items", body={"name": "x"})

        assert response.status == 500
        assert items_store.state.collection("items") == []

    def test_mutation_body_is_detached(self, items_store):
        created = items_store.apply_mutation("POST", "/items", body={"name": "a"})

        created.body.clear()

        assert len(items_store.lookup("GET", "/items").body) == 1

    def test_failed_mutation_is_rolled_back(self):
        def append_then_fail(request, state):
            state.append("items", {"id": state.next_id("items")})
            raise RuntimeError("boom")

        store = FixtureStore(ServerState(seed={"items": []}))
        store.register(
            Fixture(
                "GET",
                "/items",
                scenarios={"defaultScenario": lambda req, state: state.collection("items")},
            )
        )
        store.register(Fixture("POST", "/items", mutate=append_then_fail))
        store.seal_baseline()

        with pytest.raises(RuntimeError, match="boom"):
            store.apply_mutation("POST", "/items", body={})

        assert store.lookup("GET", "/items").body == []
        assert store.state.counters == {}


class TestReset:
    def test_reset_restores_baseline_snapshot(self, items_store):
        baseline = items_store.state.snapshot()

        items_store.apply_mutation("POST", "/items", body={"name": "a"})
        items_store.set_scenario("listItems", scenario="empty")
        items_store.reset()

        assert items_store.state.snapshot() == baseline

    def test_reset_twice_equals_reset_once(self, items_store):
        items_store.apply_mutation("POST", "/items", body={"name": "a"})
        items_store.reset()
        once = items_store.state.snapshot()
        items_store.reset()

        assert items_store.state.snapshot() == once

    def test_generation_increments(self, items_store):
        assert items_store.generation == 0
        assert items_store.reset() == 1
        assert items_store.reset() == 2

    def test_reset_drops_fixtures_registered_after_seal(self, items_store):
        items_store.register(Fixture("GET", "/extra", body={"extra": True}))
        items_store.register(
            Fixture("GET", "/api/leagues-management/constraints", body={"maxTeams": 2})
        )

        assert items_store.lookup("GET", "/extra").body == {"extra": True}
        assert items_store.lookup(
            "GET", "/api/leagues-management/constraints"
        ).body == {"maxTeams": 2}

        items_store.reset()

        assert items_store.lookup("GET", "/extra") is None
        assert items_store.lookup(
            "GET", "/api/leagues-management/constraints"
        ).body == {"maxTeams": 16}
        assert [f.name for f in items_store.fixtures()] == [
            "getConstraints",
            "listItems",
            "createItem",
        ]

    def test_constraints_unchanged_across_reset(self, items_store):
        before = items_store.lookup("GET", "/api/leagues-management/constraints")
        items_store.reset()
        after = items_store.lookup("GET", "/api/leagues-management/constraints")

        assert before.status == after.status == 200
        assert before.body == after.body

    def test_reset_before_any_mutation_is_safe(self):
        store = FixtureStore(ServerState())

        assert store.reset() == 1
        assert store.fixtures() == []


class TestScenarios:
    def test_set_scenario_switches_response(self, default_store):
        default_store.set_scenario("listLeagues", scenario="empty")

        assert default_store.lookup("GET", "/api/leagues-management").body == []

    def test_unknown_scenario_falls_back_to_default(self, default_store):
        default_store.set_scenario("listTeams", scenario="doesNotExist")

        assert len(default_store.lookup("GET", "/api/teams").body) == 2

    def test_error_scope_uses_named_error_scenario(self, default_store):
        default_store.set_scenario("listTeams", scenario="unauthorized", scope="error")

        response = default_store.lookup("GET", "/api/teams")

        assert response.status == 401
        assert response.body == {"error": "Unauthorized"}

    def test_error_scope_without_error_scenarios(self, items_store):
        items_store.set_scenario("listItems", scope="error")

        response = items_store.lookup("GET", "/items")

        assert response.status == 500
        assert response.body == {"error": "Internal server error"}

    def test_set_scenario_unknown_route(self, default_store):
        with pytest.raises(UnknownRouteError) as exc_info:
            default_store.set_scenario("nope", scenario="empty")

        assert "listLeagues" in exc_info.value.available

    def test_set_scenario_bad_scope(self, default_store):
        with pytest.raises(MalformedRequestError, match="Scope must be one of"):
            default_store.set_scenario("listLeagues", scope="sideways")

    def test_reset_clears_scenarios(self, default_store):
        default_store.set_scenario("listLeagues", scenario="empty")
        default_store.reset()

        assert len(default_store.lookup("GET", "/api/leagues-management").body) == 1


class TestPresets:
    def test_apply_named_preset(self, default_store):
        updated = default_store.apply_preset("new-user")

        assert updated == 2
        assert default_store.active_preset == "new-user"
        assert default_store.lookup("GET", "/api/teams").body == []

    def test_wildcard_preset_sets_latency_everywhere(self, default_store):
        updated = default_store.apply_preset("slow-network")

        assert updated == len(default_store.fixtures())
        assert default_store.latency_for("GET", "/api/teams/1") == 2000

    def test_prefix_selector(self, default_store):
        default_store.register_preset("lists-fail", {"list*": {"scope": "error"}})

        assert default_store.apply_preset("lists-fail") == 2
        assert default_store.lookup("GET", "/api/teams").status == 500
        assert default_store.lookup("GET", "/api/teams/1").status == 200

    def test_default_clears_overrides(self, default_store):
        default_store.apply_preset("error-mode")
        default_store.apply_preset("default")

        assert default_store.active_preset is None
        assert default_store.lookup("GET", "/api/leagues-management").status == 200

    def test_none_clears_overrides(self, default_store):
        default_store.apply_preset("new-user")

        assert default_store.apply_preset(None) == len(default_store.fixtures())
        assert default_store.state.overrides == {}

    def test_unknown_preset(self, default_store):
        with pytest.raises(UnknownPresetError) as exc_info:
            default_store.apply_preset("nope")

        assert set(exc_info.value.available) == {"new-user", "error-mode", "slow-network"}

    def test_default_name_is_reserved(self, default_store):
        with pytest.raises(ValueError, match="reserved"):
            default_store.register_preset("default", {})

    def test_reset_clears_active_preset(self, default_store):
        default_store.apply_preset("slow-network")
        default_store.reset()

        assert default_store.active_preset is None
        assert default_store.latency_for("GET", "/api/teams") is None


def test_describe_routes(items_store):
    items_store.set_scenario("listItems", scenario="empty")

    routes = {r["name"]: r for r in items_store.describe_routes()}

    assert routes["createItem"]["stateful"] is True
    assert routes["createItem"]["method"] == "POST"
    assert routes["listItems"]["path"] == "/items"
    assert routes["listItems"]["scenarios"] == ["defaultScenario"]
    assert routes["listItems"]["override"] == {
        "scenario": "empty",
        "scope": "success",
        "latency": None,
    }
