"""
Tests for plan execution and the provider context.
"""

from __future__ import annotations

import pytest

from schema_to_source.errors import PluginExecutionFailed, ResourceNotResolved
from schema_to_source.execution import ExecutionServices, HandlerRegistry, execute
from schema_to_source.file_assignment import FileRule
from schema_to_source.model import Entity, SemanticModel
from schema_to_source.providers import ProviderRegistry, SemanticModelProvider, define_provider
from schema_to_source.resolution import resolve
from schema_to_source.utils import request_key

MODEL = SemanticModel(entities=(Entity(name="User"),))


def run(providers, targets=(), registry=None, **services):
    registry = registry or ProviderRegistry.from_providers(providers)
    plan = resolve(registry, targets)
    return execute(plan, registry, ExecutionServices(model=MODEL, **services))


class TestExecute:
    """Tests for execute()."""

    def test_results_cached_by_request_key(self):
        """Test that each step's result is stored under its key."""
        results = run([define_provider("types", "types", provide=lambda params, deps, ctx: "types-result")], ["types"])

        assert results == {request_key("types", None): "types-result"}

    def test_dependency_results_order(self):
        """Test required results first, then optional ones with None slots."""
        seen = {}

        def provide_routes(params, deps, ctx):
            seen["deps"] = deps
            return "routes"

        providers = [
            define_provider(
                "routes",
                "routes",
                provide=provide_routes,
                requires=lambda params: ["queries", "types"],
                optional_requires=lambda params: ["docs", "schemas"],
            ),
            define_provider("queries", "queries", provide=lambda params, deps, ctx: "Q"),
            define_provider("types", "types", provide=lambda params, deps, ctx: "T"),
            define_provider("schemas", "schemas", provide=lambda params, deps, ctx: "S"),
        ]

        run(providers, ["routes"])

        assert seen["deps"] == ["Q", "T", None, "S"]

    def test_shared_dependency_computed_once(self):
        """Test that a dependency of several providers runs once."""
        calls = []

        def provide_types(params, deps, ctx):
            calls.append(params)
            return "T"

        providers = [
            define_provider("a", "a", provide=lambda params, deps, ctx: deps[0], requires=lambda params: [("types", {"x": 1, "y": 2})]),
            define_provider("b", "b", provide=lambda params, deps, ctx: deps[0], requires=lambda params: [("types", {"y": 2, "x": 1})]),
            define_provider("types", "types", provide=provide_types),
        ]

        results = run(providers, ["a", "b"])

        assert len(calls) == 1
        assert len(results) == 3

    def test_failure_is_wrapped_and_stops_the_run(self):
        """Test fail-fast wrapping of provider errors."""
        later = []

        def fail(params, deps, ctx):
            raise ValueError("boom")

        providers = [
            define_provider("broken", "broken", provide=fail),
            define_provider("after", "after", provide=lambda params, deps, ctx: later.append(1), requires=lambda params: ["broken"]),
        ]

        with pytest.raises(PluginExecutionFailed) as exc_info:
            run(providers, ["after"])

        error = exc_info.value
        assert error.plugin == "broken"
        assert error.kind == "broken"
        assert isinstance(error.cause, ValueError)
        assert error.__cause__ is error.cause
        assert later == []

    def test_pending_request_resolved_after_run(self):
        """Test that deferreds issued before resolution observe results."""
        registry = ProviderRegistry.from_providers([define_provider("types", "types", provide=lambda params, deps, ctx: params["entity"] + "Row")])
        deferred = registry.request("types", {"entity": "User"}, requested_by="routes")

        with pytest.raises(ResourceNotResolved):
            deferred.result

        run([], registry=registry)

        assert deferred.is_resolved
        assert deferred.result == "UserRow"

    def test_semantic_model_provider(self):
        """Test that the core model provider hands out the run's model."""
        seen = {}

        def provide(params, deps, ctx):
            seen["model"] = deps[0]

        run([SemanticModelProvider(), define_provider("types", "types", provide=provide, requires=lambda params: ["semantic-model"])], ["types"])

        assert seen["model"] is MODEL


class TestProviderContext:
    """Tests for what providers can do through ctx."""

    def test_model_and_plugin(self):
        """Test basic context attributes."""
        seen = {}

        def provide(params, deps, ctx):
            seen["model"] = ctx.model
            seen["plugin"] = ctx.plugin

        run([define_provider("types", "types", provide=provide)], ["types"])

        assert seen == {"model": MODEL, "plugin": "types"}

    def test_request_falls_back_to_cache(self):
        """Test ctx.request for an already executed step."""
        providers = [
            define_provider("types", "types", provide=lambda params, deps, ctx: "T"),
            define_provider("queries", "queries", provide=lambda params, deps, ctx: ctx.request("types"), requires=lambda params: ["types"]),
        ]

        results = run(providers, ["queries"])

        assert results[request_key("queries", None)] == "T"

    def test_request_prefers_handler(self):
        """Test that runtime handlers take precedence over cached results."""

        def provide_schemas(params, deps, ctx):
            ctx.register_handler("types", lambda p, c: f"handled {p['entity']} for {c.plugin}")
            return "S"

        providers = [
            define_provider("types", "types", provide=lambda params, deps, ctx: "cached"),
            define_provider("schemas", "schemas", provide=provide_schemas, requires=lambda params: ["types"]),
            define_provider(
                "routes",
                "routes",
                provide=lambda params, deps, ctx: ctx.request("types", {"entity": "User"}),
                requires=lambda params: ["schemas"],
            ),
        ]

        results = run(providers, ["routes"])

        assert results[request_key("routes", None)] == "handled User for routes"

    def test_request_unknown_resource(self):
        """Test that requesting something never produced fails the step."""
        providers = [define_provider("routes", "routes", provide=lambda params, deps, ctx: ctx.request("missing"))]

        with pytest.raises(PluginExecutionFailed) as exc_info:
            run(providers, ["routes"])

        assert isinstance(exc_info.value.cause, ResourceNotResolved)

    def test_file_builder_and_symbols(self):
        """Test that ctx.file emissions land in the shared services."""
        services = ExecutionServices(model=MODEL)

        def provide(params, deps, ctx):
            ctx.file("types/user.py").content("x = 1\n").emit()

        registry = ProviderRegistry.from_providers([define_provider("types", "types", provide=provide)])
        execute(resolve(registry, ["types"]), registry, services)

        entry = services.emissions.get("types/user.py")
        assert entry.content == "x = 1\n"
        assert entry.plugin == "types"

    def test_file_path_uses_provider_defaults_and_overrides(self):
        """Test the file assignment helper."""
        seen = {}

        def provide(params, deps, ctx):
            seen["row"] = ctx.file_path("types:User:row", "UserRow")
            seen["enum"] = ctx.file_path("enums:Status", "Status")
            seen["other"] = ctx.file_path("misc", "Thing")

        provider = define_provider(
            "types",
            "types",
            provide=provide,
            file_defaults=(
                FileRule("types:", lambda c: f"{c.folder_name}.py", output_dir="types"),
                FileRule("enums:", "enums.py"),
            ),
        )

        run([provider], ["types"], file_rules=(FileRule("enums:", "db_enums.py"),), default_file="index.py")

        assert seen == {"row": "types/user.py", "enum": "db_enums.py", "other": "index.py"}


class TestHandlerRegistry:
    """Tests for runtime handler registration."""

    def test_register_get_has(self):
        handlers = HandlerRegistry()
        handler = lambda params, ctx: params  # noqa: E731
        handlers.register("schemas", handler, "zod")

        assert handlers.has("schemas")
        assert handlers.get("schemas") is handler
        assert handlers.get("types") is None
        assert handlers.kinds() == ["schemas"]

    def test_later_registration_replaces(self, caplog):
        """Test replacement and its warning."""
        handlers = HandlerRegistry()
        handlers.register("schemas", lambda params, ctx: 1, "a")
        handlers.register("schemas", lambda params, ctx: 2, "b")

        assert handlers.get("schemas")(None, None) == 2
        assert "replaces the one from a" in caplog.text
