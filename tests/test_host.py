"""Tests for the behavior host: registry, serialized delivery and error containment."""

import pytest

from colderive.config import HostSettings, parse_config
from colderive.core.types import BuiltinColumn
from colderive.derive import DeriveBehavior
from colderive.errors import (
    CompilationError,
    ConfigurationError,
    EvaluationError,
    ProjectResolutionError,
)
from colderive.expressions import FunctionRegistry
from colderive.expressions.builtins import register_all_builtins
from colderive.host import (
    CHANGE_CALLBACKS,
    Behavior,
    BehaviorHost,
    BehaviorRegistry,
    behavior,
    register_builtin_behaviors,
)
from colderive.repository import ChangeEvent, ChangeKind, MemoryItem, MemoryRepository


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def clean_registries():
    """Clear registries before and after each test."""
    FunctionRegistry.clear()
    BehaviorRegistry.clear()
    register_all_builtins()
    register_builtin_behaviors()
    yield
    FunctionRegistry.clear()
    BehaviorRegistry.clear()


@pytest.fixture
def repo():
    repo = MemoryRepository()
    repo.add_project("Game")
    return repo


@pytest.fixture
def game(repo):
    return repo.projects[0]


def _derive(expression="item.Priority * 2", project="Game"):
    return {
        "Derive": {
            "HansoftProject": project,
            "View": "Agile",
            "Columns": [{"Risk": {"Expression": expression}}],
        }
    }


def _host(repo, *behaviors, buffered=False, on_error=None) -> BehaviorHost:
    config = parse_config(
        {"settings": {"bufferedEvents": buffered}, "behaviors": list(behaviors)}
    )
    host = BehaviorHost.from_config(config, repo, on_error=on_error)
    repo.subscribe(host.dispatch)
    return host


class RecordingBehavior(Behavior):
    """Records every callback it receives."""

    def __init__(self, options, **kwargs):
        super().__init__(options, **kwargs)
        self.calls: list[str] = []

    def initialize(self):
        self.calls.append("initialize")

    def on_begin_buffered_events(self):
        self.calls.append("begin")

    def on_end_buffered_events(self):
        self.calls.append("end")

    def on_item_change(self, event):
        self.calls.append(f"change:{event.item_id}")

    def on_item_create(self, event):
        self.calls.append(f"create:{event.item_id}")


class ExplodingBehavior(Behavior):
    def on_item_change(self, event):
        raise RuntimeError("kaboom")


# =============================================================================
# Registry
# =============================================================================


class TestBehaviorRegistry:
    def test_builtin_derive_registered(self):
        assert BehaviorRegistry.get("Derive") is DeriveBehavior

    def test_register_and_get(self):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        assert BehaviorRegistry.get("Recording") is RecordingBehavior

    def test_register_idempotent(self):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        BehaviorRegistry.register("Recording", ExplodingBehavior)
        assert BehaviorRegistry.get("Recording") is RecordingBehavior

    def test_get_unknown_raises(self):
        with pytest.raises(ValueError, match="Behavior 'Nope' is not registered"):
            BehaviorRegistry.get("Nope")

    def test_list_registered(self):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        assert BehaviorRegistry.list_registered() == ["Derive", "Recording"]

    def test_clear(self):
        BehaviorRegistry.clear()
        assert not BehaviorRegistry.is_registered("Derive")

    def test_decorator_registers(self):
        @behavior("Decorated")
        class Decorated(Behavior):
            pass

        assert BehaviorRegistry.get("Decorated") is Decorated


# =============================================================================
# Construction and initialization
# =============================================================================


class TestHostConstruction:
    def test_from_config_builds_behaviors(self, repo):
        host = _host(repo, _derive(), buffered=True)

        assert len(host.behaviors) == 1
        assert isinstance(host.behaviors[0], DeriveBehavior)
        assert host.buffered_events is True
        assert host.behaviors[0].buffered_events is True

    def test_unknown_kind_is_configuration_error(self, repo):
        with pytest.raises(ConfigurationError, match="'Nope' is not registered"):
            _host(repo, {"Nope": {}})

    def test_invalid_options_is_configuration_error(self, repo):
        with pytest.raises(ConfigurationError, match="Unknown column type"):
            _host(repo, {"Derive": {"HansoftProject": "Game", "View": "Agile",
                                    "Columns": [{"Effort": "1"}]}})

    def test_every_change_kind_has_callback(self):
        assert set(CHANGE_CALLBACKS) == set(ChangeKind)
        for callback in CHANGE_CALLBACKS.values():
            assert callable(getattr(Behavior, callback))

    def test_initialize_aggregates_compilation_errors(self, repo, game):
        item = game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3}))
        host = _host(repo, _derive("nope()"), _derive(), _derive("other(1)"))

        with pytest.raises(CompilationError) as exc_info:
            host.initialize()

        diagnostics = exc_info.value.diagnostics
        assert len(diagnostics) == 2
        assert all(d.startswith("DeriveBehavior: 'Game' (Agile): ") for d in diagnostics)
        # The valid behavior still came up
        assert host.behaviors[1].state.initialized
        assert item.get_default_column_value(BuiltinColumn.RISK) == 6

    def test_resolution_failure_does_not_stop_other_behaviors(self, repo, game):
        item = game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3}))
        strict = _derive(project="Tools")
        strict["Derive"]["RequireProject"] = True
        host = _host(repo, strict, _derive())

        with pytest.raises(ProjectResolutionError, match="Tools"):
            host.initialize()

        assert not host.behaviors[0].state.initialized
        derive = host.behaviors[1]
        assert derive.state.initialized
        assert item.get_default_column_value(BuiltinColumn.RISK) == 6
        # The initial pass's writeback was delivered before raising
        assert derive.state.passes == 2

    def test_compilation_errors_reported_with_resolution_failures(self, repo, game):
        strict = _derive(project="Tools")
        strict["Derive"]["RequireProject"] = True
        host = _host(repo, strict, _derive("nope()"))

        with pytest.raises(CompilationError) as exc_info:
            host.initialize()

        assert any("Unknown function 'nope'" in d for d in exc_info.value.diagnostics)


# =============================================================================
# Delivery
# =============================================================================


class TestDelivery:
    def test_writeback_converges(self, repo, game):
        item = game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3}))
        host = _host(repo, _derive())

        host.initialize()
        derive = host.behaviors[0]

        assert len(repo.writes) == 1
        # Initial pass plus the pass induced by its own write, which writes nothing
        assert derive.state.passes == 2

        item.set_default_column_value(BuiltinColumn.PRIORITY, 4)

        assert item.get_default_column_value(BuiltinColumn.RISK) == 8
        # User edit, derived write, nothing else
        assert len(repo.writes) == 3
        assert derive.state.passes == 4

    def test_callbacks_never_nest(self, repo, game):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        host = _host(repo, _derive(), {"Recording": {}})
        host.initialize()
        recorder = host.behaviors[1]
        recorder.calls.clear()

        item = game.schedule.add_item(MemoryItem(7, {BuiltinColumn.PRIORITY: 1}))

        # The create is delivered to both behaviors before the derived write's change
        assert recorder.calls == ["create:7", "change:7"]
        assert item.get_default_column_value(BuiltinColumn.RISK) == 2

    def test_process_brackets_batch_in_buffered_mode(self, repo):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        host = _host(repo, {"Recording": {}}, buffered=True)
        host.initialize()

        host.process(
            [ChangeEvent(ChangeKind.ITEM_CHANGED, 1), ChangeEvent(ChangeKind.ITEM_CHANGED, 2)]
        )

        assert host.behaviors[0].calls == ["initialize", "begin", "change:1", "change:2", "end"]

    def test_process_unbuffered_delivers_singly(self, repo):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        host = _host(repo, {"Recording": {}})
        host.initialize()

        host.process([ChangeEvent(ChangeKind.ITEM_CHANGED, 1)])

        assert host.behaviors[0].calls == ["initialize", "change:1"]

    def test_buffered_batch_runs_one_pass(self, repo, game):
        game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3, BuiltinColumn.RISK: 6}))
        host = _host(repo, _derive(), buffered=True)
        host.initialize()
        derive = host.behaviors[0]

        host.process([ChangeEvent(ChangeKind.ITEM_CHANGED, 1)] * 3)

        assert derive.state.passes == 2

    def test_buffered_batch_with_writebacks(self, repo, game):
        items = [
            game.schedule.add_item(
                MemoryItem(i, {BuiltinColumn.PRIORITY: 3, BuiltinColumn.RISK: 6})
            )
            for i in range(1, 6)
        ]
        host = _host(repo, _derive(), buffered=True)
        host.initialize()
        derive = host.behaviors[0]
        assert derive.state.passes == 1

        host.begin_buffered_events()
        for item in items:
            item.set_default_column_value(BuiltinColumn.PRIORITY, 4)
        host.end_buffered_events()

        assert [i.get_default_column_value(BuiltinColumn.RISK) for i in items] == [8] * 5
        # The batch pass, then one pass over the batch of its own writebacks
        assert derive.state.passes == 3
        assert len(repo.writes) == 10

    def test_writebacks_delivered_as_own_batch(self, repo, game):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        item = game.schedule.add_item(
            MemoryItem(1, {BuiltinColumn.PRIORITY: 3, BuiltinColumn.RISK: 6})
        )
        host = _host(repo, _derive(), {"Recording": {}}, buffered=True)
        host.initialize()
        recorder = host.behaviors[1]
        recorder.calls.clear()

        host.begin_buffered_events()
        item.set_default_column_value(BuiltinColumn.PRIORITY, 4)
        host.end_buffered_events()

        assert recorder.calls == ["begin", "change:1", "end", "begin", "change:1", "end"]

    def test_change_outside_batch_is_bracketed(self, repo):
        BehaviorRegistry.register("Recording", RecordingBehavior)
        host = _host(repo, {"Recording": {}}, buffered=True)
        host.initialize()

        host.dispatch(ChangeEvent(ChangeKind.ITEM_CHANGED, 1))

        assert host.behaviors[0].calls == ["initialize", "begin", "change:1", "end"]

    def test_buffered_initial_writebacks_converge(self, repo, game):
        item = game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3}))
        host = _host(repo, _derive(), buffered=True)

        host.initialize()

        assert item.get_default_column_value(BuiltinColumn.RISK) == 6
        assert host.behaviors[0].state.passes == 2
        assert len(repo.writes) == 1


# =============================================================================
# Error containment
# =============================================================================


class TestErrorContainment:
    def test_failing_callback_does_not_halt_others(self, repo, game):
        BehaviorRegistry.register("Exploding", ExplodingBehavior)
        seen = []
        host = _host(repo, {"Exploding": {}}, _derive(), on_error=lambda b, e: seen.append(e))
        host.initialize()
        item = game.schedule.add_item(MemoryItem(1, {BuiltinColumn.PRIORITY: 3}))

        item.set_default_column_value(BuiltinColumn.PRIORITY, 5)

        assert item.get_default_column_value(BuiltinColumn.RISK) == 10
        assert host.errors
        assert all(isinstance(e, RuntimeError) for _, e in host.errors)
        assert seen == [e for _, e in host.errors]

    def test_evaluation_errors_reach_host(self, repo, game):
        game.schedule.add_item(MemoryItem(1, {BuiltinColumn.POINTS: 0}))
        host = _host(repo, _derive("10 / item.Points"))

        host.initialize()

        assert len(host.errors) == 1
        source, error = host.errors[0]
        assert source is host.behaviors[0]
        assert isinstance(error, EvaluationError)
        assert error.column == "Risk"

    def test_error_logged(self, repo, game, caplog):
        game.schedule.add_item(MemoryItem(1, {BuiltinColumn.POINTS: 0}))
        host = _host(repo, _derive("10 / item.Points"))

        host.initialize()

        assert "DeriveBehavior: 'Game' (Agile)" in caplog.text
        assert "Division by zero" in caplog.text


class TestBehaviorBase:
    def test_defaults(self, repo):
        base = Behavior({}, repository=repo)
        assert base.title == "Behavior"
        assert base.buffered_events is False
        assert base.extension_modules == []
        assert base.initialize() is None

    def test_settings_exposed(self, repo):
        settings = HostSettings(buffered_events=True, extension_modules=["pkg.a"])
        base = Behavior({}, repository=repo, settings=settings)
        assert base.buffered_events is True
        assert base.extension_modules == ["pkg.a"]

    def test_report_error_uses_channel(self, repo):
        seen = []
        base = Behavior({}, repository=repo, report_error=seen.append)
        error = RuntimeError("x")
        base.report_error(error)
        assert seen == [error]
