"""Tests for plugin loading, ordering and lifecycle."""

import logging
from typing import Dict, List

import pytest

from shard.config import Config
from shard.core.events import EventDispatcher, Events
from shard.core.storage import NullStorage
from shard.plugins import (
    DependencyCycleError,
    MissingDependencyError,
    Plugin,
    PluginContext,
    PluginLoadError,
    PluginManager,
    PluginType,
)


class RecordingPlugin(Plugin):
    def __init__(self, name, log, plugin_type=PluginType.CUSTOM, dependencies=()):
        self.name = name
        self.version = "1.0.0"
        self.type = plugin_type
        self.dependencies = list(dependencies)
        self.log = log
        self.fail_init = False
        self.fail_destroy = False

    async def init(self, context):
        self.log.append(f"init:{self.name}")
        if self.fail_init:
            raise RuntimeError(f"{self.name} cannot start")

    async def destroy(self):
        self.log.append(f"destroy:{self.name}")
        if self.fail_destroy:
            raise RuntimeError(f"{self.name} cannot stop")


class DictLoader:
    """Loader stand-in resolving declarations from a dict."""

    def __init__(self, plugins: Dict[str, object]):
        self.plugins = plugins

    def load(self, spec):
        if spec not in self.plugins:
            raise PluginLoadError(f"Cannot import {spec}")
        return self.plugins[spec]


def make_context(events=None):
    return PluginContext(
        config=Config(),
        logger=logging.getLogger("test.plugin"),
        events=events or EventDispatcher(),
        storage=NullStorage(),
    )


def make_manager(plugins, declared=None, **kwargs):
    declared = declared if declared is not None else {name: {} for name in plugins}
    return PluginManager(
        Config({"plugins": declared}), loader=DictLoader(plugins), **kwargs
    )


class TestLoadAll:
    @pytest.mark.asyncio
    async def test_loads_declared_plugins_in_order(self):
        log: List[str] = []
        manager = make_manager(
            {
                "pkg-a": RecordingPlugin("a", log),
                "pkg-b": RecordingPlugin("b", log, PluginType.TOOL),
            }
        )

        await manager.load_all()

        assert manager.get_available_plugins() == ["a", "b"]
        assert [p.name for p in manager.get_tools()] == ["b"]
        assert manager.failed_plugins == set()

    @pytest.mark.asyncio
    async def test_import_failure_is_isolated(self):
        log: List[str] = []
        manager = make_manager(
            {"good": RecordingPlugin("good", log)},
            declared={"missing": {}, "good": {}},
        )

        await manager.load_all()

        assert manager.get_available_plugins() == ["good"]
        assert manager.failed_plugins == {"missing"}

    @pytest.mark.asyncio
    async def test_invalid_contract_is_rejected(self):
        class NoVersion:
            name = "broken"
            version = ""
            type = "custom"

            async def init(self, context):
                pass

            async def destroy(self):
                pass

        manager = make_manager({"broken": NoVersion()})

        await manager.load_all()

        assert manager.get_available_plugins() == []
        assert "broken" in manager.failed_plugins

    @pytest.mark.asyncio
    async def test_no_plugins_table(self):
        manager = PluginManager(Config(), loader=DictLoader({}))
        await manager.load_all()
        assert manager.get_available_plugins() == []

    @pytest.mark.asyncio
    async def test_multi_instance_registers_named_clones(self):
        log: List[str] = []
        base = RecordingPlugin("discord", log, PluginType.CHANNEL)
        manager = make_manager(
            {"shard-discord": base},
            declared={
                "shard-discord": {
                    "instances": [
                        {"instanceId": "main"},
                        {"instanceId": "alt"},
                        {"token": "no id"},
                    ]
                }
            },
        )

        await manager.load_all()

        assert manager.get_available_plugins() == ["discord#main", "discord#alt"]
        main = manager.get_plugin("discord#main")
        alt = manager.get_plugin("discord#alt")
        assert main is not alt
        assert main.instance_id == "main"
        assert alt.instance_id == "alt"
        assert base.name == "discord"
        assert base.instance_id is None

    @pytest.mark.asyncio
    async def test_duplicate_name_is_rejected(self):
        log: List[str] = []
        first = RecordingPlugin("same", log)
        manager = make_manager({"one": first, "two": RecordingPlugin("same", log)})

        await manager.load_all()

        assert manager.get_plugin("same") is first
        assert manager.get_available_plugins() == ["same"]
        assert manager.failed_plugins == {"two (duplicate same)"}

    @pytest.mark.asyncio
    async def test_duplicate_instance_id_keeps_first_clone(self):
        log: List[str] = []
        manager = make_manager(
            {"shard-discord": RecordingPlugin("discord", log, PluginType.CHANNEL)},
            declared={
                "shard-discord": {
                    "instances": [{"instanceId": "main"}, {"instanceId": "main"}]
                }
            },
        )

        await manager.load_all()

        assert manager.get_available_plugins() == ["discord#main"]
        assert manager.failed_plugins == {
            "shard-discord#main (duplicate discord#main)"
        }

    @pytest.mark.asyncio
    async def test_emits_plugin_loaded(self, events, recorder):
        log: List[str] = []
        manager = make_manager(
            {"pkg": RecordingPlugin("a", log, PluginType.MODEL)}, events=events
        )

        await manager.load_all()

        assert recorder.payloads(Events.PLUGIN_LOADED) == [
            {"name": "a", "type": "model"}
        ]


class TestDependencyOrder:
    @pytest.mark.asyncio
    async def test_dependencies_init_first_and_destroy_last(self):
        log: List[str] = []
        manager = make_manager(
            {
                "p1": RecordingPlugin("A", log, dependencies=["B"]),
                "p2": RecordingPlugin("B", log),
            }
        )
        await manager.load_all()

        await manager.init_all(make_context())
        await manager.destroy_all()

        assert log == ["init:B", "init:A", "destroy:A", "destroy:B"]

    @pytest.mark.asyncio
    async def test_chain_order(self):
        log: List[str] = []
        manager = make_manager(
            {
                "p1": RecordingPlugin("A", log, dependencies=["B"]),
                "p2": RecordingPlugin("B", log, dependencies=["C"]),
                "p3": RecordingPlugin("C", log),
            }
        )
        await manager.load_all()

        assert [p.name for p in manager.resolve_order()] == ["C", "B", "A"]

    @pytest.mark.asyncio
    async def test_missing_dependency_is_skipped_in_tolerant_mode(self):
        log: List[str] = []
        manager = make_manager({"p1": RecordingPlugin("A", log, dependencies=["ghost"])})
        await manager.load_all()

        await manager.init_all(make_context())

        assert log == ["init:A"]

    @pytest.mark.asyncio
    async def test_cycle_is_broken_in_tolerant_mode(self):
        log: List[str] = []
        manager = make_manager(
            {
                "p1": RecordingPlugin("A", log, dependencies=["B"]),
                "p2": RecordingPlugin("B", log, dependencies=["A"]),
            }
        )
        await manager.load_all()

        order = [p.name for p in manager.resolve_order()]

        assert sorted(order) == ["A", "B"]

    @pytest.mark.asyncio
    async def test_strict_mode_raises_on_missing_dependency(self):
        log: List[str] = []
        manager = make_manager(
            {"p1": RecordingPlugin("A", log, dependencies=["ghost"])},
            strict_dependencies=True,
        )
        await manager.load_all()

        with pytest.raises(MissingDependencyError) as exc_info:
            await manager.init_all(make_context())

        assert exc_info.value.dependency == "ghost"
        assert exc_info.value.required_by == "A"
        assert log == []

    @pytest.mark.asyncio
    async def test_strict_mode_raises_on_cycle(self):
        log: List[str] = []
        manager = make_manager(
            {
                "p1": RecordingPlugin("A", log, dependencies=["B"]),
                "p2": RecordingPlugin("B", log, dependencies=["A"]),
            },
            strict_dependencies=True,
        )
        await manager.load_all()

        with pytest.raises(DependencyCycleError) as exc_info:
            manager.resolve_order()

        assert exc_info.value.cycle == ["A", "B", "A"]


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_failing_init_is_isolated(self):
        log: List[str] = []
        broken = RecordingPlugin("broken", log)
        broken.fail_init = True
        manager = make_manager(
            {"p1": broken, "p2": RecordingPlugin("after", log)}
        )
        await manager.load_all()

        await manager.init_all(make_context())

        assert log == ["init:broken", "init:after"]
        assert manager.failed_plugins == {"broken"}
        assert manager.initialized is True

    @pytest.mark.asyncio
    async def test_destroy_clears_failures(self):
        log: List[str] = []
        broken = RecordingPlugin("broken", log)
        broken.fail_init = True
        manager = make_manager({"p1": broken})
        await manager.load_all()
        await manager.init_all(make_context())

        await manager.destroy_all()

        assert manager.failed_plugins == set()

    @pytest.mark.asyncio
    async def test_failing_destroy_continues_and_clears(self, events, recorder):
        log: List[str] = []
        broken = RecordingPlugin("broken", log)
        broken.fail_destroy = True
        manager = make_manager(
            {"p1": RecordingPlugin("first", log), "p2": broken}, events=events
        )
        await manager.load_all()
        await manager.init_all(make_context())

        await manager.destroy_all()

        assert log[-2:] == ["destroy:broken", "destroy:first"]
        assert manager.get_available_plugins() == []
        assert manager.initialized is False
        assert recorder.payloads(Events.PLUGIN_DESTROYED) == [{"name": "first"}]

    @pytest.mark.asyncio
    async def test_get_by_type_accepts_plain_strings(self):
        log: List[str] = []
        manager = make_manager(
            {
                "s": RecordingPlugin("store", log, PluginType.STORAGE),
                "c": RecordingPlugin("chan", log, "channel"),
            }
        )
        await manager.load_all()

        assert [p.name for p in manager.get_by_type("storage")] == ["store"]
        assert [p.name for p in manager.get_channels()] == ["chan"]
        assert manager.get_models() == []
