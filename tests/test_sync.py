"""Tests for the sync engine."""

import asyncio

import pytest
from fakes import FakeClock, FakeRenderer, FakeStore

from mindmapx.adapters.markdown_transformer import MarkdownTransformer
from mindmapx.core.errors import ParseError, StorageError
from mindmapx.core.line_index import build_index
from mindmapx.core.sync import SyncEngine, SyncOutcome, SyncState

DOC = "# Title\n- item one\n- item two\n"


def make_engine(store, renderer=None, clock=None, **kwargs):
    return SyncEngine(
        store,
        MarkdownTransformer(),
        renderer or FakeRenderer(),
        debounce_ms=300,
        clock=clock or FakeClock(),
        **kwargs,
    )


def test_bind_renders_document():
    store = FakeStore({"doc.md": DOC})
    renderer = FakeRenderer()
    engine = make_engine(store, renderer)

    outcome = asyncio.run(engine.bind("doc.md"))

    assert outcome is SyncOutcome.RENDERED
    assert engine.state is SyncState.IDLE
    assert renderer.renders == 1
    assert engine.root.content == "Title"
    assert [c.content for c in engine.root.children] == ["item one", "item two"]
    assert engine.index == build_index(DOC)
    assert engine.passes == 1


def test_second_pass_updates_in_place():
    store = FakeStore({"doc.md": DOC})
    renderer = FakeRenderer()
    engine = make_engine(store, renderer)

    async def scenario():
        await engine.bind("doc.md")
        diagram = engine.diagram
        store.docs["doc.md"] = "# Renamed\n"
        await engine.sync()
        return diagram

    first_diagram = asyncio.run(scenario())

    assert renderer.renders == 1
    assert renderer.updates == 1
    assert engine.diagram is first_diagram
    assert engine.root.content == "Renamed"
    assert "Renamed" in engine.index


def test_modification_burst_triggers_one_pass():
    store = FakeStore({"doc.md": DOC})
    engine = make_engine(store)

    async def scenario():
        await engine.bind("doc.md")
        for _ in range(5):
            store.fire_modified("doc.md")
        await engine.join()

    asyncio.run(scenario())

    # one pass from bind, one from the burst
    assert engine.passes == 2
    assert store.reads == ["doc.md", "doc.md"]


def test_editor_changes_share_the_debounce_window():
    store = FakeStore({"doc.md": DOC})
    clock = FakeClock()
    engine = make_engine(store, clock=clock)

    async def scenario():
        await engine.bind("doc.md")
        store.fire_modified("doc.md")
        store.fire_editor_changed("doc.md")
        clock.advance_ms(100)
        store.fire_editor_changed("doc.md")
        await engine.join()
        clock.advance_ms(300)
        store.fire_editor_changed("doc.md")
        await engine.join()

    asyncio.run(scenario())

    assert engine.passes == 3


def test_notifications_for_other_documents_are_ignored():
    store = FakeStore({"doc.md": DOC, "other.md": "# Other\n"})
    engine = make_engine(store)

    async def scenario():
        await engine.bind("doc.md")
        store.fire_editor_changed("other.md")
        await engine.join()

    asyncio.run(scenario())

    assert engine.passes == 1


def test_triggers_during_pass_coalesce_to_one_follow_up():
    store = FakeStore({"doc.md": DOC})
    engine = make_engine(store)

    async def scenario():
        await engine.bind("doc.md")
        gate = store.block("doc.md")
        running = asyncio.create_task(engine.sync())
        await asyncio.sleep(0)
        assert engine.state is SyncState.SYNCING
        outcomes = [await engine.sync() for _ in range(3)]
        gate.set()
        return outcomes, await running

    outcomes, final = asyncio.run(scenario())

    assert outcomes == [SyncOutcome.COALESCED] * 3
    assert final is SyncOutcome.RENDERED
    # bind + running pass + a single follow-up
    assert engine.passes == 3


def test_rebind_discards_in_flight_result():
    store = FakeStore({"a.md": "# A\n", "b.md": "# B\n"})
    renderer = FakeRenderer()
    engine = make_engine(store, renderer)

    async def scenario():
        gate = store.block("a.md")
        first = asyncio.create_task(engine.bind("a.md"))
        await asyncio.sleep(0)
        outcome = await engine.bind("b.md")
        gate.set()
        await first
        return outcome

    outcome = asyncio.run(scenario())

    assert outcome is SyncOutcome.COALESCED
    assert engine.handle == "b.md"
    assert engine.root.content == "B"
    assert [root.content for root, _ in renderer.history] == ["B"]


def test_rebind_detaches_previous_document():
    store = FakeStore({"a.md": "# A\n", "b.md": "# B\n"})
    engine = make_engine(store)

    async def scenario():
        await engine.bind("a.md")
        await engine.bind("b.md")
        store.fire_modified("a.md")
        await engine.join()

    asyncio.run(scenario())

    assert store.modified["a.md"] == []
    assert engine.passes == 2


def test_parse_error_keeps_last_good_state():
    store = FakeStore({"doc.md": DOC})
    renderer = FakeRenderer()
    engine = make_engine(store, renderer)

    async def scenario():
        await engine.bind("doc.md")
        store.docs["doc.md"] = "---\nkey: [unclosed\n---\n# Broken\n"
        with pytest.raises(ParseError):
            await engine.sync()

    asyncio.run(scenario())

    assert engine.state is SyncState.IDLE
    assert engine.root.content == "Title"
    assert "Broken" not in engine.index
    assert renderer.updates == 0
    assert isinstance(engine.last_error, ParseError)


def test_storage_error_propagates():
    store = FakeStore({"doc.md": DOC})
    engine = make_engine(store)

    async def scenario():
        await engine.bind("doc.md")
        store.fail_reads = True
        with pytest.raises(StorageError):
            await engine.sync()

    asyncio.run(scenario())

    assert engine.root.content == "Title"
    assert engine.state is SyncState.IDLE


def test_background_pass_errors_are_contained():
    store = FakeStore({"doc.md": DOC})
    engine = make_engine(store)

    async def scenario():
        await engine.bind("doc.md")
        store.fail_reads = True
        store.fire_modified("doc.md")
        await engine.join()

    asyncio.run(scenario())

    assert isinstance(engine.last_error, StorageError)
    assert engine.passes == 1


def test_unbound_sync_does_nothing():
    store = FakeStore()
    engine = make_engine(store)

    assert asyncio.run(engine.sync()) is SyncOutcome.UNBOUND
    assert store.reads == []


def test_frontmatter_options_reach_renderer():
    doc = "---\nmarkmap:\n  maxWidth: 120\n  colorFreezeLevel: 4\n---\n# T\n"
    store = FakeStore({"doc.md": doc})
    renderer = FakeRenderer()
    engine = make_engine(store, renderer)

    asyncio.run(engine.bind("doc.md"))

    _, options = renderer.history[-1]
    assert options.max_width == 120
    assert options.color_freeze_level == 4
    assert options.duration == 300
    # line numbers stay document-relative
    assert engine.index["T"].start == 5


def test_render_listeners_called_per_pass():
    store = FakeStore({"doc.md": DOC})
    engine = make_engine(store)
    seen = []
    engine.add_render_listener(lambda e: seen.append(e.passes))

    async def scenario():
        await engine.bind("doc.md")
        await engine.sync()

    asyncio.run(scenario())

    assert seen == [1, 2]


def test_trailing_mode_adds_one_follow_up_pass():
    store = FakeStore({"doc.md": DOC})
    engine = SyncEngine(
        store, MarkdownTransformer(), FakeRenderer(), debounce_ms=20, trailing=True
    )

    async def scenario():
        await engine.bind("doc.md")
        for _ in range(4):
            store.fire_modified("doc.md")
        await asyncio.sleep(0.1)
        await engine.join()

    asyncio.run(scenario())

    assert engine.passes == 3


def test_out_of_range_frontmatter_options_are_ignored():
    doc = "---\nmarkmap:\n  maxWidth: -80\n  colorFreezeLevel: -1\n  duration: 0\n---\n# T\n"
    store = FakeStore({"doc.md": doc})
    renderer = FakeRenderer()
    engine = make_engine(store, renderer)

    asyncio.run(engine.bind("doc.md"))

    _, options = renderer.history[-1]
    assert options.max_width == 300
    assert options.color_freeze_level == 2
    assert options.duration == 0
