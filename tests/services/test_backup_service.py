"""Tests for whole-database export, import and clearing."""

import json
from datetime import date

import pytest
import pytest_asyncio

from noteweave.events import Event
from noteweave.schemas.srs import Rating
from noteweave.services.backup_service import EXPORT_VERSION
from noteweave.services.exceptions import ValidationError

CONTENT = "{{c1::Paris}} is in France\n- [ ] @alice [2024-01-31 to 2024-02-02] Plan trip\n"


@pytest_asyncio.fixture
async def populated(workspace):
    await workspace.create_directory("notes", "/deck")
    other = await workspace.create_file("notes", "/deck/other.md", content="plain")
    node = await workspace.create_file(
        "notes",
        "/deck/france.md",
        content=CONTENT + f"See [[{other.id}]]\n",
        meta={"tags": ["geo"]},
    )
    [card] = await workspace.annotations.get_cards_for_node(node.id)
    await workspace.srs.grade_card(card.id, Rating.GOOD)
    return {"node": node, "other": other, "card_id": card.id}


def as_json(bundle) -> dict:
    return json.loads(bundle.model_dump_json())


@pytest.mark.asyncio
async def test_export_covers_every_table(workspace, populated):
    bundle = await workspace.backup.export_all()

    assert bundle.meta.version == EXPORT_VERSION
    assert set(bundle.data) == {"node", "tag", "node_tag", "link", "cloze_card", "task", "agent_block"}
    assert len(bundle.data["node"]) == 4
    assert [row["tag_name"] for row in bundle.data["node_tag"]] == ["geo"]
    assert bundle.data["agent_block"] == []


@pytest.mark.asyncio
async def test_round_trip_through_json(workspace, populated, namespaces, event_bus):
    dump = as_json(await workspace.backup.export_all())
    card_before = await workspace.srs.get_card(populated["card_id"])

    await workspace.backup.clear_all()
    assert await workspace.node_repository.count() == 0
    assert namespaces.namespaces() == []

    written = await workspace.backup.import_all(dump)
    assert written["node"] == 4
    assert written["cloze_card"] == 1
    assert event_bus.payloads(Event.DATA_IMPORTED) == [{"tables": written}]

    node = await workspace.nodes.get_node_by_path("notes", "/deck/france.md")
    assert node.id == populated["node"].id
    assert node.content == populated["node"].content
    assert node.created_at == populated["node"].created_at
    assert await workspace.tags.get_tags_for_node(node.id) == ["geo"]
    assert [n.id for n in await workspace.links.get_backlinks(populated["other"].id)] == [node.id]

    card = await workspace.srs.get_card(populated["card_id"])
    assert card.tier == card_before.tier
    assert card.due_date == card_before.due_date
    assert card.repetitions == 1

    [task] = await workspace.annotations.get_tasks_for_node(node.id)
    assert (task.start_date, task.end_date) == (date(2024, 1, 31), date(2024, 2, 2))

    # the imported root is reused
    added = await workspace.create_file("notes", "/new.md")
    root = await workspace.nodes.get_node_by_path("notes", "/")
    assert added.parent_id == root.id
    assert len(await workspace.nodes.list_nodes("notes", kind=None)) == 5


@pytest.mark.asyncio
async def test_import_replaces_only_tables_in_the_dump(workspace, populated):
    dump = as_json(await workspace.backup.export_all())
    dump["data"] = {"task": [], "unknown_table": [{"x": 1}]}

    written = await workspace.backup.import_all(dump)

    assert written == {"task": 0}
    assert await workspace.annotations.get_tasks_for_node(populated["node"].id) == []
    assert await workspace.tags.get_tags_for_node(populated["node"].id) == ["geo"]
    assert await workspace.node_repository.count() == 4


@pytest.mark.asyncio
async def test_newer_dump_is_rejected(workspace, populated):
    dump = as_json(await workspace.backup.export_all())
    dump["meta"]["version"] = EXPORT_VERSION + 1
    dump["data"]["node"] = []

    with pytest.raises(ValidationError, match="newer"):
        await workspace.backup.import_all(dump)
    assert await workspace.node_repository.count() == 4


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"data": {}},
        {"meta": {"version": "one", "exported_at": "2024-01-01T00:00:00Z"}, "data": {}},
        {"meta": {"version": 1, "exported_at": "2024-01-01T00:00:00Z"}, "data": {"node": "x"}},
    ],
)
async def test_malformed_dump_is_rejected(workspace, payload):
    with pytest.raises(ValidationError):
        await workspace.backup.import_all(payload)


@pytest.mark.asyncio
async def test_bad_timestamp_rolls_back(workspace, populated):
    dump = as_json(await workspace.backup.export_all())
    dump["data"]["node"][0]["created_at"] = "yesterday"

    with pytest.raises(ValidationError, match="node.created_at"):
        await workspace.backup.import_all(dump)
    assert await workspace.node_repository.count() == 4


@pytest.mark.asyncio
async def test_clear_all(workspace, populated, event_bus):
    cleared = await workspace.backup.clear_all()

    assert cleared["node"] == 4
    assert cleared["cloze_card"] == 1
    assert await workspace.nodes.get_tree("notes") is None
    assert event_bus.payloads(Event.DATA_CLEARED) == [{"tables": cleared}]


@pytest.mark.asyncio
async def test_storage_info(workspace, populated):
    info = await workspace.backup.get_storage_info()

    assert info.database_type == "memory"
    assert info.database_path is None
    assert info.size_bytes is None
    assert info.row_counts["node"] == 4
    assert info.row_counts["task"] == 1
    assert info.total_rows == sum(info.row_counts.values())
