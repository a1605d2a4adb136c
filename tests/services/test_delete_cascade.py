"""Tests that deleting a node removes every row that references it."""

import pytest
from sqlalchemy import func, select

from noteweave.events import Event
from noteweave.models import AgentBlock, ClozeCard, Link, Node, NodeTag, Task

CONTENT = """\
{{c1::first}} and {{c2::second}}
- [ ] @alice [2024-01-31] Follow up
```agent:summarize
model: small
```
See [[/e.md]].
"""


async def count_rows(session_maker, column, ids):
    async with session_maker() as session:
        result = await session.execute(select(func.count()).where(column.in_(ids)))
        return result.scalar_one()


@pytest.mark.asyncio
async def test_delete_subtree_cascades(
    session_maker, node_service, content_service, tag_service, sample_tree, event_bus
):
    d, e = sample_tree["d"], sample_tree["e"]
    await content_service.update_content(d.id, CONTENT)
    await content_service.update_content(e.id, f"back to [[{d.id}]]")
    await tag_service.add_tag_to_node(d.id, "keep")
    await tag_service.add_tag_to_node(e.id, "keep")
    event_bus.clear()

    result = await node_service.delete_node(sample_tree["a"].id)

    removed = set(result.all_removed_ids)
    assert removed == {sample_tree[k].id for k in ("a", "b", "c", "d")}
    assert result.deleted
    for column in (
        Node.id,
        NodeTag.node_id,
        ClozeCard.host_node_id,
        Task.host_node_id,
        AgentBlock.host_node_id,
        Link.source_node_id,
        Link.target_node_id,
    ):
        assert await count_rows(session_maker, column, removed) == 0, column

    # the rest of the namespace is untouched
    assert (await node_service.get_node(e.id)).content == f"back to [[{d.id}]]"
    assert await tag_service.get_tags_for_node(e.id) == ["keep"]

    [payload] = event_bus.payloads(Event.NODE_REMOVED)
    assert payload["removed_node_id"] == sample_tree["a"].id
    assert set(payload["all_removed_ids"]) == removed


@pytest.mark.asyncio
async def test_delete_missing_node_is_noop(node_service, event_bus):
    result = await node_service.delete_node("notes-missing")
    assert not result.deleted
    assert result.all_removed_ids == []
    assert event_bus.published == []


@pytest.mark.asyncio
async def test_delete_root_disposes_namespace(
    node_service, node_repository, namespaces, sample_tree
):
    root = await node_service.get_node_by_path("notes", "/")
    await node_service.create_node("work", "/x.md", "file")

    result = await node_service.delete_node(root.id)

    assert len(result.all_removed_ids) == 6
    assert "notes" not in namespaces
    assert "work" in namespaces
    assert await node_service.list_nodes("notes") == []
    assert await node_repository.count() == 2

    node = await node_service.create_node("notes", "/a", "directory")
    new_root = await node_service.get_node_by_path("notes", "/")
    assert new_root.id != root.id
    assert node.parent_id == new_root.id
    assert namespaces.root_id("notes") == new_root.id


@pytest.mark.asyncio
async def test_delete_nodes_in_one_batch(
    session_maker, node_service, content_service, sample_tree, event_bus
):
    d, e = sample_tree["d"], sample_tree["e"]
    await content_service.update_content(d.id, CONTENT)
    event_bus.clear()

    ids = [sample_tree["c"].id, d.id, "notes-missing", e.id]
    results = await node_service.delete_nodes(ids)

    assert [r.removed_node_id for r in results] == ids
    assert set(results[0].all_removed_ids) == {sample_tree["c"].id, d.id}
    # already removed with its parent
    assert not results[1].deleted
    assert not results[2].deleted
    assert results[3].all_removed_ids == [e.id]

    assert await count_rows(session_maker, ClozeCard.host_node_id, [d.id]) == 0
    paths = [node.path for node in await node_service.list_nodes("notes")]
    assert sorted(paths) == ["/", "/a", "/a/b.md"]

    removed = [p["removed_node_id"] for p in event_bus.payloads(Event.NODE_REMOVED)]
    assert removed == [sample_tree["c"].id, e.id]
