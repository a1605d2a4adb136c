"""Tests for the Workspace facade."""

import pytest

from noteweave.schemas.srs import ReviewScope


@pytest.mark.asyncio
async def test_create_file_with_tags_and_content(workspace):
    await workspace.create_directory("notes", "/deck")
    node = await workspace.create_file(
        "notes",
        "/deck/capitals.md",
        content="{{c1::Paris}} and {{c1::Rome}}",
        meta={"tags": ["geo", "cards"]},
    )

    assert node.content.count("^clz-") == 2
    assert node.meta == {"tags": ["geo", "cards"]}
    assert await workspace.tags.get_tags_for_node(node.id) == ["cards", "geo"]

    stats = await workspace.srs.get_statistics(ReviewScope.for_namespace("notes"))
    assert stats.new == 2


@pytest.mark.asyncio
async def test_create_empty_file_and_write(workspace):
    node = await workspace.create_file("notes", "/empty.md")
    assert node.content == ""

    result = await workspace.write(node.id, "- [ ] @me [2024-05-01] Start")
    assert len(result.task_ids) == 1
    assert [t.user_id for t in await workspace.annotations.find_tasks_by_user("me")] == ["me"]


@pytest.mark.asyncio
async def test_repositories_share_batch_size(workspace, app_config):
    assert workspace.node_repository.batch_size == app_config.delete_batch_size
    assert workspace.nodes.namespaces is workspace.context.namespaces
