"""Tests for the content write pipeline."""

import pytest

from noteweave.events import Event
from noteweave.services.exceptions import NotFoundError, ValidationError

TEXT = """\
# Notes
{{c1::Paris}} is the capital of France.
- [ ] @alice [2024-03-01] Check facts
```agent:summarize
length: short
```
Related: [[/e.md]]
"""


@pytest.mark.asyncio
async def test_pipeline_writes_ids_and_indexes(content_service, node_service, sample_tree, event_bus):
    b = sample_tree["b"]
    event_bus.clear()

    result = await content_service.update_content(b.id, TEXT)

    [cloze_id] = result.cloze_ids
    [task_id] = result.task_ids
    [agent_id] = result.agent_ids
    assert f"{{{{c1::Paris}}}} ^{cloze_id} is the capital" in result.content
    assert f"Check facts ^{task_id}\n" in result.content
    assert f"```agent:summarize ^{agent_id}\n" in result.content
    assert result.link_count == 1
    assert result.links_refreshed

    stored = await node_service.get_node(b.id)
    assert stored.content == result.content
    assert event_bus.names() == [Event.NODE_CONTENT_UPDATED.value]


@pytest.mark.asyncio
async def test_resubmitting_output_is_stable(content_service, sample_tree):
    first = await content_service.update_content(sample_tree["b"].id, TEXT)
    second = await content_service.update_content(sample_tree["b"].id, first.content)

    assert second.content == first.content
    assert second.cloze_ids == first.cloze_ids
    assert second.task_ids == first.task_ids
    assert second.agent_ids == first.agent_ids


@pytest.mark.asyncio
async def test_removing_markers_removes_records(content_service, annotation_service, sample_tree):
    b = sample_tree["b"].id
    await content_service.update_content(b, TEXT)
    result = await content_service.update_content(b, "plain text")

    assert result.cloze_ids == result.task_ids == result.agent_ids == []
    assert result.link_count == 0
    assert await annotation_service.get_cards_for_node(b) == []
    assert await annotation_service.get_tasks_for_node(b) == []
    assert await annotation_service.get_agents_for_node(b) == []


@pytest.mark.asyncio
async def test_only_files_have_content(content_service, sample_tree):
    with pytest.raises(ValidationError):
        await content_service.update_content(sample_tree["a"].id, "text")
    with pytest.raises(NotFoundError):
        await content_service.update_content("notes-missing", "text")


@pytest.mark.asyncio
async def test_link_refresh_failure_keeps_content(
    content_service, node_service, sample_tree, monkeypatch
):
    async def failing_refresh(source_node_id, text):
        raise NotFoundError(f"Node not found: {source_node_id}")

    monkeypatch.setattr(content_service.link_service, "refresh_links", failing_refresh)

    result = await content_service.update_content(sample_tree["b"].id, TEXT)
    assert not result.links_refreshed
    assert result.link_count == 0
    assert len(result.cloze_ids) == 1
    assert (await node_service.get_node(sample_tree["b"].id)).content == result.content
