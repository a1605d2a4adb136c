"""Tests for annotation reconciliation against stored records."""

import re
from datetime import timedelta

import pytest

from noteweave.models.annotations import CardTier, TaskStatus

CLOZE_ID = re.compile(r"\^(clz-[0-9a-f]{8})")


@pytest.mark.asyncio
async def test_cloze_ids_written_back(cloze_reconciler, cloze_repository):
    text = "Q: {{c1::answer}} and {{c2::other}}\n"
    result = await cloze_reconciler.reconcile("n1", text)

    ids = CLOZE_ID.findall(result.text)
    assert len(ids) == 2
    assert ids == result.ids
    assert sorted(result.created) == sorted(ids)
    assert result.text.startswith("Q: {{c1::answer}} ^clz-")

    stored = await cloze_repository.find_by_host("n1")
    assert {card.id for card in stored} == set(ids)
    card = next(c for c in stored if c.content == "other")
    assert card.cluster == 2
    assert card.tier == CardTier.NEW.value


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(cloze_reconciler):
    first = await cloze_reconciler.reconcile("n1", "{{c1::a}} {{c1::b}}")
    second = await cloze_reconciler.reconcile("n1", first.text)

    assert second.text == first.text
    assert second.ids == first.ids
    assert second.created == []
    assert second.removed == []


@pytest.mark.asyncio
async def test_existing_id_is_kept(cloze_reconciler):
    text = "{{c1::a}} ^clz-0000abcd"
    result = await cloze_reconciler.reconcile("n1", text)
    assert result.text == text
    assert result.ids == ["clz-0000abcd"]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text, rest",
    [
        ("{{c1::un}}believable", " believable"),
        ("{{c1::state}}-of-the-art", " -of-the-art"),
    ],
)
async def test_cloze_followed_by_word_keeps_its_id(cloze_reconciler, cloze_repository, text, rest):
    first = await cloze_reconciler.reconcile("n1", text)
    (card_id,) = first.ids
    assert first.text.endswith(f"^{card_id}{rest}")

    await cloze_repository.update(card_id, {"repetitions": 3, "interval": 6})

    second = await cloze_reconciler.reconcile("n1", first.text)
    assert second.text == first.text
    assert second.ids == [card_id]
    assert second.created == []
    assert second.removed == []
    card = await cloze_repository.find_by_id(card_id)
    assert card.repetitions == 3


@pytest.mark.asyncio
async def test_minted_id_glued_to_word_is_read_exactly(cloze_reconciler):
    text = "{{c1::un}} ^clz-0000abcdbelievable"
    result = await cloze_reconciler.reconcile("n1", text)
    assert result.text == text
    assert result.ids == ["clz-0000abcd"]


@pytest.mark.asyncio
async def test_duplicate_id_is_replaced(cloze_reconciler):
    text = "{{c1::a}} ^clz-0000abcd\n{{c1::b}} ^clz-0000abcd"
    result = await cloze_reconciler.reconcile("n1", text)

    first_id, second_id = result.ids
    assert first_id == "clz-0000abcd"
    assert second_id != first_id
    assert CLOZE_ID.findall(result.text) == [first_id, second_id]


@pytest.mark.asyncio
async def test_id_owned_by_other_host_is_replaced(cloze_reconciler, cloze_repository):
    text = "{{c1::copied}} ^clz-0000abcd"
    await cloze_reconciler.reconcile("n1", text)
    result = await cloze_reconciler.reconcile("n2", text)

    [new_id] = result.ids
    assert new_id != "clz-0000abcd"
    assert result.text == f"{{{{c1::copied}}}} ^{new_id}"

    original = await cloze_repository.find_by_id("clz-0000abcd")
    assert original.host_node_id == "n1"


@pytest.mark.asyncio
async def test_stale_records_are_deleted(cloze_reconciler, cloze_repository):
    first = await cloze_reconciler.reconcile("n1", "{{c1::a}} {{c1::b}}")
    kept_text = first.text.split(" {{c1::b}}")[0]

    second = await cloze_reconciler.reconcile("n1", kept_text)
    assert second.removed == [first.ids[1]]
    assert [c.id for c in await cloze_repository.find_by_host("n1")] == [first.ids[0]]

    third = await cloze_reconciler.reconcile("n1", "")
    assert third.removed == [first.ids[0]]
    assert await cloze_repository.find_by_host("n1") == []


@pytest.mark.asyncio
async def test_scheduling_state_survives_content_edit(cloze_reconciler, cloze_repository):
    first = await cloze_reconciler.reconcile("n1", "{{c1::old}}")
    [card_id] = first.ids
    await cloze_repository.update(card_id, {"tier": CardTier.REVIEW.value, "interval": 6})

    edited = first.text.replace("old", "new")
    await cloze_reconciler.reconcile("n1", edited)

    card = await cloze_repository.find_by_id(card_id)
    assert card.content == "new"
    assert card.tier == CardTier.REVIEW.value
    assert card.interval == 6


@pytest.mark.asyncio
async def test_updated_at_only_changes_with_payload(cloze_reconciler, cloze_repository):
    first = await cloze_reconciler.reconcile("n1", "{{c1::same}}")
    [card_id] = first.ids
    marker = (await cloze_repository.find_by_id(card_id)).updated_at - timedelta(days=1)
    await cloze_repository.update(card_id, {"updated_at": marker})

    await cloze_reconciler.reconcile("n1", first.text)
    assert (await cloze_repository.find_by_id(card_id)).updated_at == marker

    await cloze_reconciler.reconcile("n1", first.text.replace("{{c1", "{{c2", 1))
    assert (await cloze_repository.find_by_id(card_id)).updated_at > marker


@pytest.mark.asyncio
async def test_task_fields_and_id(task_reconciler, task_repository):
    text = "- [ ] @alice [2024-01-31 to 2024-02-02] Write report  \n"
    result = await task_reconciler.reconcile("n1", text)

    [task_id] = result.ids
    assert task_id.startswith("task-")
    assert result.text == f"- [ ] @alice [2024-01-31 to 2024-02-02] Write report ^{task_id}  \n"

    task = await task_repository.find_by_id(task_id)
    assert task.user_id == "alice"
    assert task.description == "Write report"
    assert task.status == TaskStatus.TODO.value
    assert str(task.end_date) == "2024-02-02"


@pytest.mark.asyncio
async def test_task_status_follows_checkbox(task_reconciler, task_repository):
    result = await task_reconciler.reconcile("n1", "- [ ] @alice [2024-01-31] Work")
    [task_id] = result.ids
    unchecked = result.text

    await task_repository.update(task_id, {"status": TaskStatus.DOING.value})
    await task_reconciler.reconcile("n1", unchecked)
    assert (await task_repository.find_by_id(task_id)).status == TaskStatus.DOING.value

    checked = unchecked.replace("- [ ]", "- [x]")
    await task_reconciler.reconcile("n1", checked)
    assert (await task_repository.find_by_id(task_id)).status == TaskStatus.DONE.value

    await task_reconciler.reconcile("n1", unchecked)
    assert (await task_repository.find_by_id(task_id)).status == TaskStatus.TODO.value


@pytest.mark.asyncio
async def test_agent_block(agent_reconciler, agent_repository):
    text = "```agent:summarize\nmodel: small\n```\n"
    result = await agent_reconciler.reconcile("n1", text)

    [agent_id] = result.ids
    assert result.text == f"```agent:summarize ^{agent_id}\nmodel: small\n```\n"

    block = await agent_repository.find_by_id(agent_id)
    assert block.agent_type == "summarize"
    assert block.config == {"model": "small"}
    assert block.run_count == 0

    edited = result.text.replace("small", "large")
    again = await agent_reconciler.reconcile("n1", edited)
    assert again.ids == [agent_id]
    assert (await agent_repository.find_by_id(agent_id)).config == {"model": "large"}
