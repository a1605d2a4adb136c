"""Tests for annotation queries and task status updates."""

from datetime import date

import pytest
import pytest_asyncio

from noteweave.models.annotations import TaskStatus
from noteweave.services.exceptions import NotFoundError, ValidationError

TASKS = """\
- [ ] @alice [2024-01-10] Draft outline
- [ ] @bob [2024-01-15 to 2024-01-20] Review draft
- [x] @alice [2024-02-01] Publish
"""

AGENTS = """\
```agent:summarize
length: short
```

```agent:translate
to: fr
```
"""


@pytest_asyncio.fixture
async def populated(content_service, sample_tree):
    b = await content_service.update_content(sample_tree["b"].id, TASKS + "{{c1::card}}")
    d = await content_service.update_content(sample_tree["d"].id, AGENTS)
    return {"b": b, "d": d}


@pytest.mark.asyncio
async def test_records_per_node(annotation_service, populated, sample_tree):
    tasks = await annotation_service.get_tasks_for_node(sample_tree["b"].id)
    assert sorted(t.description for t in tasks) == ["Draft outline", "Publish", "Review draft"]

    cards = await annotation_service.get_cards_for_node(sample_tree["b"].id)
    assert [c.content for c in cards] == ["card"]

    agents = await annotation_service.get_agents_for_node(sample_tree["d"].id)
    assert sorted(a.agent_type for a in agents) == ["summarize", "translate"]
    assert len(await annotation_service.get_all_agents()) == 2
    [translate] = await annotation_service.find_agents_by_type("translate")
    assert translate.config == {"to": "fr"}


@pytest.mark.asyncio
async def test_task_queries(annotation_service, populated):
    alice = await annotation_service.find_tasks_by_user("@alice")
    assert [t.description for t in alice] == ["Draft outline", "Publish"]
    assert alice[1].status == TaskStatus.DONE.value

    january = await annotation_service.find_tasks_by_date_range(date(2024, 1, 1), date(2024, 1, 31))
    assert [t.user_id for t in january] == ["alice", "bob"]

    with pytest.raises(ValidationError):
        await annotation_service.find_tasks_by_date_range(date(2024, 2, 1), date(2024, 1, 1))


@pytest.mark.asyncio
async def test_update_task_status(annotation_service, populated):
    task_id = populated["b"].task_ids[0]

    task = await annotation_service.update_task_status(task_id, "doing")
    assert task.status == TaskStatus.DOING.value

    with pytest.raises(ValidationError):
        await annotation_service.update_task_status(task_id, "blocked")
    with pytest.raises(NotFoundError):
        await annotation_service.update_task_status("task-00000000", "done")


@pytest.mark.asyncio
async def test_update_tasks_status_is_all_or_nothing(annotation_service, populated, task_repository):
    first, second, _ = populated["b"].task_ids

    with pytest.raises(NotFoundError):
        await annotation_service.update_tasks_status([first, "task-00000000"], "done")
    assert (await task_repository.find_by_id(first)).status == TaskStatus.TODO.value

    tasks = await annotation_service.update_tasks_status([second, first, second], "done")
    assert [t.id for t in tasks] == [second, first]
    assert all(t.status == TaskStatus.DONE.value for t in tasks)
