"""Common test fixtures."""

from pathlib import Path
from typing import AsyncGenerator, List

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from noteweave import db
from noteweave.annotations.reconciler import AgentReconciler, ClozeReconciler, TaskReconciler
from noteweave.config import DatabaseType, NoteweaveConfig
from noteweave.context import AppContext, NamespaceRegistry
from noteweave.events import Event, InMemoryEventBus, Payload
from noteweave.repository import (
    AgentRepository,
    ClozeRepository,
    LinkRepository,
    NodeRepository,
    NodeTagRepository,
    TagRepository,
    TaskRepository,
)
from noteweave.services.annotation_service import AnnotationService
from noteweave.services.content_service import ContentService
from noteweave.services.link_service import LinkService
from noteweave.services.node_service import NodeService
from noteweave.services.srs_service import SrsService
from noteweave.services.tag_service import TagService
from noteweave.services.workspace import Workspace


class RecordingEventBus(InMemoryEventBus):
    """Event bus that keeps every published event for assertions."""

    def __init__(self) -> None:
        super().__init__()
        self.published: List[tuple[str, Payload]] = []

    def publish(self, event: Event, payload: Payload) -> None:
        self.published.append((Event(event).value, payload))
        super().publish(event, payload)

    def names(self) -> List[str]:
        return [name for name, _ in self.published]

    def payloads(self, event: Event) -> List[Payload]:
        return [payload for name, payload in self.published if name == Event(event).value]

    def clear(self) -> None:
        self.published.clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def config_home(tmp_path, monkeypatch) -> Path:
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("NOTEWEAVE_HOME", str(tmp_path / ".noteweave"))
    return tmp_path


@pytest.fixture(scope="function")
def app_config(config_home) -> NoteweaveConfig:
    """Test configuration backed by an in-memory database."""
    return NoteweaveConfig(
        env="test",
        database_type=DatabaseType.MEMORY,
        data_dir=config_home / ".noteweave",
        log_to_file=False,
    )


@pytest_asyncio.fixture(scope="function")
async def engine_factory(
    app_config,
) -> AsyncGenerator[tuple[AsyncEngine, async_sessionmaker[AsyncSession]], None]:
    async with db.engine_session_factory(db_type=DatabaseType.MEMORY) as (engine, session_maker):
        await db.create_schema(engine)
        yield engine, session_maker


@pytest_asyncio.fixture
async def session_maker(engine_factory) -> async_sessionmaker[AsyncSession]:
    """Get session maker for tests."""
    _, session_maker = engine_factory
    return session_maker


@pytest.fixture
def event_bus() -> RecordingEventBus:
    return RecordingEventBus()


@pytest.fixture
def namespaces() -> NamespaceRegistry:
    return NamespaceRegistry()


@pytest_asyncio.fixture
async def app_context(app_config, engine_factory, event_bus, namespaces) -> AppContext:
    engine, session_maker = engine_factory
    return AppContext(
        config=app_config,
        engine=engine,
        session_maker=session_maker,
        events=event_bus,
        namespaces=namespaces,
    )


## Repositories


@pytest_asyncio.fixture(scope="function")
async def node_repository(session_maker) -> NodeRepository:
    return NodeRepository(session_maker)


@pytest_asyncio.fixture(scope="function")
async def node_tag_repository(session_maker) -> NodeTagRepository:
    return NodeTagRepository(session_maker)


@pytest_asyncio.fixture(scope="function")
async def tag_repository(session_maker) -> TagRepository:
    return TagRepository(session_maker)


@pytest_asyncio.fixture(scope="function")
async def link_repository(session_maker) -> LinkRepository:
    return LinkRepository(session_maker)


@pytest_asyncio.fixture(scope="function")
async def cloze_repository(session_maker) -> ClozeRepository:
    return ClozeRepository(session_maker)


@pytest_asyncio.fixture(scope="function")
async def task_repository(session_maker) -> TaskRepository:
    return TaskRepository(session_maker)


@pytest_asyncio.fixture(scope="function")
async def agent_repository(session_maker) -> AgentRepository:
    return AgentRepository(session_maker)


## Services


@pytest_asyncio.fixture
async def node_service(
    node_repository: NodeRepository,
    node_tag_repository: NodeTagRepository,
    link_repository: LinkRepository,
    cloze_repository: ClozeRepository,
    task_repository: TaskRepository,
    agent_repository: AgentRepository,
    event_bus: RecordingEventBus,
    namespaces: NamespaceRegistry,
    app_config: NoteweaveConfig,
) -> NodeService:
    return NodeService(
        node_repository=node_repository,
        node_tag_repository=node_tag_repository,
        link_repository=link_repository,
        cloze_repository=cloze_repository,
        task_repository=task_repository,
        agent_repository=agent_repository,
        events=event_bus,
        namespaces=namespaces,
        app_config=app_config,
    )


@pytest_asyncio.fixture
async def tag_service(tag_repository, node_tag_repository, node_repository, event_bus) -> TagService:
    return TagService(
        tag_repository=tag_repository,
        node_tag_repository=node_tag_repository,
        node_repository=node_repository,
        events=event_bus,
    )


@pytest_asyncio.fixture
async def link_service(link_repository, node_repository, event_bus) -> LinkService:
    return LinkService(
        link_repository=link_repository,
        node_repository=node_repository,
        events=event_bus,
    )


@pytest_asyncio.fixture
async def annotation_service(cloze_repository, task_repository, agent_repository) -> AnnotationService:
    return AnnotationService(
        cloze_repository=cloze_repository,
        task_repository=task_repository,
        agent_repository=agent_repository,
    )


@pytest_asyncio.fixture
async def srs_service(cloze_repository, node_repository, event_bus, app_config) -> SrsService:
    return SrsService(
        cloze_repository=cloze_repository,
        node_repository=node_repository,
        events=event_bus,
        app_config=app_config,
    )


@pytest.fixture
def cloze_reconciler(cloze_repository) -> ClozeReconciler:
    return ClozeReconciler(cloze_repository)


@pytest.fixture
def task_reconciler(task_repository) -> TaskReconciler:
    return TaskReconciler(task_repository)


@pytest.fixture
def agent_reconciler(agent_repository) -> AgentReconciler:
    return AgentReconciler(agent_repository)


@pytest_asyncio.fixture
async def content_service(
    node_service, cloze_reconciler, task_reconciler, agent_reconciler, link_service
) -> ContentService:
    return ContentService(
        node_service=node_service,
        cloze_reconciler=cloze_reconciler,
        task_reconciler=task_reconciler,
        agent_reconciler=agent_reconciler,
        link_service=link_service,
    )


@pytest_asyncio.fixture
async def workspace(app_context: AppContext) -> Workspace:
    return Workspace(app_context)


## Data


@pytest_asyncio.fixture
async def sample_tree(node_service: NodeService):
    """Nodes in namespace "notes":

    /
    ├── a
    │   ├── b.md
    │   └── c
    │       └── d.md
    └── e.md
    """
    a = await node_service.create_node("notes", "/a", "directory")
    b = await node_service.create_node("notes", "/a/b.md", "file", content="bee")
    c = await node_service.create_node("notes", "/a/c", "directory")
    d = await node_service.create_node("notes", "/a/c/d.md", "file", content="dee")
    e = await node_service.create_node("notes", "/e.md", "file", content="eee")
    return {"a": a, "b": b, "c": c, "d": d, "e": e}
