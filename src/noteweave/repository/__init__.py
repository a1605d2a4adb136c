from noteweave.repository.agent_repository import AgentRepository
from noteweave.repository.cloze_repository import ClozeRepository
from noteweave.repository.link_repository import LinkRepository
from noteweave.repository.node_repository import NodeRepository
from noteweave.repository.tag_repository import NodeTagRepository, TagRepository
from noteweave.repository.task_repository import TaskRepository

__all__ = [
    "AgentRepository",
    "ClozeRepository",
    "LinkRepository",
    "NodeRepository",
    "NodeTagRepository",
    "TagRepository",
    "TaskRepository",
]
