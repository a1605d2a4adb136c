"""Service for the namespace node tree."""

from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from noteweave import db
from noteweave.config import NoteweaveConfig
from noteweave.context import NamespaceRegistry
from noteweave.events import Event, EventBus
from noteweave.models.nodes import Node, NodeKind
from noteweave.repository.agent_repository import AgentRepository
from noteweave.repository.cloze_repository import ClozeRepository
from noteweave.repository.link_repository import LinkRepository
from noteweave.repository.node_repository import NodeRepository
from noteweave.repository.tag_repository import NodeTagRepository
from noteweave.repository.task_repository import TaskRepository
from noteweave.schemas.results import DeleteResult
from noteweave.schemas.tree import TreeNode
from noteweave.services.exceptions import ConflictError, NotFoundError, ValidationError
from noteweave.services.service import BaseService
from noteweave.utils import (
    ROOT_PATH,
    generate_node_id,
    generate_root_id,
    is_same_or_descendant,
    join_path,
    normalize_path,
    split_path,
    utcnow,
    validate_name,
    virtual_root_id,
    with_conflict_suffix,
)

UPDATABLE_FIELDS = frozenset({"content", "meta"})
STRUCTURAL_FIELDS = frozenset({"id", "namespace", "path", "name", "parent_id", "kind"})

NodeFilter = Callable[[Node], bool]


class NodeService(BaseService[Node]):
    """Create, read, update, move, rename and delete nodes.

    Every operation is one transaction. Moves and renames rewrite descendant
    paths with a single prefix update over the path index, and deletes remove
    the node, its descendants and every row that references them in every
    dependent table at once.
    """

    def __init__(
        self,
        node_repository: NodeRepository,
        node_tag_repository: NodeTagRepository,
        link_repository: LinkRepository,
        cloze_repository: ClozeRepository,
        task_repository: TaskRepository,
        agent_repository: AgentRepository,
        events: EventBus,
        namespaces: NamespaceRegistry,
        app_config: NoteweaveConfig,
    ):
        super().__init__(node_repository, events)
        self.node_tag_repository = node_tag_repository
        self.link_repository = link_repository
        self.cloze_repository = cloze_repository
        self.task_repository = task_repository
        self.agent_repository = agent_repository
        self.namespaces = namespaces
        self.app_config = app_config

    @property
    def session_maker(self):
        return self.repository.session_maker

    # -- create --------------------------------------------------------------

    async def create_node(
        self,
        namespace: str,
        path: str,
        kind: NodeKind | str,
        content: Optional[str] = None,
        meta: Optional[Dict[str, Any]] = None,
    ) -> Node:
        """Create a node at `path`, creating the namespace root if needed.

        A taken path gets " (n)" appended to its leaf name, up to
        `max_path_conflict_attempts` tries.

        Raises:
            ValidationError: empty namespace, bad path or kind, file parent
            NotFoundError: the parent directory does not exist
            ConflictError: no free name within the retry bound
        """
        namespace = (namespace or "").strip()
        if not namespace:
            raise ValidationError("namespace is required")
        if not path:
            raise ValidationError("path is required")
        try:
            path = normalize_path(path)
            kind = NodeKind(kind)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        if kind == NodeKind.DIRECTORY and content is not None:
            raise ValidationError("directories cannot have content")

        logger.debug(f"Creating node: namespace={namespace} path={path} kind={kind.value}")
        created: List[Node] = []
        async with db.scoped_session(self.session_maker) as session:
            root = await self._ensure_root(session, namespace, created)
            if path == ROOT_PATH:
                if kind != NodeKind.DIRECTORY:
                    raise ValidationError("the namespace root is a directory")
                node = root
            else:
                parent_path, name = split_path(path)
                if parent_path == ROOT_PATH:
                    parent = root
                else:
                    parent = await self.repository.get_by_path(namespace, parent_path, session=session)
                if parent is None:
                    raise NotFoundError(f"Parent not found: {namespace}:{parent_path}")
                if not parent.is_directory:
                    raise ValidationError(f"Parent is not a directory: {parent.path}")

                name = await self._available_name(session, namespace, parent.path, name)
                now = utcnow()
                node = Node(
                    id=generate_node_id(namespace),
                    namespace=namespace,
                    path=join_path(parent.path, name),
                    name=name,
                    kind=kind.value,
                    parent_id=parent.id,
                    content=(content or "") if kind == NodeKind.FILE else None,
                    meta=dict(meta or {}),
                    created_at=now,
                    updated_at=now,
                )
                await self.repository.add(node, session=session)
                created.append(node)

        self.namespaces.register(namespace, root.id)
        for new_node in created:
            logger.info(f"Created node {new_node.id} at {new_node.namespace}:{new_node.path}")
            self.publish(Event.NODE_CREATED, {"node": new_node, "parent_id": new_node.parent_id})
        return node

    async def _ensure_root(
        self, session: AsyncSession, namespace: str, created: List[Node]
    ) -> Node:
        root = None
        cached_id = self.namespaces.root_id(namespace)
        if cached_id is not None:
            root = await self.repository.find_by_id(cached_id, session=session)
            if root is None:
                self.namespaces.dispose(namespace)
        if root is None:
            root = await self.repository.get_root(namespace, session=session)
        if root is None:
            now = utcnow()
            root = Node(
                id=generate_root_id(namespace),
                namespace=namespace,
                path=ROOT_PATH,
                name="",
                kind=NodeKind.DIRECTORY.value,
                parent_id=None,
                content=None,
                meta={},
                created_at=now,
                updated_at=now,
            )
            await self.repository.add(root, session=session)
            created.append(root)
        return root

    async def _available_name(
        self, session: AsyncSession, namespace: str, parent_path: str, name: str
    ) -> str:
        max_attempts = self.app_config.max_path_conflict_attempts
        candidate = name
        attempt = 0
        while await self.repository.path_exists(
            namespace, join_path(parent_path, candidate), session=session
        ):
            attempt += 1
            if attempt > max_attempts:
                raise ConflictError(
                    f"No free name for {join_path(parent_path, name)} after {max_attempts} attempts"
                )
            candidate = with_conflict_suffix(name, attempt)
        if candidate != name:
            logger.debug(f"Path taken, using {candidate!r} instead of {name!r}")
        return candidate

    # -- read ----------------------------------------------------------------

    async def get_node(self, node_id: str) -> Node:
        node = await self.repository.find_by_id(node_id)
        if node is None:
            raise NotFoundError(f"Node not found: {node_id}")
        return node

    async def get_node_by_path(self, namespace: str, path: str) -> Node:
        try:
            path = normalize_path(path)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        node = await self.repository.get_by_path(namespace, path)
        if node is None:
            raise NotFoundError(f"Node not found: {namespace}:{path}")
        return node

    async def find_by_ids(self, node_ids: Sequence[str]) -> List[Node]:
        return await self.repository.find_by_ids(node_ids)

    async def list_nodes(
        self,
        namespace: str,
        kind: Optional[NodeKind] = None,
        offset: int = 0,
        limit: Optional[int] = None,
    ) -> Sequence[Node]:
        return await self.repository.find_by_namespace(namespace, kind=kind, offset=offset, limit=limit)

    async def get_descendants(self, node_id: str) -> Sequence[Node]:
        node = await self.get_node(node_id)
        return await self.repository.find_descendants(node.namespace, node.path)

    # -- update --------------------------------------------------------------

    async def update_node(self, node_id: str, fields: Dict[str, Any]) -> Node:
        """Merge `content` and/or `meta` into a node and bump `updated_at`.

        `meta` is merged one level deep. Structural fields go through
        rename_node and move_node instead.
        """
        structural = STRUCTURAL_FIELDS & fields.keys()
        if structural:
            raise ValidationError(
                f"Cannot update {sorted(structural)} directly; use rename_node or move_node"
            )
        unknown = fields.keys() - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown node fields: {sorted(unknown)}")

        async with db.scoped_session(self.session_maker) as session:
            node = await self.repository.find_by_id(node_id, session=session)
            if node is None:
                raise NotFoundError(f"Node not found: {node_id}")
            if "content" in fields:
                if not node.is_file:
                    raise ValidationError(f"Only files have content: {node.path}")
                node.content = fields["content"] or ""
            if "meta" in fields:
                node.meta = {**(node.meta or {}), **(fields["meta"] or {})}
            node.updated_at = utcnow()

        event = Event.NODE_CONTENT_UPDATED if "content" in fields else Event.NODE_METADATA_UPDATED
        logger.debug(f"Updated node {node_id}: {sorted(fields)}")
        self.publish(event, {"node": node})
        return node

    async def update_nodes_meta(self, updates: Dict[str, Dict[str, Any]]) -> List[Node]:
        """Merge `meta` into several nodes in one transaction.

        `updates` maps node id to the meta to merge. Any missing id fails the
        whole batch with NotFoundError and nothing is written.
        """
        nodes: List[Node] = []
        async with db.scoped_session(self.session_maker) as session:
            found = {
                node.id: node
                for node in await self.repository.find_by_ids(updates.keys(), session=session)
            }
            missing = sorted(updates.keys() - found.keys())
            if missing:
                raise NotFoundError(f"Nodes not found: {missing}")
            now = utcnow()
            for node_id, meta in updates.items():
                node = found[node_id]
                node.meta = {**(node.meta or {}), **(meta or {})}
                node.updated_at = now
                nodes.append(node)

        logger.debug(f"Updated meta on {len(nodes)} nodes")
        for node in nodes:
            self.publish(Event.NODE_METADATA_UPDATED, {"node": node})
        return nodes

    async def rename_node(self, node_id: str, new_name: str) -> Node:
        try:
            new_name = validate_name(new_name)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        async with db.scoped_session(self.session_maker) as session:
            node = await self.repository.find_by_id(node_id, session=session)
            if node is None:
                raise NotFoundError(f"Node not found: {node_id}")
            if node.is_root:
                raise ValidationError("The namespace root cannot be renamed")
            if new_name == node.name:
                return node

            parent_path, _ = split_path(node.path)
            new_path = join_path(parent_path, new_name)
            await self._relocate(session, node, new_path, node.parent_id, name=new_name)

        self.publish(Event.NODE_RENAMED, {"node": node})
        return node

    async def move_node(self, node_id: str, new_parent_id: str) -> Node:
        async with db.scoped_session(self.session_maker) as session:
            node = await self.repository.find_by_id(node_id, session=session)
            if node is None:
                raise NotFoundError(f"Node not found: {node_id}")
            parent = await self.repository.find_by_id(new_parent_id, session=session)
            if parent is None:
                raise NotFoundError(f"Target parent not found: {new_parent_id}")
            if node.namespace != parent.namespace:
                raise ConflictError(
                    f"Cannot move across namespaces: {node.namespace} -> {parent.namespace}"
                )
            if node.is_root:
                raise ValidationError("The namespace root cannot be moved")
            if not parent.is_directory:
                raise ValidationError(f"Target parent is not a directory: {parent.path}")
            if is_same_or_descendant(parent.path, node.path):
                raise ConflictError(f"Cannot move {node.path} into itself or a descendant")
            if node.parent_id == parent.id:
                return node

            new_path = join_path(parent.path, node.name)
            await self._relocate(session, node, new_path, parent.id)

        self.publish(
            Event.NODE_MOVED, {"node_id": node.id, "new_parent_id": new_parent_id, "node": node}
        )
        return node

    async def _relocate(
        self,
        session: AsyncSession,
        node: Node,
        new_path: str,
        parent_id: Optional[str],
        name: Optional[str] = None,
    ) -> None:
        """Point `node` at `new_path` and rewrite every descendant's path prefix."""
        if await self.repository.path_exists(node.namespace, new_path, session=session):
            raise ConflictError(f"Path already exists: {node.namespace}:{new_path}")

        old_path = node.path
        node.path = new_path
        node.parent_id = parent_id
        if name is not None:
            node.name = name
        node.updated_at = utcnow()
        await session.flush()

        rewritten = await self.repository.rewrite_descendant_paths(
            node.namespace, old_path, new_path, session=session
        )
        logger.info(
            "Relocated node",
            namespace=node.namespace,
            old_path=old_path,
            new_path=new_path,
            descendants=rewritten,
        )

    # -- delete --------------------------------------------------------------

    async def delete_node(self, node_id: str) -> DeleteResult:
        """Delete a node, its descendants and everything that references them.

        Deleting a node that does not exist is a no-op.
        """
        [result] = await self.delete_nodes([node_id])
        return result

    async def delete_nodes(self, node_ids: Sequence[str]) -> List[DeleteResult]:
        """Delete several nodes in one transaction, returning one result per id.

        An id that is missing, or that was already removed as a descendant of
        an earlier id in the batch, gets an empty result.
        """
        results: List[DeleteResult] = []
        deleted: List[tuple[Node, DeleteResult]] = []
        removed: Set[str] = set()
        async with db.scoped_session(self.session_maker) as session:
            for node_id in node_ids:
                node = None
                if node_id not in removed:
                    node = await self.repository.find_by_id(node_id, session=session)
                if node is None:
                    logger.info(f"Node not found, nothing to delete: {node_id}")
                    results.append(DeleteResult(removed_node_id=node_id, all_removed_ids=[]))
                    continue

                removed_ids = await self._delete_subtree(session, node)
                removed.update(removed_ids)
                result = DeleteResult(removed_node_id=node.id, all_removed_ids=removed_ids)
                deleted.append((node, result))
                results.append(result)

        for node, result in deleted:
            if node.is_root:
                self.namespaces.dispose(node.namespace)
            logger.info(
                "Deleted node",
                namespace=node.namespace,
                path=node.path,
                removed=len(result.all_removed_ids),
            )
            self.publish(
                Event.NODE_REMOVED,
                {"removed_node_id": result.removed_node_id, "all_removed_ids": result.all_removed_ids},
            )
        return results

    async def _delete_subtree(self, session: AsyncSession, node: Node) -> List[str]:
        removed_ids = [node.id] + await self.repository.find_descendant_ids(
            node.namespace, node.path, session=session
        )
        await self.node_tag_repository.delete_by_node_ids(removed_ids, session=session)
        await self.link_repository.delete_by_node_ids(removed_ids, session=session)
        await self.cloze_repository.delete_by_host_ids(removed_ids, session=session)
        await self.task_repository.delete_by_host_ids(removed_ids, session=session)
        await self.agent_repository.delete_by_host_ids(removed_ids, session=session)
        await self.repository.delete_by_ids(removed_ids, session=session)
        return removed_ids

    # -- tree ----------------------------------------------------------------

    async def get_tree(
        self, namespace: str, filter: Optional[NodeFilter] = None
    ) -> Optional[TreeNode]:
        """Build the hierarchy of a namespace from its flat node list.

        With `filter`, only matching nodes and their ancestors are kept. Nodes
        whose parent cannot be resolved are collected, together with the stored
        root if there is one, under a virtual root. Returns None when nothing
        is left.
        """
        nodes = await self.repository.find_by_namespace(namespace)
        if not nodes:
            return None

        by_id = {node.id: node for node in nodes}
        if filter is not None:
            keep: set[str] = set()
            for node in nodes:
                if not filter(node):
                    continue
                current: Optional[Node] = node
                while current is not None and current.id not in keep:
                    keep.add(current.id)
                    current = by_id.get(current.parent_id) if current.parent_id else None
            nodes = [node for node in nodes if node.id in keep]
            if not nodes:
                return None

        tree_nodes = {node.id: _to_tree_node(node) for node in nodes}
        stored_root: Optional[TreeNode] = None
        orphans: List[TreeNode] = []
        for node in nodes:
            tree_node = tree_nodes[node.id]
            if node.parent_id and node.parent_id in tree_nodes:
                tree_nodes[node.parent_id].children.append(tree_node)
            elif node.is_root and stored_root is None:
                stored_root = tree_node
            else:
                orphans.append(tree_node)

        if stored_root is not None and not orphans:
            return stored_root

        logger.debug(f"Synthesizing virtual root for {namespace} with {len(orphans)} orphans")
        children = ([stored_root] if stored_root is not None else []) + orphans
        return TreeNode(
            id=virtual_root_id(namespace),
            name=namespace,
            path=ROOT_PATH,
            type="directory",
            is_virtual=True,
            children=children,
        )


def _to_tree_node(node: Node) -> TreeNode:
    return TreeNode(
        id=node.id,
        name=node.name,
        path=node.path,
        type=node.kind,
        parent_id=node.parent_id,
        updated_at=node.updated_at,
    )
