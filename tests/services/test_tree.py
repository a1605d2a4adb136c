"""Tests for namespace tree reconstruction."""

import pytest

from noteweave.models.nodes import Node, NodeKind


@pytest.mark.asyncio
async def test_full_tree(node_service, sample_tree):
    tree = await node_service.get_tree("notes")

    assert tree.path == "/"
    assert not tree.is_virtual
    assert [child.name for child in tree.children] == ["a", "e.md"]
    a = tree.children[0]
    assert [child.name for child in a.children] == ["b.md", "c"]
    assert a.find("/a/c/d.md").id == sample_tree["d"].id
    assert len(list(tree.walk())) == 6


@pytest.mark.asyncio
async def test_filter_keeps_ancestors(node_service, sample_tree):
    tree = await node_service.get_tree("notes", filter=lambda node: node.name == "d.md")

    assert [node.path for node in tree.walk()] == ["/", "/a", "/a/c", "/a/c/d.md"]
    assert tree.find("/a/b.md") is None


@pytest.mark.asyncio
async def test_filter_without_matches(node_service, sample_tree):
    assert await node_service.get_tree("notes", filter=lambda node: False) is None


@pytest.mark.asyncio
async def test_empty_namespace(node_service):
    assert await node_service.get_tree("nothing-here") is None


@pytest.mark.asyncio
async def test_orphans_go_under_virtual_root(node_service, node_repository, sample_tree):
    orphan = Node(
        id="notes-orphan",
        namespace="notes",
        path="/lost/x.md",
        name="x.md",
        kind=NodeKind.FILE.value,
        parent_id="notes-gone",
        content="",
        meta={},
    )
    await node_repository.add(orphan)

    tree = await node_service.get_tree("notes")
    assert tree.is_virtual
    assert tree.id == "notes-virtual-root"
    assert tree.type == "directory"
    stored_root, lost = tree.children
    assert stored_root.path == "/"
    assert lost.id == "notes-orphan"
    assert tree.find("/") is stored_root
