"""
Copy-on-write edits over RepertoireTree.

Every edit returns a new tree and leaves its input untouched: only the nodes
on the path from the root to the edited node are copied, untouched subtrees
are shared between the old and the new tree. Nodes of a published tree must
therefore never be mutated in place.
"""

import logging
from dataclasses import replace
from typing import Callable, Iterator, List, Optional, Tuple

from chess_repertoire.models import MoveNode, RepertoireTree, generate_id

logger = logging.getLogger("chess_repertoire")

ROOT_ID = "__root__"


def _require_tree(tree: RepertoireTree) -> None:
    if tree is None:
        raise ValueError("A repertoire tree is required.")


def _find_in(nodes: List[MoveNode], node_id: str) -> Optional[MoveNode]:
    for node in nodes:
        if node.id == node_id:
            return node
        found = _find_in(node.children, node_id)
        if found is not None:
            return found
    return None


def find_node(tree: RepertoireTree, node_id: str) -> Optional[MoveNode]:
    """Find a node by id anywhere in the tree."""
    _require_tree(tree)
    return _find_in(tree.children, node_id)


def get_path_to_node(tree: RepertoireTree, node_id: str) -> List[MoveNode]:
    """Nodes from the root move down to ``node_id`` inclusive; empty if absent."""
    _require_tree(tree)

    def walk(nodes: List[MoveNode], path: List[MoveNode]) -> Optional[List[MoveNode]]:
        for node in nodes:
            current = path + [node]
            if node.id == node_id:
                return current
            found = walk(node.children, current)
            if found is not None:
                return found
        return None

    return walk(tree.children, []) or []


def iter_nodes(tree: RepertoireTree) -> Iterator[MoveNode]:
    """Depth-first, mainline-first traversal."""
    _require_tree(tree)
    stack = list(reversed(tree.children))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def count_nodes(tree: RepertoireTree) -> int:
    return sum(1 for _ in iter_nodes(tree))


def count_lines(tree: RepertoireTree) -> int:
    return sum(1 for node in iter_nodes(tree) if not node.children)


def _rewrite(
    nodes: List[MoveNode], node_id: str, update: Callable[[MoveNode], MoveNode]
) -> Optional[List[MoveNode]]:
    """Return a copy of ``nodes`` with ``update`` applied to ``node_id``, or None if absent."""
    for index, node in enumerate(nodes):
        if node.id == node_id:
            rewritten = update(node)
        else:
            children = _rewrite(node.children, node_id, update)
            if children is None:
                continue
            rewritten = replace(node, children=children)
        result = list(nodes)
        result[index] = rewritten
        return result
    return None


def _rewrite_tree(
    tree: RepertoireTree, node_id: str, update: Callable[[MoveNode], MoveNode]
) -> RepertoireTree:
    children = _rewrite(tree.children, node_id, update)
    if children is None:
        return tree
    return replace(tree, children=children)


def insert_move(
    tree: RepertoireTree,
    parent_id: Optional[str],
    san: str,
    fen: str,
    move_number: int,
    ply: int,
) -> Tuple[RepertoireTree, Optional[MoveNode]]:
    """
    Append a move under ``parent_id`` (or as a root move when it is None).

    The new node is the mainline iff it is the first move at its attachment
    point. Returns the new tree and the created node; an unknown parent
    leaves the tree unchanged and yields None for the node.
    """
    _require_tree(tree)
    if parent_id is None or parent_id == ROOT_ID:
        node = MoveNode(
            id=generate_id(), san=san, fen=fen, parent_id=None,
            is_mainline=not tree.children, move_number=move_number, ply=ply,
        )
        return replace(tree, children=tree.children + [node]), node

    parent = find_node(tree, parent_id)
    if parent is None:
        logger.warning(f"Cannot insert {san}: parent {parent_id} not found.")
        return tree, None

    node = MoveNode(
        id=generate_id(), san=san, fen=fen, parent_id=parent_id,
        is_mainline=not parent.children, move_number=move_number, ply=ply,
    )
    new_tree = _rewrite_tree(tree, parent_id, lambda p: replace(p, children=p.children + [node]))
    return new_tree, node


def _remove(nodes: List[MoveNode], node_id: str, auto_promote: bool) -> Optional[List[MoveNode]]:
    for index, node in enumerate(nodes):
        if node.id == node_id:
            remaining = nodes[:index] + nodes[index + 1:]
            if auto_promote and node.is_mainline and remaining and not remaining[0].is_mainline:
                remaining[0] = replace(remaining[0], is_mainline=True)
            return remaining
        children = _remove(node.children, node_id, auto_promote)
        if children is not None:
            result = list(nodes)
            result[index] = replace(node, children=children)
            return result
    return None


def delete_subtree(tree: RepertoireTree, node_id: str, auto_promote: bool = True) -> RepertoireTree:
    """
    Remove ``node_id`` and everything below it.

    Siblings keep their order. When the removed node was the mainline, the
    sibling now at index 0 is flagged as mainline unless ``auto_promote`` is
    False, in which case the caller must promote explicitly.
    An unknown id returns the input tree unchanged.
    """
    _require_tree(tree)
    children = _remove(tree.children, node_id, auto_promote)
    if children is None:
        return tree
    return replace(tree, children=children)


def _promoted(children: List[MoveNode], child_id: str) -> Optional[List[MoveNode]]:
    index = next((i for i, child in enumerate(children) if child.id == child_id), -1)
    if index <= 0:
        return None
    result = list(children)
    result[0] = replace(children[index], is_mainline=True)
    result[index] = replace(children[0], is_mainline=False)
    return result


def promote_variation(tree: RepertoireTree, parent_id: Optional[str], child_id: str) -> RepertoireTree:
    """
    Make ``child_id`` the mainline of its sibling group.

    The promoted child swaps places with the current mainline, so promoting
    the old mainline back restores the original order. ``parent_id`` may be
    ROOT_ID (or None) for root moves. No-op when the child is already first
    or cannot be found.
    """
    _require_tree(tree)
    if parent_id is None or parent_id == ROOT_ID:
        children = _promoted(tree.children, child_id)
        if children is None:
            return tree
        return replace(tree, children=children)

    parent = find_node(tree, parent_id)
    if parent is None:
        return tree
    children = _promoted(parent.children, child_id)
    if children is None:
        return tree
    return _rewrite_tree(tree, parent_id, lambda p: replace(p, children=children))


def _merge_children(
    existing: List[MoveNode], imported: List[MoveNode], parent_id: Optional[str]
) -> List[MoveNode]:
    merged = list(existing)
    # Each existing sibling pairs with at most one imported sibling
    matched = set()
    for incoming in imported:
        index = next(
            (i for i, node in enumerate(merged) if i not in matched and node.san == incoming.san),
            None,
        )
        if index is None:
            matched.add(len(merged))
            merged.append(replace(incoming, parent_id=parent_id, is_mainline=not merged))
            continue
        matched.add(index)
        match = merged[index]
        merged[index] = replace(
            match,
            children=_merge_children(match.children, incoming.children, match.id),
            comment=match.comment or incoming.comment,
            arrows=match.arrows or list(incoming.arrows),
            highlights=match.highlights or list(incoming.highlights),
        )
    return merged


def merge_trees(existing: RepertoireTree, imported: RepertoireTree) -> RepertoireTree:
    """
    Merge ``imported`` into ``existing``.

    Moves are matched by SAN at each level, never by id. Matching moves merge
    their children recursively and pick up comments/arrows/highlights from the
    import only where the existing side has none. Unmatched imported moves are
    appended as new variations behind the existing ones. An existing move is
    matched at most once, so repeated moves in one group pair up in order.
    """
    _require_tree(existing)
    _require_tree(imported)
    return replace(existing, children=_merge_children(existing.children, imported.children, None))


def set_comment(tree: RepertoireTree, node_id: str, comment: str) -> RepertoireTree:
    _require_tree(tree)
    return _rewrite_tree(tree, node_id, lambda node: replace(node, comment=comment))


def set_opening_name(tree: RepertoireTree, node_id: str, name: str) -> RepertoireTree:
    _require_tree(tree)
    return _rewrite_tree(tree, node_id, lambda node: replace(node, opening_name=name))


def check_invariants(tree: RepertoireTree) -> List[str]:
    """Describe every structural problem found; an empty list means the tree is sound."""
    _require_tree(tree)
    problems: List[str] = []
    seen = set()

    def check_group(children: List[MoveNode], parent: Optional[MoveNode]) -> None:
        where = parent.san if parent else "root"
        if children:
            if not children[0].is_mainline:
                problems.append(f"First move under {where} ({children[0].san}) is not mainline")
            mainlines = sum(1 for child in children if child.is_mainline)
            if mainlines != 1:
                problems.append(f"{mainlines} mainline moves under {where}")
        for child in children:
            if child.id in seen:
                problems.append(f"Node {child.id} ({child.san}) appears more than once")
                continue
            seen.add(child.id)
            expected_parent = parent.id if parent else None
            if child.parent_id != expected_parent:
                problems.append(f"{child.san} points at parent {child.parent_id}, expected {expected_parent}")
            if parent is not None and child.ply != parent.ply + 1:
                problems.append(f"{child.san} has ply {child.ply} under ply {parent.ply}")
            check_group(child.children, child)

    check_group(tree.children, None)
    return problems
