"""Enumerate the root-to-leaf lines of a repertoire tree."""

import hashlib
from typing import List

from chess_repertoire.models import MoveNode, RepertoireLine, RepertoireTree, generate_id

NAME_PLIES = 6


def line_key(move_node_ids: List[str]) -> str:
    """Stable identity of a path: same move ids in the same order, same key."""
    return hashlib.sha1("/".join(move_node_ids).encode("utf-8")).hexdigest()


def find_opening_name(path: List[MoveNode]) -> str:
    """Deepest non-empty opening name along the path."""
    for node in reversed(path):
        if node.opening_name:
            return node.opening_name
    return ""


def _played_by_black(node: MoveNode) -> bool:
    # White to move in the resulting position means Black just played
    fields = node.fen.split()
    return len(fields) > 1 and fields[1] == "w"


def format_line_name(path: List[MoveNode]) -> str:
    """e.g. "1. e4 e5 2. Nf3 Nc6 3. Bb5 a6 ..." from the first six plies.

    A line whose first move is Black's starts with "N..." instead.
    """
    black_first = bool(path) and _played_by_black(path[0])
    parts = []
    for index, node in enumerate(path[:NAME_PLIES]):
        white_move = (index % 2 == 0) != black_first
        if white_move:
            parts.append(f"{node.move_number}. {node.san}")
        elif index == 0:
            parts.append(f"{node.move_number}... {node.san}")
        else:
            parts.append(node.san)
    name = " ".join(parts)
    if len(path) > NAME_PLIES:
        name += " ..."
    return name


def extract_all_lines(tree: RepertoireTree, repertoire_id: str = "") -> List[RepertoireLine]:
    """Every root-to-leaf path as a RepertoireLine, mainline first.

    Line ids are freshly generated on each call; use ``key`` to recognise
    the same path across calls.
    """
    if tree is None:
        raise ValueError("A repertoire tree is required.")

    lines: List[RepertoireLine] = []

    def walk(node: MoveNode, path: List[MoveNode]) -> None:
        current = path + [node]
        if node.children:
            for child in node.children:
                walk(child, current)
            return
        ids = [n.id for n in current]
        opening_name = find_opening_name(current)
        lines.append(RepertoireLine(
            id=generate_id(),
            key=line_key(ids),
            repertoire_id=repertoire_id,
            move_node_ids=ids,
            san_sequence=[n.san for n in current],
            display_name=opening_name or format_line_name(current),
            terminal_fen=node.fen,
            opening_name=opening_name,
        ))

    for root in tree.children:
        walk(root, [])
    return lines
