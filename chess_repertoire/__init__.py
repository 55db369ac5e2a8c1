"""Opening repertoire trees from annotated PGN, drilled with SM-2 spaced repetition."""

from chess_repertoire.lines import extract_all_lines
from chess_repertoire.models import MoveNode, RepertoireLine, RepertoireTree, SRSCard
from chess_repertoire.parsers.movetext import parse_multi_game, parse_notation
from chess_repertoire.srs import derive_quality, sm2
from chess_repertoire.tree import delete_subtree, insert_move, merge_trees, promote_variation

__all__ = [
    "MoveNode",
    "RepertoireTree",
    "RepertoireLine",
    "SRSCard",
    "parse_notation",
    "parse_multi_game",
    "insert_move",
    "delete_subtree",
    "promote_variation",
    "merge_trees",
    "extract_all_lines",
    "sm2",
    "derive_quality",
]
