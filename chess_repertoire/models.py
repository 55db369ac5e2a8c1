from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


STANDARD_FEN = "rnbqkbnr/pppppppp/8/8/8/8/PPPPPPPP/RNBQKBNR w KQkq - 0 1"

DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3

NAG_SYMBOLS: Dict[int, str] = {
    1: "!",
    2: "?",
    3: "!!",
    4: "??",
    5: "!?",
    6: "?!",
    14: "+=",
    15: "=+",
    16: "±",
    17: "∓",
    18: "+-",
    19: "-+",
    40: "→",
}


def generate_id() -> str:
    return uuid.uuid4().hex


@dataclass
class MoveNode:
    """
    A single move in a repertoire tree.

    Attributes:
        id: Opaque unique identifier.
        san: Standard Algebraic Notation of the move (e.g., "Nf3").
        fen: FEN of the position AFTER the move.
        parent_id: Id of the parent move, or None for a root move. Lookup only.
        children: Continuations; children[0] is the mainline.
        comment: Free text comment with arrow/highlight directives stripped out.
        arrows: [%cal ...] entries, e.g. ["Gf2f3", "Gh2h4"].
        highlights: [%csl ...] entries, e.g. ["Ge4", "Rf7"].
        nags: Numeric annotation glyphs ($1 = good move, $2 = mistake, ...).
        is_mainline: True only for the first child of its parent.
        move_number: Full-move number the move was played on.
        ply: Half-moves from the tree root (first move is ply 1).
        opening_name: Set on the first mainline move of a named game.
    """
    id: str
    san: str
    fen: str
    parent_id: Optional[str] = None
    children: List[MoveNode] = field(default_factory=list)
    comment: str = ""
    arrows: List[str] = field(default_factory=list)
    highlights: List[str] = field(default_factory=list)
    nags: List[int] = field(default_factory=list)
    is_mainline: bool = False
    move_number: int = 1
    ply: int = 1
    opening_name: str = ""

    @property
    def nag_symbols(self) -> str:
        return "".join(NAG_SYMBOLS.get(nag, f"${nag}") for nag in self.nags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "san": self.san,
            "fen": self.fen,
            "parent_id": self.parent_id,
            "children": [child.to_dict() for child in self.children],
            "comment": self.comment,
            "arrows": list(self.arrows),
            "highlights": list(self.highlights),
            "nags": list(self.nags),
            "is_mainline": self.is_mainline,
            "move_number": self.move_number,
            "ply": self.ply,
            "opening_name": self.opening_name,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> MoveNode:
        return cls(
            id=data["id"],
            san=data["san"],
            fen=data["fen"],
            parent_id=data.get("parent_id"),
            children=[cls.from_dict(child) for child in data.get("children", [])],
            comment=data.get("comment", ""),
            arrows=list(data.get("arrows", [])),
            highlights=list(data.get("highlights", [])),
            nags=list(data.get("nags", [])),
            is_mainline=data.get("is_mainline", False),
            move_number=data.get("move_number", 1),
            ply=data.get("ply", 1),
            opening_name=data.get("opening_name", ""),
        )


@dataclass
class RepertoireTree:
    """A starting position plus the ordered list of root moves."""
    root_fen: str = STANDARD_FEN
    children: List[MoveNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"root_fen": self.root_fen, "children": [c.to_dict() for c in self.children]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> RepertoireTree:
        return cls(
            root_fen=data.get("root_fen", STANDARD_FEN),
            children=[MoveNode.from_dict(c) for c in data.get("children", [])],
        )


@dataclass
class RepertoireLine:
    """
    One root-to-leaf path through a repertoire tree.

    Lines are derived data: they are rebuilt after every structural edit and
    ``id`` is fresh each time. ``key`` is a digest of ``move_node_ids`` and
    stays the same as long as the path does.
    """
    id: str
    key: str
    repertoire_id: str
    move_node_ids: List[str]
    san_sequence: List[str]
    display_name: str
    terminal_fen: str
    opening_name: str = ""


@dataclass
class SRSCard:
    """SM-2 scheduling state for one line."""
    id: str
    line_id: str
    repertoire_id: str
    next_review: datetime
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    last_review: Optional[datetime] = None
    total_reviews: int = 0
    correct_count: int = 0
    incorrect_count: int = 0
    streak: int = 0
    best_streak: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "line_id": self.line_id,
            "repertoire_id": self.repertoire_id,
            "next_review": self.next_review.isoformat(),
            "ease_factor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "last_review": self.last_review.isoformat() if self.last_review else None,
            "total_reviews": self.total_reviews,
            "correct_count": self.correct_count,
            "incorrect_count": self.incorrect_count,
            "streak": self.streak,
            "best_streak": self.best_streak,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> SRSCard:
        last_review = data.get("last_review")
        return cls(
            id=data["id"],
            line_id=data["line_id"],
            repertoire_id=data["repertoire_id"],
            next_review=datetime.fromisoformat(data["next_review"]),
            ease_factor=data.get("ease_factor", DEFAULT_EASE_FACTOR),
            interval=data.get("interval", 0),
            repetitions=data.get("repetitions", 0),
            last_review=datetime.fromisoformat(last_review) if last_review else None,
            total_reviews=data.get("total_reviews", 0),
            correct_count=data.get("correct_count", 0),
            incorrect_count=data.get("incorrect_count", 0),
            streak=data.get("streak", 0),
            best_streak=data.get("best_streak", 0),
        )


@dataclass
class ReviewAttempt:
    line_id: str
    timestamp: datetime
    quality: int
    mistakes: int = 0
    hints_used: int = 0
    time_spent_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "line_id": self.line_id,
            "timestamp": self.timestamp.isoformat(),
            "quality": self.quality,
            "mistakes": self.mistakes,
            "hints_used": self.hints_used,
            "time_spent_ms": self.time_spent_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> ReviewAttempt:
        return cls(
            line_id=data["line_id"],
            timestamp=datetime.fromisoformat(data["timestamp"]),
            quality=data["quality"],
            mistakes=data.get("mistakes", 0),
            hints_used=data.get("hints_used", 0),
            time_spent_ms=data.get("time_spent_ms", 0),
        )


@dataclass
class Repertoire:
    id: str
    name: str
    color: str
    tree: RepertoireTree
    created_at: datetime
    updated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "tree": self.tree.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Repertoire:
        return cls(
            id=data["id"],
            name=data["name"],
            color=data.get("color", "white"),
            tree=RepertoireTree.from_dict(data.get("tree", {})),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )
