"""JSON-file persistence for repertoires, SRS cards and review history."""
import json
import logging
import os
import random
import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from chess_repertoire import srs
from chess_repertoire import tree as tree_ops
from chess_repertoire.lines import extract_all_lines
from chess_repertoire.models import (
    MoveNode,
    Repertoire,
    RepertoireLine,
    RepertoireTree,
    ReviewAttempt,
    SRSCard,
    generate_id,
)
from chess_repertoire.utils import get_data_file

logger = logging.getLogger("chess_repertoire")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RepertoireStore:
    """
    Owner of all persisted repertoire state.

    Every mutation goes through one lock, applies a pure tree/card function
    to the latest stored value and writes the whole document back
    (last write wins). Unknown repertoire ids are ignored and return None.
    """

    def __init__(self, path: Optional[str] = None):
        self.path = path or get_data_file()
        self._lock = threading.RLock()
        self._repertoires: Dict[str, Repertoire] = {}
        self._lines: Dict[str, List[RepertoireLine]] = {}
        self._cards: Dict[str, SRSCard] = {}
        self._history: List[ReviewAttempt] = []
        self._load()

    # --- persistence -------------------------------------------------------

    def _load(self):
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
            repertoires = {r["id"]: Repertoire.from_dict(r) for r in data.get("repertoires", [])}
            cards = {c["line_id"]: SRSCard.from_dict(c) for c in data.get("cards", [])}
            history = [ReviewAttempt.from_dict(a) for a in data.get("review_history", [])]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to load repertoire store {self.path}: {e}. Starting empty.")
            return
        self._repertoires = repertoires
        self._cards = cards
        self._history = history
        for repertoire_id, repertoire in repertoires.items():
            self._lines[repertoire_id] = extract_all_lines(repertoire.tree, repertoire_id)
        logger.info(f"Loaded {len(repertoires)} repertoires and {len(cards)} cards from {self.path}")

    def _save(self):
        data = {
            "repertoires": [r.to_dict() for r in self._repertoires.values()],
            "cards": [c.to_dict() for c in self._cards.values()],
            "review_history": [a.to_dict() for a in self._history],
        }
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(data, f, indent=2)

    # --- repertoires -------------------------------------------------------

    def create_repertoire(self, name: str, color: str = "white") -> Repertoire:
        with self._lock:
            now = _now()
            repertoire = Repertoire(
                id=generate_id(), name=name, color=color,
                tree=RepertoireTree(), created_at=now, updated_at=now,
            )
            self._repertoires[repertoire.id] = repertoire
            self._lines[repertoire.id] = []
            self._save()
        logger.info(f"Created repertoire '{name}' ({color})")
        return repertoire

    def delete_repertoire(self, repertoire_id: str) -> None:
        with self._lock:
            if self._repertoires.pop(repertoire_id, None) is None:
                return
            self._lines.pop(repertoire_id, None)
            self._cards = {k: c for k, c in self._cards.items() if c.repertoire_id != repertoire_id}
            self._save()

    def rename_repertoire(self, repertoire_id: str, name: str) -> Optional[Repertoire]:
        with self._lock:
            repertoire = self._repertoires.get(repertoire_id)
            if repertoire is None:
                return None
            repertoire = replace(repertoire, name=name, updated_at=_now())
            self._repertoires[repertoire_id] = repertoire
            self._save()
            return repertoire

    def get_repertoire(self, repertoire_id: str) -> Optional[Repertoire]:
        return self._repertoires.get(repertoire_id)

    def find_by_name(self, name: str) -> Optional[Repertoire]:
        for repertoire in self._repertoires.values():
            if repertoire.name == name:
                return repertoire
        return None

    def list_repertoires(self) -> List[Repertoire]:
        return sorted(self._repertoires.values(), key=lambda r: r.created_at)

    def lines(self, repertoire_id: str) -> List[RepertoireLine]:
        return list(self._lines.get(repertoire_id, []))

    # --- tree edits --------------------------------------------------------

    def update_tree(
        self,
        repertoire_id: str,
        edit: Callable[[RepertoireTree], RepertoireTree],
        structural: bool = True,
    ) -> Optional[Repertoire]:
        """Apply ``edit`` to the current tree of ``repertoire_id`` and persist the result."""
        with self._lock:
            repertoire = self._repertoires.get(repertoire_id)
            if repertoire is None:
                logger.warning(f"Unknown repertoire {repertoire_id}")
                return None
            new_tree = edit(repertoire.tree)
            if new_tree is repertoire.tree:
                return repertoire
            repertoire = replace(repertoire, tree=new_tree, updated_at=_now())
            self._repertoires[repertoire_id] = repertoire
            if structural:
                self._lines[repertoire_id] = extract_all_lines(new_tree, repertoire_id)
                if logger.isEnabledFor(logging.DEBUG):
                    for problem in tree_ops.check_invariants(new_tree):
                        logger.debug(f"Repertoire {repertoire.name}: {problem}")
            self._save()
            return repertoire

    def add_move(
        self,
        repertoire_id: str,
        parent_id: Optional[str],
        san: str,
        fen: str,
        move_number: int,
        ply: int,
    ) -> Optional[MoveNode]:
        created: List[MoveNode] = []

        def edit(current: RepertoireTree) -> RepertoireTree:
            new_tree, node = tree_ops.insert_move(current, parent_id, san, fen, move_number, ply)
            if node is not None:
                created.append(node)
            return new_tree

        self.update_tree(repertoire_id, edit)
        return created[0] if created else None

    def delete_move(self, repertoire_id: str, node_id: str) -> Optional[Repertoire]:
        return self.update_tree(repertoire_id, lambda t: tree_ops.delete_subtree(t, node_id))

    def promote_variation(self, repertoire_id: str, parent_id: Optional[str], child_id: str) -> Optional[Repertoire]:
        return self.update_tree(repertoire_id, lambda t: tree_ops.promote_variation(t, parent_id, child_id))

    def set_comment(self, repertoire_id: str, node_id: str, comment: str) -> Optional[Repertoire]:
        return self.update_tree(
            repertoire_id, lambda t: tree_ops.set_comment(t, node_id, comment), structural=False
        )

    def set_opening_name(self, repertoire_id: str, node_id: str, name: str) -> Optional[Repertoire]:
        # Opening names feed line display names, so lines are rebuilt
        return self.update_tree(repertoire_id, lambda t: tree_ops.set_opening_name(t, node_id, name))

    def import_tree(
        self, repertoire_id: str, imported: RepertoireTree, opening_name: str = ""
    ) -> Optional[Repertoire]:
        """Merge a parsed tree into a repertoire, naming its root moves if they have no name."""
        named = replace(imported, children=[
            replace(root, opening_name=root.opening_name or opening_name) for root in imported.children
        ])

        def edit(current: RepertoireTree) -> RepertoireTree:
            if not current.children:
                return named
            return tree_ops.merge_trees(current, named)

        repertoire = self.update_tree(repertoire_id, edit)
        if repertoire is not None:
            logger.info(
                f"Imported {tree_ops.count_nodes(imported)} moves into '{repertoire.name}' "
                f"({len(self._lines[repertoire_id])} lines)"
            )
        return repertoire

    # --- cards -------------------------------------------------------------

    def get_card(self, line_key: str) -> Optional[SRSCard]:
        return self._cards.get(line_key)

    def get_or_create_card(self, line_key: str, repertoire_id: str) -> SRSCard:
        with self._lock:
            card = self._cards.get(line_key)
            if card is None:
                card = srs.new_card(line_key, repertoire_id)
                self._cards[line_key] = card
                self._save()
            return card

    def ensure_cards(self, repertoire_id: str) -> int:
        """Create cards for every line of the repertoire that lacks one. Returns how many were made."""
        with self._lock:
            created = 0
            for line in self._lines.get(repertoire_id, []):
                if line.key not in self._cards:
                    self._cards[line.key] = srs.new_card(line.key, repertoire_id)
                    created += 1
            if created:
                self._save()
            return created

    def record_review(
        self,
        attempt: ReviewAttempt,
        rng: Optional[random.Random] = None,
    ) -> Optional[SRSCard]:
        """Reschedule the card of ``attempt.line_id``; None if there is no such card."""
        with self._lock:
            card = self._cards.get(attempt.line_id)
            if card is None:
                logger.warning(f"No card for line {attempt.line_id}; review ignored.")
                return None
            card = srs.process_review(card, attempt.quality, now=attempt.timestamp, rng=rng)
            self._cards[attempt.line_id] = card
            self._history.append(attempt)
            self._save()
            return card

    def review_history(self, line_key: Optional[str] = None) -> List[ReviewAttempt]:
        return [a for a in self._history if line_key is None or a.line_id == line_key]

    def due_cards(self, repertoire_id: Optional[str] = None, now: Optional[datetime] = None) -> List[SRSCard]:
        return srs.due_cards(self._cards.values(), now, repertoire_id)

    def new_cards(self, repertoire_id: Optional[str] = None) -> List[SRSCard]:
        return srs.new_cards(self._cards.values(), repertoire_id)

    def stats(self, repertoire_id: Optional[str] = None, now: Optional[datetime] = None) -> dict:
        return srs.card_stats(self._cards.values(), now, repertoire_id)
