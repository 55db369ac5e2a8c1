"""Move legality backed by python-chess.

Positions travel as FEN strings. Every call builds its own board, so the
oracle holds no game state and never has to take a move back.
"""

from typing import NamedTuple, Optional

import chess

from chess_repertoire.models import STANDARD_FEN


class MoveResult(NamedTuple):
    san: str
    fen: str
    move_number: int


class ChessOracle:
    """Resolves SAN text against a position."""

    def __init__(self, start_fen: Optional[str] = None):
        self.start_fen = start_fen or STANDARD_FEN

    def initial_position(self) -> str:
        return self.start_fen

    def apply_move(self, position: str, text: str) -> Optional[MoveResult]:
        """Play ``text`` from ``position``.

        Returns None when the move is unreadable, illegal or ambiguous, or
        when ``position`` itself is not a valid FEN.
        """
        try:
            board = chess.Board(position)
            move = board.parse_san(text)
        except ValueError:
            # InvalidMoveError, IllegalMoveError and AmbiguousMoveError all derive from ValueError
            return None
        san = board.san(move)
        move_number = board.fullmove_number
        board.push(move)
        return MoveResult(san=san, fen=board.fen(), move_number=move_number)
