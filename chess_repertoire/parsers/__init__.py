"""PGN movetext parsers package."""

from chess_repertoire.parsers.movetext import ParsedGame, parse_multi_game, parse_notation, split_games
from chess_repertoire.parsers.oracle import ChessOracle, MoveResult
from chess_repertoire.parsers.tokenizer import Token, TokenKind, tokenize

__all__ = [
    "ParsedGame",
    "parse_notation",
    "parse_multi_game",
    "split_games",
    "ChessOracle",
    "MoveResult",
    "Token",
    "TokenKind",
    "tokenize",
]
