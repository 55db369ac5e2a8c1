"""Parse PGN movetext with recursive variations into a RepertoireTree."""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from chess_repertoire.models import MoveNode, RepertoireTree, generate_id
from chess_repertoire.parsers.oracle import ChessOracle
from chess_repertoire.parsers.pgn_sanitizer import PGNSanitizer
from chess_repertoire.parsers.tokenizer import Token, TokenKind, tokenize
from chess_repertoire.tree import count_lines, count_nodes
from chess_repertoire.utils import get_setting

logger = logging.getLogger("chess_repertoire")

_DIRECTIVE_RE = re.compile(r"\[%(cal|csl)\s+([^\]]*)\]")
_GAME_START = "[Event "


@dataclass
class ParsedGame:
    headers: Dict[str, str]
    opening_name: str
    tree: RepertoireTree
    move_count: int
    line_count: int


def extract_annotations(comment: str) -> Tuple[List[str], List[str], str]:
    """Split a comment into ([%cal] arrows, [%csl] highlights, remaining text)."""
    arrows: List[str] = []
    highlights: List[str] = []
    for match in _DIRECTIVE_RE.finditer(comment):
        entries = [part.strip() for part in match.group(2).split(",") if part.strip()]
        if match.group(1) == "cal":
            arrows.extend(entries)
        else:
            highlights.extend(entries)
    clean = _DIRECTIVE_RE.sub("", comment)
    clean = re.sub(r"\s{2,}", " ", clean).strip()
    return arrows, highlights, clean


def clean_opening_name(raw: str) -> str:
    """Remove a leading ordinal: "2. Scotch Game" -> "Scotch Game"."""
    return re.sub(r"^\d+\.\s*", "", raw).strip()


class VariationParser:
    """
    Recursive-descent builder over a shared token cursor.

    Each scope (the main line, or one parenthesised variation) walks its own
    FEN cursor forward from the position it started at. A variation is an
    alternative to the move just before it, so it restarts from the position
    that move was played in and hangs its first move next to it.
    """

    def __init__(self, tokens: List[Token], oracle, opening_name: str = ""):
        self.tokens = tokens
        self.oracle = oracle
        self.opening_name = opening_name
        self.pos = 0

    def parse(self, start_fen: str) -> List[MoveNode]:
        roots: List[MoveNode] = []
        self.pos = 0
        self._parse_scope(start_fen, roots, None, 0, True)
        return roots

    def _parse_scope(
        self,
        start_fen: str,
        siblings: List[MoveNode],
        parent_id: Optional[str],
        ply_offset: int,
        is_main_scope: bool,
    ) -> None:
        position = start_fen
        last_node: Optional[MoveNode] = None
        # Where last_node hangs, and the position it was played from
        last_siblings = siblings
        last_parent_id = parent_id
        last_start = start_fen
        pending_nags: List[int] = []

        while self.pos < len(self.tokens):
            token = self.tokens[self.pos]
            kind = token.kind
            self.pos += 1

            if kind is TokenKind.CLOSE_VARIATION:
                if is_main_scope:
                    continue
                return

            if kind in (TokenKind.RESULT, TokenKind.MOVE_NUMBER):
                continue

            if kind is TokenKind.COMMENT:
                if last_node is not None:
                    self._attach_comment(last_node, token.value)
                continue

            if kind is TokenKind.NAG:
                if last_node is not None:
                    last_node.nags.append(token.value)
                else:
                    pending_nags.append(token.value)
                continue

            if kind is TokenKind.NULL_MOVE:
                logger.debug("Null move reached; skipping the rest of the variation.")
                self._skip_scope(is_main_scope)
                return

            if kind is TokenKind.MOVE:
                result = self.oracle.apply_move(position, token.value)
                if result is None:
                    logger.warning(f"Invalid move \"{token.value}\" at position {position}")
                    continue

                if last_node is not None:
                    attach_to = last_node.children
                    attach_parent_id = last_node.id
                    ply = last_node.ply + 1
                else:
                    attach_to = siblings
                    attach_parent_id = parent_id
                    ply = ply_offset + 1

                node = MoveNode(
                    id=generate_id(),
                    san=result.san,
                    fen=result.fen,
                    parent_id=attach_parent_id,
                    nags=pending_nags,
                    is_mainline=not attach_to,
                    move_number=result.move_number,
                    ply=ply,
                )
                pending_nags = []
                if is_main_scope and last_node is None and node.is_mainline:
                    node.opening_name = self.opening_name
                attach_to.append(node)

                last_siblings = attach_to
                last_parent_id = attach_parent_id
                last_start = position
                position = result.fen
                last_node = node
                continue

            if kind is TokenKind.OPEN_VARIATION:
                if last_node is not None:
                    self._parse_scope(last_start, last_siblings, last_parent_id, last_node.ply - 1, False)
                else:
                    # Variation before any move of this scope: alternative to the scope's first move
                    self._parse_scope(start_fen, siblings, parent_id, ply_offset, False)

    def _skip_scope(self, is_main_scope: bool) -> None:
        """Discard the rest of the current scope, including the ')' that closes it."""
        if is_main_scope:
            self.pos = len(self.tokens)
            return
        depth = 0
        while self.pos < len(self.tokens):
            kind = self.tokens[self.pos].kind
            self.pos += 1
            if kind is TokenKind.OPEN_VARIATION:
                depth += 1
            elif kind is TokenKind.CLOSE_VARIATION:
                if depth == 0:
                    return
                depth -= 1

    @staticmethod
    def _attach_comment(node: MoveNode, comment: str) -> None:
        arrows, highlights, clean = extract_annotations(comment)
        if clean:
            node.comment = f"{node.comment} {clean}" if node.comment else clean
        node.arrows.extend(arrows)
        node.highlights.extend(highlights)


def parse_notation(pgn_text: str, oracle=None, opening_header: Optional[str] = None) -> ParsedGame:
    """Parse a single game (headers optional) into a repertoire tree.

    Args:
        pgn_text: PGN of one game.
        oracle: Object with ``initial_position()`` and ``apply_move(fen, san)``.
            Defaults to a python-chess backed ChessOracle.
        opening_header: Header holding the opening name. Defaults to the
            REPERTOIRE_OPENING_HEADER setting ("White").

    Returns:
        ParsedGame with the tree and its move/line counts.
    """
    if pgn_text is None:
        raise ValueError("pgn_text is required")

    headers = PGNSanitizer.parse_headers(pgn_text)
    header_name = opening_header or get_setting("REPERTOIRE_OPENING_HEADER", "White")
    opening_name = clean_opening_name(headers.get(header_name) or headers.get("Opening", ""))

    if oracle is None:
        oracle = ChessOracle()
    start_fen = headers.get("FEN") or oracle.initial_position()

    movetext = PGNSanitizer.sanitize(PGNSanitizer.strip_headers(pgn_text))
    parser = VariationParser(tokenize(movetext), oracle, opening_name)
    tree = RepertoireTree(root_fen=start_fen, children=parser.parse(start_fen))

    return ParsedGame(
        headers=headers,
        opening_name=opening_name,
        tree=tree,
        move_count=count_nodes(tree),
        line_count=count_lines(tree),
    )


def split_games(pgn_text: str) -> List[str]:
    """Split a multi-game PGN file at each [Event ...] header."""
    games: List[str] = []
    current: List[str] = []
    for line in pgn_text.splitlines():
        if line.startswith(_GAME_START) and "\n".join(current).strip():
            games.append("\n".join(current).strip())
            current = []
        current.append(line)
    if "\n".join(current).strip():
        games.append("\n".join(current).strip())
    return games


def parse_multi_game(pgn_text: str, oracle=None, opening_header: Optional[str] = None) -> List[ParsedGame]:
    """Parse every game in a PGN file, dropping games without a single legal move."""
    parsed: List[ParsedGame] = []
    for index, game_text in enumerate(split_games(pgn_text), 1):
        game = parse_notation(game_text, oracle=oracle, opening_header=opening_header)
        if game.move_count == 0:
            logger.debug(f"Game {index} has no moves; skipping.")
            continue
        parsed.append(game)
    logger.info(f"Parsed {len(parsed)} games with moves.")
    return parsed
