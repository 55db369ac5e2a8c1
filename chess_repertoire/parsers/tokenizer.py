"""Lex PGN movetext (headers already stripped) into a flat token stream."""

import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Union

logger = logging.getLogger("chess_repertoire")

# ChessMood exports use "Z0" as a placeholder where a line is abandoned.
NULL_MOVE = "Z0"

_RESULT_RE = re.compile(r"1-0|0-1|1/2-1/2|\*")
_MOVE_NUMBER_RE = re.compile(r"\d+\.(?:\.\.)?")
_SAN_RE = re.compile(
    r"(?:[KQRBNP]?[a-h]?[1-8]?x?[a-h][1-8](?:=[QRBN])?[+#]?|O-O-O|O-O)[+#]?"
)


class TokenKind(Enum):
    MOVE = "move"
    MOVE_NUMBER = "move_number"
    NAG = "nag"
    COMMENT = "comment"
    OPEN_VARIATION = "open_variation"
    CLOSE_VARIATION = "close_variation"
    NULL_MOVE = "null_move"
    RESULT = "result"


@dataclass(frozen=True)
class Token:
    kind: TokenKind
    value: Optional[Union[str, int]] = None


def tokenize(movetext: str) -> List[Token]:
    """Convert movetext into tokens.

    Never raises. Characters that start no known token are skipped, and an
    unterminated ``{`` comment drops the rest of the input.
    """
    tokens: List[Token] = []
    pos = 0
    total = len(movetext)

    while pos < total:
        ch = movetext[pos]

        if ch.isspace():
            pos += 1
            continue

        if ch == "{":
            end = movetext.find("}", pos + 1)
            if end < 0:
                logger.warning(f"Unterminated comment at offset {pos}; ignoring the rest of the movetext.")
                break
            comment = movetext[pos + 1:end].strip()
            if comment:
                tokens.append(Token(TokenKind.COMMENT, comment))
            pos = end + 1
            continue

        if ch == "(":
            tokens.append(Token(TokenKind.OPEN_VARIATION))
            pos += 1
            continue

        if ch == ")":
            tokens.append(Token(TokenKind.CLOSE_VARIATION))
            pos += 1
            continue

        if ch == "$":
            pos += 1
            start = pos
            while pos < total and movetext[pos].isdigit():
                pos += 1
            if pos > start:
                tokens.append(Token(TokenKind.NAG, int(movetext[start:pos])))
            continue

        # Results and move numbers go first: "1-0" and "1." both start like a move number.
        m = _RESULT_RE.match(movetext, pos)
        if m:
            tokens.append(Token(TokenKind.RESULT, m.group(0)))
            pos = m.end()
            continue

        m = _MOVE_NUMBER_RE.match(movetext, pos)
        if m:
            tokens.append(Token(TokenKind.MOVE_NUMBER, m.group(0)))
            pos = m.end()
            continue

        if movetext.startswith(NULL_MOVE, pos):
            tokens.append(Token(TokenKind.NULL_MOVE))
            pos += len(NULL_MOVE)
            continue

        m = _SAN_RE.match(movetext, pos)
        if m:
            tokens.append(Token(TokenKind.MOVE, m.group(0)))
            pos = m.end()
            continue

        pos += 1

    return tokens
