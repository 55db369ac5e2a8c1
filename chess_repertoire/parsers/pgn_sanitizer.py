import io
import re
from typing import Dict, Tuple

import chess.pgn

# Boundary between two tag pairs written on the same line: [Event "X"] [White "Y"]
_TAG_BOUNDARY_RE = re.compile(r'\]\s*(?=\[[A-Za-z0-9][A-Za-z0-9_+#=:-]*\s+")')


def _is_tag_line(line: str) -> bool:
    # "[%cal ...]" at the start of a line is a directive, not a tag pair
    return line.startswith('[') and not line.startswith('[%')


class PGNSanitizer:
    @staticmethod
    def sanitize(movetext: str) -> str:
        """
        Strip vendor annotations the repertoire model does not keep.
        - Removes engine/clock directives ([%evp ...], [%emt ...], [%clk ...])
        - Removes [#] markers
        - Drops empty comments ({ })
        - Normalizes zero-style castling (0-0, 0-0-0)
        - Collapses runs of whitespace
        [%cal ...] and [%csl ...] are left for the parser.
        """
        movetext = re.sub(r'\[%(?:evp|emt|clk)[^\]]*\]', '', movetext)
        movetext = movetext.replace('[#]', '')
        movetext = re.sub(r'\{\s*\}', '', movetext)
        # 0-0-0 before 0-0 to avoid partial replacement
        movetext = movetext.replace('0-0-0', 'O-O-O').replace('0-0', 'O-O')
        movetext = re.sub(r'\s{2,}', ' ', movetext)
        return movetext.strip()

    @staticmethod
    def split_headers(pgn_text: str) -> Tuple[str, str]:
        """
        Split a single game into its tag-pair block and its movetext.

        Tag pairs sharing a line are put on lines of their own so that
        python-chess sees one tag per line.
        """
        lines = pgn_text.splitlines()
        header_lines = []
        index = 0
        while index < len(lines):
            line = lines[index].strip()
            if line and not _is_tag_line(line):
                break
            if line:
                header_lines.extend(_TAG_BOUNDARY_RE.sub(']\n', line).splitlines())
            index += 1
        return "\n".join(header_lines), "\n".join(lines[index:]).strip()

    @staticmethod
    def parse_headers(pgn_text: str) -> Dict[str, str]:
        """Read the [Key "Value"] tag pairs of a single game."""
        header_text, _ = PGNSanitizer.split_headers(pgn_text)
        headers = chess.pgn.read_headers(io.StringIO(header_text))
        if headers is None:
            return {}
        return {
            key: value.replace('\\"', '"').replace('\\\\', '\\')
            for key, value in headers.items()
        }

    @staticmethod
    def strip_headers(pgn_text: str) -> str:
        """Return the movetext with the tag-pair block removed."""
        _, movetext = PGNSanitizer.split_headers(pgn_text)
        return movetext
