import unittest
from chess_repertoire.parsers.pgn_sanitizer import PGNSanitizer

class TestPGNSanitizer(unittest.TestCase):
    def test_sanitize_engine_directives(self):
        self.assertEqual(PGNSanitizer.sanitize("1. e4 {[%evp 20,31]} e5"), "1. e4 e5")
        self.assertEqual(PGNSanitizer.sanitize("1. e4 {[%emt 0:00:05]} e5"), "1. e4 e5")
        self.assertEqual(PGNSanitizer.sanitize("1. e4 {[%clk 0:03:00]} e5"), "1. e4 e5")

    def test_sanitize_markers(self):
        self.assertEqual(PGNSanitizer.sanitize("1. e4 [#] e5"), "1. e4 e5")

    def test_sanitize_keeps_arrows(self):
        raw = "1. e4 {Center [%cal Gd2d4] [%evp 15]}"
        self.assertEqual(PGNSanitizer.sanitize(raw), "1. e4 {Center [%cal Gd2d4] }")

    def test_sanitize_already_clean(self):
        raw = "1. c4 e5 2. Nc3"
        self.assertEqual(PGNSanitizer.sanitize(raw), raw)

    def test_parse_headers(self):
        pgn = '[Event "Test"]\n[White "2. Scotch \\"Game\\""]\n\n1. e4 e5'
        headers = PGNSanitizer.parse_headers(pgn)
        self.assertEqual(headers["Event"], "Test")
        self.assertEqual(headers["White"], '2. Scotch "Game"')

    def test_strip_headers_keeps_movetext(self):
        pgn = '[Event "Test"]\n[Result "*"]\n\n1. e4 {[%csl Ge4]} e5 *'
        self.assertEqual(PGNSanitizer.strip_headers(pgn), "1. e4 {[%csl Ge4]} e5 *")

    def test_parse_headers_sharing_a_line(self):
        pgn = '[Event "X"] [White "2. Scotch Game"]\n1. e4 e5 *'
        headers = PGNSanitizer.parse_headers(pgn)
        self.assertEqual(headers, {"Event": "X", "White": "2. Scotch Game"})
        self.assertEqual(PGNSanitizer.strip_headers(pgn), "1. e4 e5 *")

    def test_parse_headers_without_tags(self):
        self.assertEqual(PGNSanitizer.parse_headers("1. e4 e5"), {})
        self.assertEqual(PGNSanitizer.strip_headers("1. e4 e5"), "1. e4 e5")

    def test_directive_line_is_movetext(self):
        pgn = '[Event "X"]\n[%cal Gd2d4]\n1. d4'
        self.assertEqual(PGNSanitizer.parse_headers(pgn), {"Event": "X"})
        self.assertEqual(PGNSanitizer.strip_headers(pgn), "[%cal Gd2d4]\n1. d4")

    def test_sanitize_zero_castling(self):
        self.assertEqual(PGNSanitizer.sanitize("5. 0-0 0-0-0 6. Re1 0-1"), "5. O-O O-O-O 6. Re1 0-1")

if __name__ == '__main__':
    unittest.main()
