"""Tests for chess_repertoire/parsers/movetext.py"""

import pytest

from chess_repertoire.parsers.movetext import (
    VariationParser,
    clean_opening_name,
    extract_annotations,
    parse_multi_game,
    parse_notation,
    split_games,
)
from chess_repertoire.parsers.oracle import ChessOracle, MoveResult
from chess_repertoire.parsers.tokenizer import tokenize
from chess_repertoire.tree import check_invariants, iter_nodes, merge_trees


class FakeOracle:
    """Accepts any SAN except the ones listed; positions are the move history."""

    def __init__(self, illegal=()):
        self.illegal = set(illegal)

    def initial_position(self):
        return "start"

    def apply_move(self, position, text):
        if text in self.illegal:
            return None
        return MoveResult(san=text, fen=f"{position} {text}", move_number=1)


def sans(nodes):
    return [n.san for n in nodes]


class TestVariationParser:
    """Tree shape, independent of chess legality."""

    def test_variation_restarts_from_branch_position(self):
        roots = VariationParser(tokenize("1. e4 e5 (1... c5 2. Nf3) 2. Nf3"), FakeOracle()).parse("start")
        e4 = roots[0]
        e5, c5 = e4.children
        assert c5.fen == "start e4 c5"
        assert c5.children[0].fen == "start e4 c5 Nf3"
        # The main scope kept its own cursor through the variation
        assert e5.children[0].fen == "start e4 e5 Nf3"

    def test_illegal_move_is_dropped(self):
        roots = VariationParser(tokenize("e4 Nf6 e5"), FakeOracle(illegal={"Nf6"})).parse("start")
        assert sans(roots[0].children) == ["e5"]
        assert roots[0].children[0].ply == 2

    def test_variation_with_illegal_first_move_is_empty(self):
        roots = VariationParser(tokenize("e4 e5 (Qh4) Nf3"), FakeOracle(illegal={"Qh4"})).parse("start")
        assert sans(roots[0].children) == ["e5"]
        assert sans(roots[0].children[0].children) == ["Nf3"]

    def test_several_variations_on_one_move(self):
        roots = VariationParser(tokenize("e4 e5 (c5) (e6) (c6) Nf3"), FakeOracle()).parse("start")
        assert sans(roots[0].children) == ["e5", "c5", "e6", "c6"]
        assert [n.is_mainline for n in roots[0].children] == [True, False, False, False]

    def test_variation_on_first_root_move(self):
        roots = VariationParser(tokenize("1. e4 (1. d4 d5) e5"), FakeOracle()).parse("start")
        assert sans(roots) == ["e4", "d4"]
        assert roots[1].parent_id is None
        assert roots[1].ply == 1
        assert sans(roots[0].children) == ["e5"]

    def test_variation_before_any_move(self):
        roots = VariationParser(tokenize("(d4) e4 e5"), FakeOracle()).parse("start")
        assert sans(roots) == ["d4", "e4"]
        assert roots[0].is_mainline and not roots[1].is_mainline

    def test_stray_close_in_main_scope_is_ignored(self):
        roots = VariationParser(tokenize("e4 ) e5"), FakeOracle()).parse("start")
        assert sans(roots[0].children) == ["e5"]

    def test_null_move_in_variation_skips_nested_content(self):
        text = "1. e4 e5 (1... c5 2. Z0 Nf3 (2. Nc3 Nc6) d6) 2. Nf3 Nc6"
        roots = VariationParser(tokenize(text), FakeOracle()).parse("start")
        e5, c5 = roots[0].children
        assert c5.children == []
        assert sans(e5.children) == ["Nf3"]
        assert sans(e5.children[0].children) == ["Nc6"]

    def test_null_move_in_main_scope_ends_parsing(self):
        roots = VariationParser(tokenize("e4 e5 Z0 Nc3 ) Nf3"), FakeOracle()).parse("start")
        assert count_nodes_in(roots) == 2

    def test_pending_nags_attach_to_first_move(self):
        roots = VariationParser(tokenize("$5 $1 1. e4 $2 e5"), FakeOracle()).parse("start")
        assert roots[0].nags == [5, 1, 2]
        assert roots[0].children[0].nags == []

    def test_comments_concatenate(self):
        roots = VariationParser(tokenize("e4 {Best} {by test}"), FakeOracle()).parse("start")
        assert roots[0].comment == "Best by test"

    def test_comment_before_first_move_is_dropped(self):
        roots = VariationParser(tokenize("{Intro} e4"), FakeOracle()).parse("start")
        assert roots[0].comment == ""

    def test_opening_name_only_on_first_main_move(self):
        parser = VariationParser(tokenize("e4 (d4) e5 (c5)"), FakeOracle(), opening_name="King's Pawn")
        roots = parser.parse("start")
        assert roots[0].opening_name == "King's Pawn"
        assert roots[1].opening_name == ""
        assert all(n.opening_name == "" for n in roots[0].children)


def count_nodes_in(nodes):
    return sum(1 + count_nodes_in(n.children) for n in nodes)


class TestParseNotation:
    """End-to-end parsing with python-chess as the legality oracle."""

    def test_variation_structure(self):
        game = parse_notation("1. e4 e5 (1... c5 2. Nf3) 2. Nf3")
        tree = game.tree
        assert len(tree.children) == 1
        e4 = tree.children[0]
        assert e4.san == "e4" and e4.is_mainline
        e5, c5 = e4.children
        assert e5.san == "e5" and e5.is_mainline
        assert c5.san == "c5" and not c5.is_mainline
        assert c5.parent_id == e4.id
        assert sans(c5.children) == ["Nf3"]
        assert c5.children[0].move_number == 2
        assert c5.children[0].ply == 3
        assert sans(e5.children) == ["Nf3"]
        assert e5.children[0].is_mainline
        assert game.move_count == 5
        assert game.line_count == 2
        assert check_invariants(tree) == []

    def test_null_move_stops_the_line(self):
        game = parse_notation("1. e4 e5 2. Z0 Nc3 Z0")
        assert game.move_count == 2
        assert sans(game.tree.children) == ["e4"]
        assert sans(game.tree.children[0].children) == ["e5"]
        assert game.tree.children[0].children[0].children == []

    def test_illegal_move_is_skipped(self):
        game = parse_notation("1. e4 e5 2. Ke3 Nf3")
        e5 = game.tree.children[0].children[0]
        assert sans(e5.children) == ["Nf3"]
        assert e5.children[0].ply == 3

    def test_illegal_first_move_of_variation(self):
        game = parse_notation("1. e4 e5 (1... Qh4) 2. Nf3")
        assert sans(game.tree.children[0].children) == ["e5"]
        assert game.line_count == 1

    def test_san_is_canonicalised(self):
        game = parse_notation("1. e4 e5 2. Ngf3")
        assert game.tree.children[0].children[0].children[0].san == "Nf3"

    def test_positions_are_fen(self):
        game = parse_notation("1. e4")
        assert game.tree.children[0].fen == "rnbqkbnr/pppppppp/8/8/4P3/8/PPPP1PPP/RNBQKBNR b KQkq - 0 1"

    def test_nested_variations(self):
        text = "1. e4 e5 2. Nf3 Nc6 (2... d6 3. d4 (3. Bc4) exd4) 3. Bb5"
        game = parse_notation(text)
        nf3 = game.tree.children[0].children[0].children[0]
        nc6, d6 = nf3.children
        assert sans(d6.children) == ["d4", "Bc4"]
        assert sans(d6.children[0].children) == ["exd4"]
        assert sans(nc6.children) == ["Bb5"]
        assert game.line_count == 3
        assert check_invariants(game.tree) == []

    def test_comments_and_directives(self):
        text = "1. e4 {Best by test [%cal Gd2d4,Re2e4] [%csl Ge4]} {again} e5 $1 $14"
        game = parse_notation(text)
        e4 = game.tree.children[0]
        assert e4.comment == "Best by test again"
        assert e4.arrows == ["Gd2d4", "Re2e4"]
        assert e4.highlights == ["Ge4"]
        assert e4.children[0].nags == [1, 14]

    def test_vendor_directives_removed(self):
        game = parse_notation("1. e4 {[%evp 17,20] Solid} e5 [#]")
        assert game.tree.children[0].comment == "Solid"
        assert game.move_count == 2

    def test_unterminated_comment(self):
        game = parse_notation("1. e4 e5 {oops 2. Nf3 Nc6")
        assert game.move_count == 2
        assert game.tree.children[0].children[0].comment == ""

    def test_opening_name_from_white_header(self):
        pgn = '[Event "Course"]\n[White "2. Scotch Game"]\n\n1. e4 e5 (1... c5) 2. Nf3 *'
        game = parse_notation(pgn, opening_header="White")
        assert game.opening_name == "Scotch Game"
        assert game.headers["Event"] == "Course"
        e4 = game.tree.children[0]
        assert e4.opening_name == "Scotch Game"
        assert all(child.opening_name == "" for child in e4.children)

    def test_repeated_move_as_variation(self):
        game = parse_notation("1. e4 (1. e4 c5) e5")
        first, second = game.tree.children
        assert (first.san, second.san) == ("e4", "e4")
        assert first.id != second.id
        assert sans(first.children) == ["e5"]
        assert sans(second.children) == ["c5"]
        merged = merge_trees(game.tree, game.tree)
        assert check_invariants(merged) == []
        assert [sans(n.children) for n in merged.children] == [["e5"], ["c5"]]

    def test_headers_sharing_a_line(self):
        game = parse_notation('[Event "X"] [White "2. Scotch Game"]\n1. e4 e5 *', opening_header="White")
        assert game.opening_name == "Scotch Game"
        assert game.move_count == 2

    def test_zero_style_castling(self):
        game = parse_notation("1. e4 e5 2. Nf3 Nc6 3. Bc4 Bc5 4. 0-0")
        assert game.move_count == 7
        assert list(iter_nodes(game.tree))[-1].san == "O-O"

    def test_opening_header_falls_back_to_opening(self):
        pgn = '[Event "Course"]\n[Opening "Ruy Lopez"]\n\n1. e4 e5'
        assert parse_notation(pgn, opening_header="White").opening_name == "Ruy Lopez"

    def test_opening_header_from_environment(self, monkeypatch):
        monkeypatch.setenv("REPERTOIRE_OPENING_HEADER", "Black")
        pgn = '[White "Carlsen"]\n[Black "Caro-Kann"]\n\n1. e4 c6'
        assert parse_notation(pgn).opening_name == "Caro-Kann"

    def test_fen_header_sets_start_position(self):
        fen = "r1bqkbnr/pppp1ppp/2n5/4p3/4P3/5N2/PPPP1PPP/RNBQKB1R w KQkq - 2 3"
        game = parse_notation(f'[FEN "{fen}"]\n[SetUp "1"]\n\n3. Bb5 a6')
        assert game.tree.root_fen == fen
        bb5 = game.tree.children[0]
        assert bb5.move_number == 3
        assert bb5.ply == 1
        assert bb5.children[0].move_number == 3

    def test_custom_oracle(self):
        game = parse_notation("1. e4 e5", oracle=FakeOracle())
        assert game.tree.root_fen == "start"
        assert game.tree.children[0].fen == "start e4"

    def test_none_text_is_a_programming_error(self):
        with pytest.raises(ValueError):
            parse_notation(None)


class TestMultiGame:
    PGN = (
        '[Event "A"]\n[White "Italian"]\n\n1. e4 e5 2. Nf3 Nc6 3. Bc4 *\n\n'
        '[Event "B"]\n\n{No moves here} *\n\n'
        '[Event "C"]\n[White "Sicilian"]\n\n1. e4 c5 *\n'
    )

    def test_split_games(self):
        games = split_games(self.PGN)
        assert len(games) == 3
        assert games[1].startswith('[Event "B"]')

    def test_empty_games_are_dropped(self):
        games = parse_multi_game(self.PGN, opening_header="White")
        assert [g.opening_name for g in games] == ["Italian", "Sicilian"]
        assert [g.move_count for g in games] == [5, 2]

    def test_single_game_without_headers(self):
        games = parse_multi_game("1. d4 d5 2. c4")
        assert len(games) == 1


class TestHelpers:
    def test_extract_annotations(self):
        arrows, highlights, clean = extract_annotations("Plan [%cal Gf2f3, Gh2h4] attack [%csl Rf7]")
        assert arrows == ["Gf2f3", "Gh2h4"]
        assert highlights == ["Rf7"]
        assert clean == "Plan attack"

    def test_clean_opening_name(self):
        assert clean_opening_name("12. King's Indian") == "King's Indian"
        assert clean_opening_name("  London  ") == "London"


class TestChessOracle:
    def test_legal_move(self):
        oracle = ChessOracle()
        result = oracle.apply_move(oracle.initial_position(), "Nf3")
        assert result.san == "Nf3"
        assert result.move_number == 1
        assert " b " in result.fen

    def test_illegal_and_garbage(self):
        oracle = ChessOracle()
        start = oracle.initial_position()
        assert oracle.apply_move(start, "Ke2") is None
        assert oracle.apply_move(start, "zz") is None
        assert oracle.apply_move("not a fen", "e4") is None

    def test_ambiguous_move(self):
        # Knights on b1 and f1 both reach d2
        fen = "4k3/8/8/8/8/8/8/1N2KN2 w - - 0 1"
        assert ChessOracle().apply_move(fen, "Nd2") is None
        assert ChessOracle().apply_move(fen, "Nbd2").san == "Nbd2"
