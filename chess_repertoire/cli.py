#!/usr/bin/env python3
"""
chess_repertoire/cli.py

Import PGN repertoires and drill their lines with spaced repetition.
"""

import argparse
from datetime import datetime, timezone
from typing import List, Optional

from chess_repertoire.models import MoveNode, Repertoire, ReviewAttempt
from chess_repertoire.parsers.movetext import parse_multi_game
from chess_repertoire.srs import QUALITY_RATINGS, derive_quality
from chess_repertoire.store import RepertoireStore
from chess_repertoire.utils import get_int_setting, setup_logging


def _quality(value: str) -> int:
    if value.lower() in QUALITY_RATINGS:
        return QUALITY_RATINGS[value.lower()]
    try:
        quality = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected 0-5 or one of {', '.join(QUALITY_RATINGS)}")
    if not 0 <= quality <= 5:
        raise argparse.ArgumentTypeError("quality must be between 0 and 5")
    return quality


def _move_label(node: MoveNode) -> str:
    # Black to move in the resulting position means White just played
    white_moved = node.fen.split()[1] == "b"
    prefix = f"{node.move_number}." if white_moved else f"{node.move_number}..."
    return f"{prefix} {node.san}{node.nag_symbols}"


def _print_tree(nodes: List[MoveNode], depth: int = 0) -> None:
    for node in nodes:
        text = "  " * depth + _move_label(node)
        if not node.is_mainline:
            text += "  (variation)"
        if node.opening_name:
            text += f"  [{node.opening_name}]"
        if node.comment:
            text += f"  {{{node.comment}}}"
        print(text)
        _print_tree(node.children, depth + 1)


def _require(store: RepertoireStore, name: str) -> Optional[Repertoire]:
    repertoire = store.find_by_name(name)
    if repertoire is None:
        print(f"Error: no repertoire named '{name}'")
    return repertoire


def cmd_import(store: RepertoireStore, args) -> int:
    try:
        with open(args.pgn_file, 'r', encoding='utf-8') as f:
            pgn_text = f.read()
    except (FileNotFoundError, OSError) as e:
        print(f"Error: cannot read {args.pgn_file}: {e}")
        return 1

    games = parse_multi_game(pgn_text)
    repertoire = store.find_by_name(args.name) or store.create_repertoire(args.name, args.color)
    for i, game in enumerate(games, 1):
        store.import_tree(repertoire.id, game.tree, game.opening_name)
        label = game.opening_name or "unnamed"
        print(f"   [{i}/{len(games)}] {label}: {game.move_count} moves, {game.line_count} lines")
    created = store.ensure_cards(repertoire.id)
    print(f"\nDone. '{args.name}' now has {len(store.lines(repertoire.id))} lines ({created} new).")
    return 0


def cmd_show(store: RepertoireStore, args) -> int:
    repertoire = _require(store, args.name)
    if repertoire is None:
        return 1
    _print_tree(repertoire.tree.children)
    return 0


def cmd_lines(store: RepertoireStore, args) -> int:
    repertoire = _require(store, args.name)
    if repertoire is None:
        return 1
    for i, line in enumerate(store.lines(repertoire.id), 1):
        card = store.get_card(line.key)
        if card is None or card.total_reviews == 0:
            status = "new"
        else:
            status = f"next {card.next_review:%Y-%m-%d}"
        print(f"[{i}] {line.display_name}: {' '.join(line.san_sequence)} ({status})")
    return 0


def cmd_due(store: RepertoireStore, args) -> int:
    repertoire = _require(store, args.name)
    if repertoire is None:
        return 1
    names = {line.key: (i, line.display_name) for i, line in enumerate(store.lines(repertoire.id), 1)}
    limit = get_int_setting("REPERTOIRE_NEW_CARDS_PER_DAY", 10)
    due = [c for c in store.due_cards(repertoire.id) if c.line_id in names]
    fresh = [c for c in store.new_cards(repertoire.id) if c.line_id in names][:limit]

    print(f"{len(due)} due, {len(fresh)} new")
    for card in due:
        index, name = names[card.line_id]
        print(f"   due [{index}] {name} (interval {card.interval}d)")
    for card in fresh:
        index, name = names[card.line_id]
        print(f"   new [{index}] {name}")
    return 0


def cmd_review(store: RepertoireStore, args) -> int:
    repertoire = _require(store, args.name)
    if repertoire is None:
        return 1
    lines = store.lines(repertoire.id)
    if not 1 <= args.line <= len(lines):
        print(f"Error: line must be between 1 and {len(lines)}")
        return 1
    line = lines[args.line - 1]

    quality = args.quality if args.quality is not None else derive_quality(args.mistakes, args.hints)
    store.get_or_create_card(line.key, repertoire.id)
    card = store.record_review(ReviewAttempt(
        line_id=line.key,
        timestamp=datetime.now(timezone.utc),
        quality=quality,
        mistakes=args.mistakes,
        hints_used=args.hints,
    ))
    print(f"{line.display_name}: quality {quality}, next review {card.next_review:%Y-%m-%d} "
          f"(interval {card.interval}d, ease {card.ease_factor:.2f}, streak {card.streak})")
    return 0


def cmd_stats(store: RepertoireStore, args) -> int:
    repertoire = _require(store, args.name)
    if repertoire is None:
        return 1
    for key, value in store.stats(repertoire.id).items():
        print(f"{key.replace('_', ' ')}: {value}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Opening repertoire trainer')
    parser.add_argument('--data-file', help='Store location (default: REPERTOIRE_DATA_FILE or data/repertoire.json)')
    sub = parser.add_subparsers(dest='command', required=True)

    p = sub.add_parser('import', help='Merge a PGN file into a repertoire')
    p.add_argument('pgn_file', help='Path to PGN file')
    p.add_argument('--name', required=True, help='Repertoire name (created if missing)')
    p.add_argument('--color', choices=['white', 'black'], default='white')
    p.set_defaults(func=cmd_import)

    for name, func, help_text in (
        ('show', cmd_show, 'Print the move tree'),
        ('lines', cmd_lines, 'List every line'),
        ('due', cmd_due, 'List lines to review now'),
        ('stats', cmd_stats, 'Review statistics'),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument('name', help='Repertoire name')
        p.set_defaults(func=func)

    p = sub.add_parser('review', help='Record a drill result for a line')
    p.add_argument('name', help='Repertoire name')
    p.add_argument('line', type=int, help='Line number as shown by "lines"')
    p.add_argument('--mistakes', type=int, default=0)
    p.add_argument('--hints', type=int, default=0)
    p.add_argument('--quality', type=_quality, help='Override: 0-5 or blackout/hard/good/easy')
    p.set_defaults(func=cmd_review)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    store = RepertoireStore(args.data_file)
    return args.func(store, args)


if __name__ == '__main__':
    exit(main())
