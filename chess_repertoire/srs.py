"""
SM-2 spaced repetition for repertoire lines.

The scheduling function is pure; card updates return new cards. Due-date
jitter is applied to the date only, so the stored interval stays
reproducible from the review history.
"""

import logging
import math
import random
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, NamedTuple, Optional

from chess_repertoire.models import DEFAULT_EASE_FACTOR, MIN_EASE_FACTOR, SRSCard, generate_id

logger = logging.getLogger("chess_repertoire")

FIRST_INTERVAL = 1  # days
SECOND_INTERVAL = 6  # days
JITTER = 0.05

# Quick ratings offered after a drill, mapped to SM-2 quality
QUALITY_RATINGS: Dict[str, int] = {
    "blackout": 0,
    "hard": 2,
    "good": 4,
    "easy": 5,
}


class SM2Result(NamedTuple):
    interval: int
    repetitions: int
    ease_factor: float


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


# ---------------------------------------------------------------------------
# SM-2 core algorithm
# ---------------------------------------------------------------------------

def sm2(quality: int, repetitions: int, ease_factor: float, interval: int) -> SM2Result:
    """Apply the SM-2 algorithm and return updated scheduling values.

    Args:
        quality: Recall grade, 0 (blackout) to 5 (perfect). 3 and up is a pass.
        repetitions: Consecutive successful reviews so far.
        ease_factor: Current ease factor (never below 1.3).
        interval: Current interval in days.

    Returns:
        SM2Result(interval, repetitions, ease_factor).

    Raises:
        ValueError: quality outside 0-5, or a negative repetitions/interval.
    """
    if quality < 0 or quality > 5:
        raise ValueError(f"quality must be 0-5, got {quality}")
    if repetitions < 0 or interval < 0:
        raise ValueError(f"repetitions and interval must be >= 0, got {repetitions} and {interval}")

    new_ease = ease_factor + (0.1 - (5 - quality) * (0.08 + (5 - quality) * 0.02))
    new_ease = max(MIN_EASE_FACTOR, new_ease)

    if quality < 3:
        return SM2Result(interval=FIRST_INTERVAL, repetitions=0, ease_factor=new_ease)

    if repetitions == 0:
        new_interval = FIRST_INTERVAL
    elif repetitions == 1:
        new_interval = SECOND_INTERVAL
    else:
        # Growth uses the ease factor from before this review
        new_interval = _round_half_up(interval * ease_factor)
    return SM2Result(interval=new_interval, repetitions=repetitions + 1, ease_factor=new_ease)


def derive_quality(mistakes: int, hints_used: int) -> int:
    """Suggest an SM-2 quality from drill performance; the user may override it."""
    if mistakes == 0 and hints_used == 0:
        return 5
    if mistakes == 0:
        return 4
    if mistakes == 1:
        return 3
    if mistakes == 2:
        return 2
    return 1


# ---------------------------------------------------------------------------
# Card lifecycle
# ---------------------------------------------------------------------------

def new_card(line_id: str, repertoire_id: str, now: Optional[datetime] = None) -> SRSCard:
    """A fresh card, due immediately."""
    return SRSCard(
        id=generate_id(),
        line_id=line_id,
        repertoire_id=repertoire_id,
        next_review=now or datetime.now(timezone.utc),
    )


def process_review(
    card: SRSCard,
    quality: int,
    now: Optional[datetime] = None,
    rng: Optional[random.Random] = None,
) -> SRSCard:
    """Score ``card`` with ``quality`` and return the rescheduled copy."""
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()

    result = sm2(quality, card.repetitions, card.ease_factor, card.interval)

    # Spread reviews out a little so lines learned together don't all come due on the same day
    due_in = result.interval
    if result.interval > 1:
        due_in = result.interval * rng.uniform(1 - JITTER, 1 + JITTER)

    passed = quality >= 3
    streak = card.streak + 1 if passed else 0
    updated = replace(
        card,
        ease_factor=result.ease_factor,
        interval=result.interval,
        repetitions=result.repetitions,
        next_review=now + timedelta(days=_round_half_up(due_in)),
        last_review=now,
        total_reviews=card.total_reviews + 1,
        correct_count=card.correct_count + (1 if passed else 0),
        incorrect_count=card.incorrect_count + (0 if passed else 1),
        streak=streak,
        best_streak=max(card.best_streak, streak),
    )
    logger.debug(
        f"Reviewed line {card.line_id} (q={quality}) -> reps={updated.repetitions} "
        f"ef={updated.ease_factor:.2f} interval={updated.interval} next={updated.next_review}"
    )
    return updated


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def _select(cards: Iterable[SRSCard], repertoire_id: Optional[str]) -> List[SRSCard]:
    return [c for c in cards if repertoire_id is None or c.repertoire_id == repertoire_id]


def due_cards(
    cards: Iterable[SRSCard], now: Optional[datetime] = None, repertoire_id: Optional[str] = None
) -> List[SRSCard]:
    """Reviewed cards whose due date has passed, most overdue first."""
    now = now or datetime.now(timezone.utc)
    due = [c for c in _select(cards, repertoire_id) if c.total_reviews > 0 and c.next_review <= now]
    return sorted(due, key=lambda c: c.next_review)


def new_cards(cards: Iterable[SRSCard], repertoire_id: Optional[str] = None) -> List[SRSCard]:
    """Cards that have never been reviewed."""
    return [c for c in _select(cards, repertoire_id) if c.total_reviews == 0]


def card_stats(
    cards: Iterable[SRSCard], now: Optional[datetime] = None, repertoire_id: Optional[str] = None
) -> dict:
    """Summary numbers for a set of cards."""
    now = now or datetime.now(timezone.utc)
    selected = _select(cards, repertoire_id)
    total_reviews = sum(c.total_reviews for c in selected)
    total_correct = sum(c.correct_count for c in selected)
    average_ease = (
        sum(c.ease_factor for c in selected) / len(selected) if selected else DEFAULT_EASE_FACTOR
    )
    return {
        "total_lines": len(selected),
        "due_today": len(due_cards(selected, now)),
        "new_lines": len(new_cards(selected)),
        "average_ease": round(average_ease, 2),
        "total_reviews": total_reviews,
        "accuracy": _round_half_up(total_correct / total_reviews * 100) if total_reviews else 0,
    }
