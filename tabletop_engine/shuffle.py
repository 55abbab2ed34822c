"""Human-like riffle shuffle for libraries.

A uniform permutation tends to feel "off" at a physical-style table, so the
library is shuffled the way people do it: split into piles and interleave
small clumps. The result is deliberately non-uniform.
"""

from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Sequence, TypeVar

from core.config import SHUFFLE_PASSES

if TYPE_CHECKING:
    from tabletop_engine.zones import ObjectStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _split_point(size: int, rng: random.Random) -> int:
    """Roughly half of size, give or take two, kept inside the sequence."""
    return min(size, max(0, size // 2 + rng.randint(-2, 2)))


def _run_length(rng: random.Random) -> int:
    """Clump size for one pull: 1 to 3, most often 1."""
    return max(1, rng.randint(-1, 3))


def merge_piles(pile_a: Sequence[T], pile_b: Sequence[T], rng: random.Random) -> list[T]:
    """Interleave two piles by alternately pulling small runs off each."""
    a = list(pile_a)
    b = list(pile_b)
    merged: list[T] = []
    while a or b:
        if a:
            take = _run_length(rng)
            merged.extend(a[:take])
            del a[:take]
        if b:
            take = _run_length(rng)
            merged.extend(b[:take])
            del b[:take]
    return merged


def riffle_shuffle(
    items: Sequence[T],
    rng: random.Random | None = None,
    passes: int = SHUFFLE_PASSES,
) -> list[T]:
    """Return a riffle-shuffled copy of items.

    Each pass splits the deck in two, splits each half again (four piles),
    merges pile 1 with 2 and pile 3 with 4, then merges the two results.

    Args:
        items: Sequence to shuffle; not modified.
        rng: Random source (seed it for reproducible tests).
        passes: Number of riffle passes.

    Returns:
        A permutation of items.
    """
    rng = rng or random.Random()
    cards = list(items)
    for _ in range(passes):
        midpoint = _split_point(len(cards), rng)
        half1, half2 = cards[:midpoint], cards[midpoint:]

        half1_mid = _split_point(len(half1), rng)
        half2_mid = _split_point(len(half2), rng)

        first = merge_piles(half1[:half1_mid], half1[half1_mid:], rng)
        second = merge_piles(half2[:half2_mid], half2[half2_mid:], rng)
        cards = merge_piles(first, second, rng)
    return cards


def shuffle_library(
    objects: ObjectStore,
    session_id: str,
    seat: int,
    rng: random.Random | None = None,
) -> list[str]:
    """Riffle a seat's library and persist the new order in one batched write.

    Args:
        objects: ObjectStore for the session's database.
        session_id: Session to shuffle in.
        seat: Owner of the library.
        rng: Random source.

    Returns:
        Object ids from top to bottom.
    """
    card_ids = [obj.id for obj in objects.library(session_id, seat)]
    shuffled = riffle_shuffle(card_ids, rng)
    objects.write_order(shuffled)
    logger.info(f"Library shuffled by seat {seat} in game {session_id} ({len(shuffled)} cards)")
    return shuffled
