from __future__ import annotations

"""Randomness helpers for question shuffling, seeding and record ids."""

import os
import random
from typing import List, Optional, Sequence, TypeVar
from uuid import uuid4

import numpy as np

T = TypeVar("T")


def seed_if_needed() -> None:
    """Seed the stdlib and numpy RNGs when the SEED env var holds an integer."""
    seed = os.environ.get("SEED")
    if seed is None:
        return
    try:
        s = int(seed)
    except ValueError:
        return
    random.seed(s)
    np.random.seed(s)


def shuffled(items: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """Return a uniformly shuffled copy without touching the input."""
    out = list(items)
    (rng or random).shuffle(out)
    return out


def make_id(prefix: str) -> str:
    """Record id such as ``test-3f2a9c1d4b5e``."""
    return f"{prefix}-{uuid4().hex[:12]}"
