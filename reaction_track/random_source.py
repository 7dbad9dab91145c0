from __future__ import annotations

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Sequence, TypeVar

T = TypeVar("T")


class RandomSource(ABC):
    """
    Supplier of every uniform pick the tracker makes.
    Inject a deterministic implementation in tests.
    """

    @abstractmethod
    def choice(self, items: Sequence[T]) -> T: ...


class SystemRandomSource(RandomSource):
    """random.Random-backed source; pass a seed for reproducible runs."""

    def __init__(self, seed: int | None = None, rng: random.Random | None = None) -> None:
        self._rng = rng if rng is not None else random.Random(seed)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("cannot choose from an empty sequence")
        return self._rng.choice(items)


@dataclass
class ScriptedRandomSource(RandomSource):
    """
    Simple source for tests/demos.

    Each pick consumes the next scripted index (taken modulo len(items)).
    Once the script is exhausted, the first item is returned.
    Every pick is recorded as (candidates, chosen) for assertions.
    """

    script: list[int] = field(default_factory=list)
    picks: list[tuple[tuple[object, ...], object]] = field(default_factory=list)
    _pos: int = field(default=0, init=False)

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise IndexError("cannot choose from an empty sequence")
        idx = 0
        if self._pos < len(self.script):
            idx = int(self.script[self._pos]) % len(items)
            self._pos += 1
        chosen = items[idx]
        self.picks.append((tuple(items), chosen))
        return chosen
