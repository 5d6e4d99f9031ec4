"""Ledger height sources."""

from __future__ import annotations

from typing import Callable

from .errors import HeightError

HeightSource = Callable[[], int]


class BlockHeight:
    """Monotonically non-decreasing block height counter.

    Stands in for the height a ledger runtime exposes to contract code.
    Instances are callable so they can be passed anywhere a
    ``HeightSource`` is expected.
    """

    def __init__(self, start: int = 0) -> None:
        if start < 0:
            raise HeightError("start height must be non-negative")
        self._height = start

    @property
    def current(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        """Move forward by ``blocks`` and return the new height."""
        if blocks < 0:
            raise HeightError("cannot advance by a negative number of blocks")
        self._height += blocks
        return self._height

    def set(self, height: int) -> None:
        if height < self._height:
            raise HeightError(f"height cannot move backwards ({self._height} -> {height})")
        self._height = height

    def __call__(self) -> int:
        return self._height

    def __repr__(self) -> str:
        return f"BlockHeight({self._height})"


class MonotonicGuard:
    """Wrap a height source and reject readings that go backwards.

    ``floor`` is the last height already committed elsewhere (for example a
    persisted store); readings below it are rejected too.
    """

    def __init__(self, source: HeightSource, *, floor: int | None = None) -> None:
        self._source = source
        self._last: int | None = floor

    def __call__(self) -> int:
        height = self._source()
        if not isinstance(height, int) or isinstance(height, bool):
            raise HeightError("height source must return an int")
        if height < 0:
            raise HeightError("height must be non-negative")
        if self._last is not None and height < self._last:
            raise HeightError(f"height moved backwards ({self._last} -> {height})")
        self._last = height
        return height
