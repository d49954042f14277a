"""Virtual display slot allocation.

Xvfb drops a ``/tmp/.X<n>-lock`` file for every display it serves. A slot is
free when that lock is absent and this allocator has not already handed it
out. The check is read-only; the slot is actually claimed when Xvfb starts
on it.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Set, Union

from .errors import ResourceExhausted
from .logging_utils import get_module_logger

DEFAULT_FIRST_DISPLAY = 99
DEFAULT_LAST_DISPLAY = 199
DEFAULT_LOCK_DIR = Path("/tmp")


@dataclass(frozen=True)
class DisplaySlot:
    number: int
    lock_dir: Path = DEFAULT_LOCK_DIR

    @property
    def name(self) -> str:
        return f":{self.number}"

    @property
    def lock_path(self) -> Path:
        return self.lock_dir / f".X{self.number}-lock"

    def __str__(self) -> str:
        return self.name


class DisplayAllocator:

    def __init__(
        self,
        first: int = DEFAULT_FIRST_DISPLAY,
        last: int = DEFAULT_LAST_DISPLAY,
        lock_dir: Union[str, Path] = DEFAULT_LOCK_DIR,
    ):
        if first > last:
            raise ValueError(f"Empty display range :{first}..:{last}")
        self.first = first
        self.last = last
        self.lock_dir = Path(lock_dir)
        self.logger = get_module_logger("DisplayAllocator")
        self._reserved: Set[int] = set()

    def is_in_use(self, number: int) -> bool:
        return (self.lock_dir / f".X{number}-lock").exists()

    def allocate(self) -> DisplaySlot:
        for number in range(self.first, self.last + 1):
            if number in self._reserved:
                continue
            if self.is_in_use(number):
                self.logger.debug("Display :%d is locked, skipping", number)
                continue
            self._reserved.add(number)
            self.logger.debug("Reserved display :%d", number)
            return DisplaySlot(number, self.lock_dir)

        raise ResourceExhausted(self.first, self.last)

    def release(self, slot: DisplaySlot) -> None:
        if slot.number in self._reserved:
            self._reserved.discard(slot.number)
            self.logger.debug("Released display %s", slot.name)

    @property
    def reserved(self) -> frozenset[int]:
        return frozenset(self._reserved)


__all__ = ["DisplaySlot", "DisplayAllocator", "DEFAULT_FIRST_DISPLAY", "DEFAULT_LAST_DISPLAY"]
