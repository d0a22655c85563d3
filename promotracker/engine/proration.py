"""Span-stay cycle tracking.

A span-stay rule grants one unit of benefit per cycle of N nights, where the
nights may come from several separate stays. ``SpanCycle`` holds the cycle
position left behind by earlier stays and splits the next stay into the
pieces it contributes to each cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from promotracker.engine.errors import ComputationDomainError


@dataclass(frozen=True)
class CycleSegment:
    cycle_index: int
    nights_credited: int
    completes_cycle: bool
    cycle_nights: int

    @property
    def factor(self) -> Decimal:
        return Decimal(self.nights_credited) / Decimal(self.cycle_nights)


class SpanCycle:
    def __init__(self, cycle_nights: int, prior_nights: int = 0, repeating: bool = True):
        if cycle_nights <= 0:
            raise ComputationDomainError(f"span cycle length must be positive, got {cycle_nights}")
        if prior_nights < 0:
            raise ComputationDomainError(f"prior nights cannot be negative, got {prior_nights}")
        self.cycle_nights = cycle_nights
        self.repeating = repeating
        if repeating:
            self.cycle_index, self.position = divmod(prior_nights, cycle_nights)
        elif prior_nights >= cycle_nights:
            self.cycle_index, self.position = 1, 0
        else:
            self.cycle_index, self.position = 0, prior_nights

    @property
    def nights_remaining(self) -> int:
        return self.cycle_nights - self.position

    @property
    def exhausted(self) -> bool:
        # Non-repeating rules stop after their first cycle
        return not self.repeating and self.cycle_index >= 1

    def advance(self, nights: int) -> list[CycleSegment]:
        segments: list[CycleSegment] = []
        while nights > 0 and not self.exhausted:
            credited = min(nights, self.nights_remaining)
            completes = credited == self.nights_remaining
            segments.append(CycleSegment(self.cycle_index, credited, completes, self.cycle_nights))
            nights -= credited
            if completes:
                self.cycle_index += 1
                self.position = 0
            else:
                self.position += credited
        return segments
