from decimal import Decimal

import pytest

from promotracker.engine.errors import ComputationDomainError
from promotracker.engine.proration import SpanCycle


def credited(segments):
    return [(s.cycle_index, s.nights_credited, s.completes_cycle) for s in segments]


class TestSpanCycle:
    def test_stay_exactly_completes_cycle(self):
        cycle = SpanCycle(3, prior_nights=0)
        assert credited(cycle.advance(3)) == [(0, 3, True)]
        assert cycle.position == 0
        assert cycle.nights_remaining == 3
        assert cycle.cycle_index == 1

    def test_stay_spans_two_boundaries(self):
        cycle = SpanCycle(2, prior_nights=1)
        segs = cycle.advance(4)
        assert credited(segs) == [(0, 1, True), (1, 2, True), (2, 1, False)]
        assert cycle.position == 1
        assert sum(s.factor for s in segs) == Decimal("2")

    def test_mid_cycle_start_with_no_history(self):
        cycle = SpanCycle(4, prior_nights=0)
        segs = cycle.advance(1)
        assert credited(segs) == [(0, 1, False)]
        assert segs[0].factor == Decimal("0.25")
        assert cycle.nights_remaining == 3

    def test_continues_from_prior_nights(self):
        cycle = SpanCycle(5, prior_nights=7)
        assert cycle.cycle_index == 1
        assert cycle.position == 2
        assert credited(cycle.advance(3)) == [(1, 3, True)]

    def test_non_repeating_stops_after_first_cycle(self):
        cycle = SpanCycle(3, prior_nights=1, repeating=False)
        assert credited(cycle.advance(5)) == [(0, 2, True)]
        assert cycle.exhausted
        assert cycle.advance(2) == []

    def test_non_repeating_with_full_history_is_exhausted(self):
        cycle = SpanCycle(3, prior_nights=4, repeating=False)
        assert cycle.exhausted
        assert cycle.advance(3) == []

    def test_zero_nights_credits_nothing(self):
        assert SpanCycle(3).advance(0) == []

    @pytest.mark.parametrize("length", [0, -2])
    def test_non_positive_cycle_rejected(self, length):
        with pytest.raises(ComputationDomainError):
            SpanCycle(length)

    def test_negative_history_rejected(self):
        with pytest.raises(ComputationDomainError):
            SpanCycle(3, prior_nights=-1)
