"""Stamp progression math.

Everything here is pure: no session, no clock. The CRM listing and the
per-request progression endpoint both go through ``compute_progression`` so
the two always agree for the same prizes and stamp count.
"""

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

DEFAULT_CYCLE_SIZE = 15


@dataclass(frozen=True)
class Progression:
    stamps_last_prize: int
    stamps_next_prize: int
    last_prize_name: Optional[str] = None
    next_prize_name: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "stampsLastPrize": self.stamps_last_prize,
            "stampsNextPrize": self.stamps_next_prize,
            "lastPrizeName": self.last_prize_name,
            "nextPrizeName": self.next_prize_name,
        }


@dataclass(frozen=True)
class CouponPlan:
    stage_count: int
    cycle_span: int
    last_stage: int
    target_stage: Optional[int]
    target_cycle: int
    next_threshold: int
    consumed_before: int
    issue: bool
    valid_stamps: int

    @property
    def consumed_after(self) -> int:
        return self.next_threshold if self.issue else self.consumed_before

    @property
    def adjusted_valid_stamps(self) -> int:
        # stamps still counting toward the next prize once earned prizes are taken out
        return max(0, self.valid_stamps - min(self.consumed_after, self.valid_stamps))


def _sort_key(prize):
    created_at = getattr(prize, "created_at", None)
    return (
        int(prize.points_required),
        created_at is None,
        created_at or 0,
        str(getattr(prize, "id", "")),
    )


def build_progression_sequence(prizes: Iterable) -> list:
    """Prizes that make up one reward cycle, ascending by threshold.

    Non-promotional prizes win; promotional ones are only used when the
    business has nothing else configured.
    """
    usable = [p for p in prizes if p.points_required is not None and int(p.points_required) > 0]
    regular = [p for p in usable if not p.is_promotional]
    chosen = regular if regular else usable
    return sorted(chosen, key=_sort_key)


def progression_stages(sequence: Sequence) -> list:
    """One prize per distinct threshold, keeping the first prize of the sequence at each."""
    stages = []
    seen = set()
    for prize in sequence:
        points = int(prize.points_required)
        if points in seen:
            continue
        seen.add(points)
        stages.append(prize)
    return stages


def cycle_span(sequence: Sequence) -> int:
    if not sequence:
        return 0
    return max(int(p.points_required) for p in sequence)


def _prize_name_for(sequence: Sequence, points: int) -> Optional[str]:
    for prize in sequence:
        if int(prize.points_required) == points:
            return prize.name
    return None


def compute_progression(stamps: int, sequence: Sequence, default_cycle: int = DEFAULT_CYCLE_SIZE) -> Progression:
    stamps = max(0, int(stamps or 0))
    thresholds = sorted({int(p.points_required) for p in sequence if int(p.points_required) > 0})

    if not thresholds:
        base = default_cycle
        last = (stamps // base) * base
        return Progression(stamps_last_prize=last, stamps_next_prize=last + base)

    if len(thresholds) == 1:
        base = thresholds[0]
        last = (stamps // base) * base
        name = _prize_name_for(sequence, base)
        return Progression(
            stamps_last_prize=last,
            stamps_next_prize=last + base,
            last_prize_name=name,
            next_prize_name=name,
        )

    max_config = thresholds[-1]
    base_step = thresholds[0]

    if stamps <= max_config:
        last = max((t for t in thresholds if t <= stamps), default=0)
        nxt = min((t for t in thresholds if t > stamps), default=None)
        if nxt is None:
            nxt = last + base_step
    else:
        # past the configured thresholds the cycle restarts on the first threshold's spacing
        last = (stamps // base_step) * base_step
        nxt = last + base_step

    last_name = _prize_name_for(sequence, last) if last > 0 else None
    next_name = _prize_name_for(sequence, nxt) or _prize_name_for(sequence, base_step)

    return Progression(
        stamps_last_prize=last,
        stamps_next_prize=nxt,
        last_prize_name=last_name,
        next_prize_name=next_name,
    )


def plan_next_coupon(sequence: Sequence, stage_history: Iterable[int], valid_stamps: int) -> CouponPlan:
    """Replay issued coupons and decide whether the next stage is now earned.

    ``stage_history`` holds the position in ``progression_stages(sequence)`` of
    each coupon already issued for the membership, oldest first. A stage index
    that does not move forward starts a new cycle. At most one stage is
    targeted per call.
    """
    sequence = progression_stages(sequence)
    valid_stamps = max(0, int(valid_stamps or 0))
    stage_count = len(sequence)
    span = cycle_span(sequence)

    cycle = 0
    last_stage = -1
    for stage in stage_history:
        if last_stage >= 0 and stage <= last_stage:
            cycle += 1
        last_stage = stage

    consumed_before = 0
    if last_stage >= 0:
        consumed_before = cycle * span + int(sequence[last_stage].points_required)

    if stage_count == 0:
        return CouponPlan(
            stage_count=0,
            cycle_span=0,
            last_stage=last_stage,
            target_stage=None,
            target_cycle=cycle,
            next_threshold=0,
            consumed_before=consumed_before,
            issue=False,
            valid_stamps=valid_stamps,
        )

    if last_stage < 0:
        target_stage, target_cycle = 0, 0
    else:
        target_stage = (last_stage + 1) % stage_count
        target_cycle = cycle + 1 if target_stage == 0 else cycle

    next_threshold = target_cycle * span + int(sequence[target_stage].points_required)
    issue = next_threshold > 0 and next_threshold > consumed_before and valid_stamps >= next_threshold

    return CouponPlan(
        stage_count=stage_count,
        cycle_span=span,
        last_stage=last_stage,
        target_stage=target_stage,
        target_cycle=target_cycle,
        next_threshold=next_threshold,
        consumed_before=consumed_before,
        issue=issue,
        valid_stamps=valid_stamps,
    )
