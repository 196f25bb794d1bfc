"""
Rate resolution for CrewRate.

RateResolver finds the single rate card version effective on a date for a
(company, target, role, shift) key and reduces it to a ResolvedRate. The
store behind it is any object honouring the RateCardStore contract; the
PostgreSQL implementation lives in core/database.py and an in-memory one,
keeping a sorted version list per key, lives here.
"""
from __future__ import annotations

import bisect
import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Protocol, Sequence

from core.constants import (
    ShiftType, TargetType, RateLabel, SHIFT_TYPE_TO_RATE_LABEL,
)
from core.models import RateCard, RateCardKey, ResolvedRate
from core.time_utils import to_local_date
from utils.error_handler import InvariantViolation, RateNotFoundError, ValidationError, validate_input

logger = logging.getLogger(__name__)


# =============================================================================
# Shift Type -> Rate Label
# =============================================================================

def _check_label_table() -> None:
    missing = [s.value for s in ShiftType if s not in SHIFT_TYPE_TO_RATE_LABEL]
    if missing:
        raise InvariantViolation("Shift types missing from rate label table", details={"missing": missing})


_check_label_table()


def shift_type_to_rate_label(shift_type: ShiftType | str) -> RateLabel:
    """Map a shift type to the rate label used for card lookup.

    Anything outside the static table is a programmer error.
    """
    try:
        return SHIFT_TYPE_TO_RATE_LABEL[ShiftType(shift_type)]
    except (KeyError, ValueError):
        raise InvariantViolation(
            f"Unmapped shift type: {shift_type!r}",
            details={"shift_type": str(shift_type)},
        )


# =============================================================================
# Store Contract
# =============================================================================

class RateCardStore(Protocol):
    """Read contract consumed by RateResolver."""

    def find_candidates(self, key: RateCardKey, as_of: date) -> Sequence[RateCard]:
        """
        Every card matching key with effective_from <= as_of, ordered by
        effective_from descending. Must not be capped to a page size.
        """
        ...


class InMemoryRateCardStore:
    """
    Rate card store holding a sorted version list per key.

    Candidates are located by binary search on effective_from, so the
    effective version is reachable however many versions the key has.
    """

    def __init__(self, cards: Iterable[RateCard] = ()):
        self._versions: Dict[RateCardKey, List[RateCard]] = defaultdict(list)
        self._ids: set = set()
        for card in cards:
            self.add(card)

    def add(self, card: RateCard) -> None:
        if card.id in self._ids:
            raise ValidationError(f"Duplicate rate card id: {card.id}", details={"id": card.id})

        versions = self._versions[card.key]
        for other in versions:
            if card.effective_window.intersect(other.effective_window) is not None:
                logger.warning(
                    f"Rate card {card.id} overlaps {other.id} for {card.key}; "
                    f"the later effective_from wins on shared dates"
                )
        bisect.insort(versions, card, key=lambda c: (c.effective_from, c.id))
        self._ids.add(card.id)

    def find_candidates(self, key: RateCardKey, as_of: date) -> Sequence[RateCard]:
        versions = self._versions.get(key, [])
        # First index whose effective_from is after as_of
        cut = bisect.bisect_right(versions, as_of, key=lambda c: c.effective_from)
        return list(reversed(versions[:cut]))

    def __len__(self) -> int:
        return len(self._ids)


# =============================================================================
# Resolver
# =============================================================================

def extract_rate(card: RateCard) -> ResolvedRate:
    """Reduce a card to its base/OT rates. Non-hourly cards have no OT rate."""
    base_rate, ot_rate = card.base_and_ot_rates()
    return ResolvedRate(
        rate_label=card.rate_label,
        base_rate=base_rate,
        ot_rate=ot_rate,
        currency=card.currency,
        rate_card_id=card.id,
        rate_mode=card.rate_mode,
        min_hours=card.min_hours,
    )


class RateResolver:
    """Finds the rate card version effective for a pricing key on a date."""

    def __init__(self, store: RateCardStore):
        self.store = store

    @validate_input({
        'company_id': {'type': str, 'non_empty': True},
        'target_id': {'type': str, 'non_empty': True},
        'role_id': {'type': str, 'non_empty': True},
    })
    def resolve_rate(
        self,
        company_id: str,
        target_type: TargetType | str,
        target_id: str,
        role_id: str,
        shift_type: ShiftType | str,
        as_of: date | datetime | str,
    ) -> Optional[ResolvedRate]:
        """
        Resolve the rate for one side of a pricing operation.

        Candidates arrive newest effective_from first; the first one still
        within its validity window wins, so a newer card that has already
        expired never shadows an older open-ended one.

        Returns:
            ResolvedRate, or None when no card is effective on as_of
        """
        try:
            target_type = TargetType(target_type)
        except ValueError:
            raise ValidationError(f"Unknown target type: {target_type!r}", details={"target_type": str(target_type)})
        rate_label = shift_type_to_rate_label(shift_type)
        as_of = to_local_date(as_of)

        key = RateCardKey(company_id, target_type, target_id, role_id, rate_label)
        candidates = self.store.find_candidates(key, as_of)
        logger.debug(f"Resolving {key} as of {as_of}: {len(candidates)} candidate(s)")

        for card in candidates:
            if card.is_effective_on(as_of):
                logger.debug(f"Resolved {key} as of {as_of} to rate card {card.id}")
                return extract_rate(card)

        logger.debug(f"No effective rate card for {key} as of {as_of}")
        return None

    def require_rate(
        self,
        company_id: str,
        target_type: TargetType | str,
        target_id: str,
        role_id: str,
        shift_type: ShiftType | str,
        as_of: date | datetime | str,
    ) -> ResolvedRate:
        """resolve_rate, raising RateNotFoundError instead of returning None."""
        resolved = self.resolve_rate(company_id, target_type, target_id, role_id, shift_type, as_of)
        if resolved is None:
            raise RateNotFoundError(
                "Rate card not found for this combination",
                details={
                    "company_id": company_id,
                    "target_type": TargetType(target_type).value,
                    "target_id": target_id,
                    "role_id": role_id,
                    "shift_type": ShiftType(shift_type).value,
                    "as_of": str(to_local_date(as_of)),
                },
            )
        return resolved
