"""
Cumulative ledger calculator.

Every aggregate is recomputed from the complete donation history on each
call. Nothing here performs I/O; callers fetch the history first.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, Protocol


class DonationLike(Protocol):
    association_id: str
    amount: int
    created_at: datetime


@dataclass(frozen=True)
class LedgerFacts:
    """Aggregates derived from one donation history"""
    total_amount: int = 0
    donation_count: int = 0
    count_by_association: Dict[str, int] = field(default_factory=dict)
    total_by_association: Dict[str, int] = field(default_factory=dict)

    def count_for(self, association_id: str) -> int:
        return self.count_by_association.get(association_id, 0)

    def total_for(self, association_id: str) -> int:
        return self.total_by_association.get(association_id, 0)


def compute_ledger(donations: Iterable[DonationLike]) -> LedgerFacts:
    total_amount = 0
    donation_count = 0
    count_by_association: Dict[str, int] = defaultdict(int)
    total_by_association: Dict[str, int] = defaultdict(int)

    for donation in donations:
        amount = donation.amount or 0
        total_amount += amount
        donation_count += 1
        count_by_association[donation.association_id] += 1
        total_by_association[donation.association_id] += amount

    return LedgerFacts(
        total_amount=total_amount,
        donation_count=donation_count,
        count_by_association=dict(count_by_association),
        total_by_association=dict(total_by_association),
    )


def total_since(donations: Iterable[DonationLike], since: datetime) -> int:
    """Sum of the donations made at or after ``since``"""
    return sum((d.amount or 0) for d in donations if d.created_at >= since)


def totals_by_year(donations: Iterable[DonationLike]) -> Dict[int, int]:
    totals: Dict[int, int] = defaultdict(int)
    for donation in donations:
        totals[donation.created_at.year] += donation.amount or 0
    return dict(sorted(totals.items()))
