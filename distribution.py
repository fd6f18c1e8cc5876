"""
Tip pool distribution engine.

Splits a pooled cash amount across partners in proportion to hours worked,
reconciles rounding so payouts add up to the pool to the cent, and breaks
every payout into physical bills and coins.

Everything here is a pure function of its arguments: no I/O, no module state
besides the default denomination list. All money is carried as integer cents
internally and exposed as ``Decimal`` with two places.
"""
import logging
from decimal import Decimal, InvalidOperation, ROUND_FLOOR, ROUND_HALF_UP
from collections import deque
from functools import lru_cache, reduce
from math import gcd
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

MAX_DENOMINATIONS = 24
# largest table the exact change-making solvers will build, in units of the
# denominations' common divisor
MAX_CHANGE_UNITS = 100_000

DEFAULT_DENOMINATIONS = tuple(
    Decimal(d) for d in ("100", "50", "20", "10", "5", "1", "0.25", "0.10", "0.05", "0.01")
)


class DistributionError(Exception):
    code = "distribution_error"


class InvalidInputError(DistributionError):
    """Structural problem with the request: no money, no hours or no partners."""
    code = "invalid_input"


class UnrepresentableAmountError(DistributionError):
    """A payout cannot be paid exactly with the configured denominations."""
    code = "unrepresentable_amount"

    def __init__(self, message: str, remaining: Decimal = Decimal("0.00")):
        super().__init__(message)
        self.remaining = remaining


class InsufficientCashError(UnrepresentableAmountError):
    """The cash on hand runs out before a payout is covered."""
    code = "insufficient_cash"


# Pydantic models

class PartnerHours(BaseModel):
    name: str = Field(min_length=1)
    hours: Decimal

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be blank")
        return v


class DistributionInput(BaseModel):
    total_amount: Decimal
    partners: List[PartnerHours]


class BillBreakdownEntry(BaseModel):
    denomination: Decimal
    quantity: int = Field(ge=0)


class PartnerPayout(BaseModel):
    name: str
    hours: Decimal
    payout: Decimal
    bill_breakdown: List[BillBreakdownEntry] = []


class DistributionData(BaseModel):
    hourly_rate: Decimal
    total_amount: Decimal
    total_hours: Decimal
    partner_payouts: List[PartnerPayout]
    bills_needed: List[BillBreakdownEntry] = []


# Money helpers

def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        value = str(value)
    try:
        return Decimal(value)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidInputError(f"Not a number: {value!r}")


def to_cents(value) -> int:
    """Convert an amount to integer cents, refusing sub-cent precision."""
    amount = to_decimal(value)
    if not amount.is_finite():
        raise InvalidInputError(f"Not a finite amount: {value!r}")
    cents = amount * 100
    if cents != cents.to_integral_value():
        raise InvalidInputError(f"Amount {amount} has more than two decimal places")
    return int(cents)


def from_cents(cents: int) -> Decimal:
    return Decimal(cents).scaleb(-2)


def normalize_denominations(denominations: Iterable) -> Tuple[int, ...]:
    """
    Validate a denomination list and return it as unique cent values,
    largest first.
    """
    cents = set()
    for d in denominations:
        value = to_cents(d)
        if value <= 0:
            raise InvalidInputError(f"Denomination must be positive, got {d}")
        cents.add(value)
    if not cents:
        raise InvalidInputError("At least one denomination is required")
    if len(cents) > MAX_DENOMINATIONS:
        raise InvalidInputError(f"At most {MAX_DENOMINATIONS} denominations are supported")
    return tuple(sorted(cents, reverse=True))


# Rate & payout calculation

def reconcile_cents(raw_shares: Sequence[Decimal], total_cents: int) -> List[int]:
    """
    Round raw per-partner shares (in cents) to whole cents so they add up to
    ``total_cents`` exactly.

    Every share is floored, then the cents left over are handed out one at a
    time to the shares with the largest fractional remainder. Ties go to the
    earlier partner in input order.
    """
    floors = [int(r.to_integral_value(rounding=ROUND_FLOOR)) for r in raw_shares]
    leftover = total_cents - sum(floors)
    if leftover < 0 or leftover > len(raw_shares):
        raise InvalidInputError(
            f"Shares do not add up to the total ({leftover} cents left over)"
        )
    order = sorted(range(len(raw_shares)), key=lambda i: (floors[i] - raw_shares[i], i))
    for i in order[:leftover]:
        floors[i] += 1
    return floors


def compute_payouts(total_amount, partners: Sequence[PartnerHours]) -> DistributionData:
    """
    Compute the hourly rate and every partner's payout.

    Bill breakdowns are left empty; see ``distribute`` for the full pipeline.
    Raises InvalidInputError for an empty roster, a non-positive amount or
    zero total hours.
    """
    partners = [p if isinstance(p, PartnerHours) else PartnerHours.model_validate(p) for p in partners]
    if not partners:
        raise InvalidInputError("At least one partner is required")

    total_cents = to_cents(total_amount)
    if total_cents <= 0:
        raise InvalidInputError("Total amount must be greater than 0")

    for p in partners:
        if not p.hours.is_finite() or p.hours < 0:
            raise InvalidInputError(f"Hours for {p.name} must be a non-negative number")

    total_hours = sum((p.hours for p in partners), Decimal("0"))
    if total_hours <= 0:
        raise InvalidInputError("Total hours must be greater than 0")

    total = from_cents(total_cents)
    hourly_rate = (total / total_hours).quantize(CENT, rounding=ROUND_HALF_UP)

    # unrounded shares, in cents
    raw_shares = [Decimal(total_cents) * p.hours / total_hours for p in partners]
    payouts = reconcile_cents(raw_shares, total_cents)

    naive = sum(int(r.to_integral_value(rounding=ROUND_HALF_UP)) for r in raw_shares)
    if naive != total_cents:
        logger.info("reconciliation_applied", extra={
            "discrepancy_cents": total_cents - naive,
            "partners": len(partners),
        })

    logger.info("distribution_computed", extra={
        "total_amount": str(total),
        "total_hours": str(total_hours),
        "hourly_rate": str(hourly_rate),
        "partners": len(partners),
    })

    return DistributionData(
        hourly_rate=hourly_rate,
        total_amount=total,
        total_hours=total_hours,
        partner_payouts=[
            PartnerPayout(name=p.name, hours=p.hours, payout=from_cents(cents))
            for p, cents in zip(partners, payouts)
        ],
    )


# Denomination allocation

def _greedy(amount: int, denoms: Sequence[int], available: Optional[Dict[int, int]] = None):
    counts = []
    remaining = amount
    for d in denoms:
        qty = remaining // d
        if available is not None:
            qty = min(qty, available.get(d, 0))
        if qty > 0:
            counts.append((d, qty))
            remaining -= qty * d
        if remaining == 0:
            break
    return counts, remaining


def _min_bills(amount: int, denoms: Sequence[int]):
    """Exact minimum-count change making; returns None when impossible."""
    unit = reduce(gcd, denoms)
    if amount % unit:
        return None
    units = [d // unit for d in denoms]
    target = amount // unit

    # Some optimal answer uses each smaller piece fewer than units[0] times,
    # so everything above that much goes out in the largest piece.
    largest = units[0]
    head = max(0, (target - largest * sum(units[1:])) // largest)
    target -= head * largest
    _check_table_size(target)

    best = [0] + [None] * target
    last = [0] * (target + 1)
    for a in range(1, target + 1):
        for u in units:
            if u > a or best[a - u] is None:
                continue
            if best[a] is None or best[a - u] + 1 < best[a]:
                best[a] = best[a - u] + 1
                last[a] = u
    if best[target] is None:
        return None
    counts: Dict[int, int] = {largest: head} if head else {}
    a = target
    while a > 0:
        counts[last[a]] = counts.get(last[a], 0) + 1
        a -= last[a]
    return [(d, counts[u]) for d, u in zip(denoms, units) if u in counts]


def _bounded_min_bills(amount: int, pool: Dict[int, int]):
    """
    Fewest pieces paying ``amount`` exactly when each denomination has a
    limited count; returns None when the pool can't make exact change.
    """
    denoms = [d for d in sorted(pool, reverse=True) if pool[d] > 0]
    if amount == 0:
        return []
    if not denoms:
        return None
    unit = reduce(gcd, denoms)
    if amount % unit:
        return None
    target = amount // unit
    _check_table_size(target)

    impossible = target + 1
    best = [0] + [impossible] * target
    layers = []
    for d in denoms:
        u, limit = d // unit, pool[d]
        new = [impossible] * (target + 1)
        used = [0] * (target + 1)
        # amounts r, r+u, r+2u, ...: sliding minimum of best[r+i*u] - i
        # over the last `limit` + 1 steps
        for r in range(min(u, target + 1)):
            window = deque()
            for j, a in enumerate(range(r, target + 1, u)):
                if best[a] < impossible:
                    while window and best[r + window[-1] * u] - window[-1] >= best[a] - j:
                        window.pop()
                    window.append(j)
                while window and window[0] < j - limit:
                    window.popleft()
                if window:
                    i = window[0]
                    new[a] = best[r + i * u] - i + j
                    used[a] = j - i
        best = new
        layers.append((d, u, used))

    if best[target] >= impossible:
        return None
    counts = []
    a = target
    for d, u, used in reversed(layers):
        if used[a]:
            counts.append((d, used[a]))
            a -= used[a] * u
    return counts[::-1]


def _check_table_size(units: int):
    if units > MAX_CHANGE_UNITS:
        raise InvalidInputError(
            f"Exact change would need a {units}-step table (limit {MAX_CHANGE_UNITS}); "
            f"use fewer or closer denominations"
        )


@lru_cache(maxsize=32)
def _is_canonical(denoms: Tuple[int, ...]) -> bool:
    if len(denoms) < 3:
        return True
    unit = reduce(gcd, denoms)
    units = [d // unit for d in denoms]
    # smallest greedy counterexample, if any, is below the two largest combined
    bound = units[0] + units[1]
    _check_table_size(bound)
    best = [0] + [None] * bound
    for a in range(1, bound + 1):
        for u in units:
            if u <= a and best[a - u] is not None and (best[a] is None or best[a - u] + 1 < best[a]):
                best[a] = best[a - u] + 1
        counts, remaining = _greedy(a, units)
        greedy_count = None if remaining else sum(q for _, q in counts)
        if greedy_count != best[a]:
            return False
    return True


def is_canonical(denominations: Iterable) -> bool:
    """True when greedy change making is optimal for this denomination set."""
    return _is_canonical(normalize_denominations(denominations))


def min_bills_breakdown(payout, denominations: Iterable = DEFAULT_DENOMINATIONS) -> List[BillBreakdownEntry]:
    """Fewest-pieces breakdown by dynamic programming, for any denomination set."""
    denoms = normalize_denominations(denominations)
    amount = to_cents(payout)
    if amount < 0:
        raise InvalidInputError("Payout cannot be negative")
    counts = _min_bills(amount, denoms)
    if counts is None:
        raise UnrepresentableAmountError(
            f"{from_cents(amount)} cannot be paid with denominations "
            f"{[str(from_cents(d)) for d in denoms]}",
            remaining=from_cents(amount),
        )
    return [BillBreakdownEntry(denomination=from_cents(d), quantity=q) for d, q in counts]


def allocate_bills(payout, denominations: Iterable = DEFAULT_DENOMINATIONS) -> List[BillBreakdownEntry]:
    """
    Break a payout into bills and coins, largest denomination first.

    Zero-quantity denominations are left out, so a zero payout gives an empty
    list. Raises UnrepresentableAmountError if something is left over after
    the smallest denomination. Non-canonical sets (where greedy is not
    optimal) fall back to ``min_bills_breakdown``. Sets too spread out to
    check or solve exactly are refused with InvalidInputError.
    """
    denoms = normalize_denominations(denominations)
    amount = to_cents(payout)
    if amount < 0:
        raise InvalidInputError("Payout cannot be negative")

    if not _is_canonical(denoms):
        logger.warning("non_canonical_denominations", extra={
            "denominations": [str(from_cents(d)) for d in denoms],
        })
        return min_bills_breakdown(payout, denoms_to_decimal(denoms))

    counts, remaining = _greedy(amount, denoms)
    if remaining:
        raise UnrepresentableAmountError(
            f"{from_cents(remaining)} of {from_cents(amount)} cannot be paid with "
            f"denominations {[str(from_cents(d)) for d in denoms]}",
            remaining=from_cents(remaining),
        )
    return [BillBreakdownEntry(denomination=from_cents(d), quantity=q) for d, q in counts]


def denoms_to_decimal(denoms: Iterable[int]) -> List[Decimal]:
    return [from_cents(d) for d in denoms]


def allocate_from_inventory(payout, inventory: Dict) -> Tuple[List[BillBreakdownEntry], Dict[Decimal, int]]:
    """
    Pay out from a limited pool of bills and coins.

    ``inventory`` maps denomination -> count on hand. Largest bills go first;
    when that leaves change the pool can't make, the fewest-pieces exact
    payment from the pool is used instead. Returns the breakdown and the pool
    left afterwards; the mapping passed in is not modified. Raises
    InsufficientCashError when no combination of the cash on hand pays the
    payout exactly.
    """
    pool: Dict[int, int] = {}
    for denom, count in inventory.items():
        if int(count) < 0:
            raise InvalidInputError(f"Inventory count for {denom} cannot be negative")
        d = normalize_denominations([denom])[0]
        pool[d] = pool.get(d, 0) + int(count)
    if len(pool) > MAX_DENOMINATIONS:
        raise InvalidInputError(f"At most {MAX_DENOMINATIONS} denominations are supported")
    amount = to_cents(payout)
    if amount < 0:
        raise InvalidInputError("Payout cannot be negative")

    counts, remaining = _greedy(amount, sorted(pool, reverse=True), available=pool)
    if remaining:
        on_hand = sum(d * n for d, n in pool.items())
        if on_hand < amount:
            raise InsufficientCashError(
                f"Cash on hand is {from_cents(amount - on_hand)} short of paying {from_cents(amount)}",
                remaining=from_cents(amount - on_hand),
            )
        counts = _bounded_min_bills(amount, pool)
        if counts is None:
            raise InsufficientCashError(
                f"Cash on hand cannot make exact change for {from_cents(amount)}",
                remaining=from_cents(remaining),
            )
        logger.info("inventory_exact_change", extra={"amount": str(from_cents(amount))})
    for d, q in counts:
        pool[d] -= q
    breakdown = [BillBreakdownEntry(denomination=from_cents(d), quantity=q) for d, q in counts]
    return breakdown, {from_cents(d): n for d, n in sorted(pool.items(), reverse=True)}


def total_bills_needed(partner_payouts: Iterable[PartnerPayout]) -> List[BillBreakdownEntry]:
    """Sum bill counts per denomination across all partners, largest first."""
    totals: Dict[Decimal, int] = {}
    for partner in partner_payouts:
        for entry in partner.bill_breakdown:
            totals[entry.denomination] = totals.get(entry.denomination, 0) + entry.quantity
    return [
        BillBreakdownEntry(denomination=d, quantity=totals[d])
        for d in sorted(totals, reverse=True)
        if totals[d] > 0
    ]


def distribute(total_amount, partners: Sequence[PartnerHours],
               denominations: Optional[Iterable] = None,
               inventory: Optional[Dict] = None) -> DistributionData:
    """
    Full pipeline: payouts, per-partner bill breakdowns and the bills summary.

    With ``inventory`` the partners are paid in input order from that pool of
    cash, whose denominations must all belong to ``denominations``; otherwise
    bills are unlimited.
    """
    data = compute_payouts(total_amount, partners)
    denominations = DEFAULT_DENOMINATIONS if denominations is None else list(denominations)

    pool = dict(inventory) if inventory is not None else None
    if pool is not None:
        allowed = set(normalize_denominations(denominations))
        unknown = [str(d) for d in pool if normalize_denominations([d])[0] not in allowed]
        if unknown:
            raise InvalidInputError(f"Inventory has denominations not in use: {', '.join(unknown)}")
    payouts = []
    for partner in data.partner_payouts:
        if pool is not None:
            breakdown, pool = allocate_from_inventory(partner.payout, pool)
        else:
            breakdown = allocate_bills(partner.payout, denominations)
        payouts.append(partner.model_copy(update={"bill_breakdown": breakdown}))

    return data.model_copy(update={
        "partner_payouts": payouts,
        "bills_needed": total_bills_needed(payouts),
    })
