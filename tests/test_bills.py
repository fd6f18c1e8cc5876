import sys
import pathlib
import logging
from decimal import Decimal

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from distribution import (
    DEFAULT_DENOMINATIONS,
    InsufficientCashError,
    InvalidInputError,
    PartnerHours,
    UnrepresentableAmountError,
    allocate_bills,
    allocate_from_inventory,
    distribute,
    is_canonical,
    min_bills_breakdown,
    normalize_denominations,
    total_bills_needed,
)


def as_pairs(entries):
    return [(e.denomination, e.quantity) for e in entries]


def test_greedy_prefers_larger_bills():
    entries = allocate_bills(Decimal("47.00"), [20, 10, 5, 1])
    assert as_pairs(entries) == [(Decimal("20"), 2), (Decimal("5"), 1), (Decimal("1"), 2)]


def test_default_denominations_cover_cents():
    entries = allocate_bills(Decimal("188.91"))
    assert as_pairs(entries) == [
        (Decimal("100"), 1),
        (Decimal("50"), 1),
        (Decimal("20"), 1),
        (Decimal("10"), 1),
        (Decimal("5"), 1),
        (Decimal("1"), 3),
        (Decimal("0.25"), 3),
        (Decimal("0.10"), 1),
        (Decimal("0.05"), 1),
        (Decimal("0.01"), 1),
    ]
    assert sum(d * q for d, q in as_pairs(entries)) == Decimal("188.91")


def test_zero_payout_has_no_bills():
    assert allocate_bills(Decimal("0")) == []


def test_unrepresentable_amount():
    with pytest.raises(UnrepresentableAmountError) as exc:
        allocate_bills(Decimal("47.50"), [20, 10, 5, 1])
    assert exc.value.remaining == Decimal("0.50")
    assert exc.value.code == "unrepresentable_amount"


def test_denominations_are_sorted_and_deduplicated():
    assert normalize_denominations(["1", 5, Decimal("20.00"), 20, "0.25"]) == (2000, 500, 100, 25)


@pytest.mark.parametrize("bad", [[], [0], [-5, 1], ["0.005"], ["twenty"]])
def test_bad_denominations(bad):
    with pytest.raises(InvalidInputError):
        normalize_denominations(bad)


def test_default_set_is_canonical():
    assert is_canonical(DEFAULT_DENOMINATIONS)
    assert not is_canonical([4, 3, 1])


def test_non_canonical_set_uses_fewest_pieces(caplog):
    with caplog.at_level(logging.WARNING, logger="distribution"):
        entries = allocate_bills(Decimal("6"), [4, 3, 1])
    assert as_pairs(entries) == [(Decimal("3"), 2)]
    assert any(r.getMessage() == "non_canonical_denominations" for r in caplog.records)


def test_min_bills_breakdown_impossible_amount():
    with pytest.raises(UnrepresentableAmountError):
        min_bills_breakdown(Decimal("1"), [4, 3])


def test_inventory_is_drawn_down_without_touching_the_input():
    inventory = {"20": 1, "10": 2, "5": 1, "1": 5}
    entries, left = allocate_from_inventory(Decimal("35"), inventory)

    assert as_pairs(entries) == [(Decimal("20"), 1), (Decimal("10"), 1), (Decimal("5"), 1)]
    assert left == {Decimal("20"): 0, Decimal("10"): 1, Decimal("5"): 0, Decimal("1"): 5}
    assert inventory == {"20": 1, "10": 2, "5": 1, "1": 5}


def test_inventory_short_of_cash():
    with pytest.raises(InsufficientCashError) as exc:
        allocate_from_inventory(Decimal("50"), {"20": 1, "10": 1})
    assert isinstance(exc.value, UnrepresentableAmountError)
    assert exc.value.remaining == Decimal("20")


def test_inventory_rejects_negative_counts():
    with pytest.raises(InvalidInputError):
        allocate_from_inventory(Decimal("5"), {"5": -1})


def test_distribute_pays_from_shared_pool_in_input_order():
    partners = [PartnerHours(name="A", hours=10), PartnerHours(name="B", hours=10)]
    data = distribute(Decimal("40"), partners, inventory={"20": 1, "10": 2})

    assert as_pairs(data.partner_payouts[0].bill_breakdown) == [(Decimal("20"), 1)]
    assert as_pairs(data.partner_payouts[1].bill_breakdown) == [(Decimal("10"), 2)]
    assert as_pairs(data.bills_needed) == [(Decimal("20"), 1), (Decimal("10"), 2)]


def test_distribute_fails_when_pool_runs_out():
    partners = [PartnerHours(name="A", hours=10), PartnerHours(name="B", hours=10)]
    with pytest.raises(InsufficientCashError):
        distribute(Decimal("40"), partners, inventory={"20": 1})


def test_total_bills_needed_sums_across_partners():
    partners = [PartnerHours(name="A", hours=30), PartnerHours(name="B", hours=20)]
    data = distribute(Decimal("100"), partners, denominations=[20, 10, 5, 1])

    assert [p.payout for p in data.partner_payouts] == [Decimal("60.00"), Decimal("40.00")]
    assert as_pairs(data.bills_needed) == [(Decimal("20"), 5)]
    assert total_bills_needed(data.partner_payouts) == data.bills_needed


def test_inventory_pays_exactly_when_largest_first_gets_stuck():
    entries, left = allocate_from_inventory(Decimal("60"), {"50": 1, "20": 3})

    assert as_pairs(entries) == [(Decimal("20"), 3)]
    assert left == {Decimal("50"): 1, Decimal("20"): 0}


def test_inventory_with_enough_cash_but_no_exact_change():
    with pytest.raises(InsufficientCashError, match="exact change") as exc:
        allocate_from_inventory(Decimal("30"), {"20": 2})
    assert exc.value.remaining == Decimal("10")


def test_distribute_pool_uses_exact_change():
    partners = [PartnerHours(name="A", hours=3), PartnerHours(name="B", hours=1)]
    data = distribute(Decimal("80"), partners, inventory={"50": 1, "20": 4})

    assert as_pairs(data.partner_payouts[0].bill_breakdown) == [(Decimal("20"), 3)]
    assert as_pairs(data.partner_payouts[1].bill_breakdown) == [(Decimal("20"), 1)]
    assert as_pairs(data.bills_needed) == [(Decimal("20"), 4)]


def test_distribute_rejects_inventory_outside_denominations():
    partners = [PartnerHours(name="A", hours=1)]
    with pytest.raises(InvalidInputError, match="not in use"):
        distribute(Decimal("9"), partners, inventory={"3": 3})
    with pytest.raises(InvalidInputError):
        distribute(Decimal("20"), partners, denominations=[10, 1], inventory={"20": 1})


def test_spread_out_denominations_are_refused():
    with pytest.raises(InvalidInputError):
        allocate_bills(Decimal("1"), ["100000", "99999", "0.01"])


def test_too_many_denominations():
    with pytest.raises(InvalidInputError):
        normalize_denominations(range(1, 26))


def test_non_canonical_large_payout():
    entries = allocate_bills(Decimal("100000"), [4, 3, 1])
    assert as_pairs(entries) == [(Decimal("4"), 25000)]
