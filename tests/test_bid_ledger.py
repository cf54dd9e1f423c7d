import pytest

from fodinha.bidding import BidLedger

SEATS = ["p0", "p1", "p2", "p3"]


def test_rebid_clears_confirmation():
    ledger = BidLedger()
    ledger.reset(0)
    ledger.place("p0", 2)
    ledger.confirm("p0")
    assert ledger.is_confirmed("p0")

    ledger.place("p0", 3)
    assert ledger.bids["p0"] == 3
    assert not ledger.is_confirmed("p0")


def test_confirm_requires_a_bid():
    ledger = BidLedger()
    with pytest.raises(ValueError):
        ledger.confirm("p1")


def test_next_unconfirmed_wraps_around_the_table():
    ledger = BidLedger()
    ledger.reset(1)
    for pid in ("p1", "p2"):
        ledger.place(pid, 0)
        ledger.confirm(pid)

    assert ledger.next_unconfirmed(SEATS, 1) == 3
    assert ledger.next_unconfirmed(SEATS, 3) == 0


def test_scan_starts_after_the_current_seat():
    ledger = BidLedger()
    ledger.place("p1", 1)
    ledger.confirm("p1")
    assert ledger.next_unconfirmed(SEATS, 1) == 2

    for pid in ("p2", "p3"):
        ledger.place(pid, 0)
        ledger.confirm(pid)
    assert ledger.next_unconfirmed(SEATS, 3) == 0


def test_all_confirmed_returns_none():
    ledger = BidLedger()
    for pid in SEATS:
        ledger.place(pid, 1)
        ledger.confirm(pid)
    assert ledger.next_unconfirmed(SEATS, 0) is None
    assert ledger.all_confirmed(SEATS)


def test_missing_bid_defaults_to_zero_and_forget_drops_entries():
    ledger = BidLedger()
    ledger.place("p2", 4)
    assert ledger.bid_for("p0") == 0
    ledger.forget("p2")
    assert not ledger.has_bid("p2")
    assert ledger.bid_for("p2") == 0
