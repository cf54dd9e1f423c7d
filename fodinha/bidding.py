"""Per-round bid ledger with turn-based confirmation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence


@dataclass
class BidLedger:
    """Declared bids, confirmation flags and whose turn it is to bid.

    Bids are not range-checked here; any integer is accepted.
    """

    bids: Dict[str, int] = field(default_factory=dict)
    confirmed: Dict[str, bool] = field(default_factory=dict)
    current_bidder_index: Optional[int] = None

    def reset(self, starter_index: Optional[int] = None) -> None:
        self.bids = {}
        self.confirmed = {}
        self.current_bidder_index = starter_index

    def place(self, player_id: str, amount: int) -> None:
        self.bids[player_id] = amount
        # Re-bidding withdraws an earlier confirmation.
        self.confirmed[player_id] = False

    def has_bid(self, player_id: str) -> bool:
        return player_id in self.bids

    def is_confirmed(self, player_id: str) -> bool:
        return self.confirmed.get(player_id, False)

    def confirm(self, player_id: str) -> None:
        if not self.has_bid(player_id):
            raise ValueError(f"Player {player_id} has no bid to confirm.")
        self.confirmed[player_id] = True

    def bid_for(self, player_id: str) -> int:
        return self.bids.get(player_id, 0)

    def forget(self, player_id: str) -> None:
        self.bids.pop(player_id, None)
        self.confirmed.pop(player_id, None)

    def next_unconfirmed(self, seat_ids: Sequence[str], after_index: int) -> Optional[int]:
        """Scan seats circularly starting just after ``after_index``; None when all confirmed."""
        count = len(seat_ids)
        for step in range(1, count + 1):
            index = (after_index + step) % count
            if not self.is_confirmed(seat_ids[index]):
                return index
        return None

    def all_confirmed(self, seat_ids: Sequence[str]) -> bool:
        return all(self.is_confirmed(player_id) for player_id in seat_ids)
