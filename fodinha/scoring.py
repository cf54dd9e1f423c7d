"""Round scoring helpers for Fodinha."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence, Tuple

MISSED_BID_PENALTY = 1


@dataclass(frozen=True)
class RoundScoreResult:
    penalties: Dict[str, int]
    new_scores: Dict[str, int]


def score_round(
    *,
    tricks_won: Mapping[str, int],
    bids: Mapping[str, int],
    prior_scores: Mapping[str, int],
) -> RoundScoreResult:
    """Charge one penalty point to every player whose tricks differ from their bid.

    A player with no recorded bid is treated as having bid zero.
    """
    penalties: Dict[str, int] = {}
    new_scores: Dict[str, int] = {}
    for player_id, won in tricks_won.items():
        penalty = MISSED_BID_PENALTY if won != bids.get(player_id, 0) else 0
        penalties[player_id] = penalty
        new_scores[player_id] = prior_scores.get(player_id, 0) + penalty
    return RoundScoreResult(penalties=penalties, new_scores=new_scores)


def standings(scores: Mapping[str, int], order: Sequence[str]) -> List[Tuple[str, int]]:
    """Rank players by penalty points, fewest first; ties keep seating order."""
    seat = {player_id: index for index, player_id in enumerate(order)}
    return sorted(((pid, scores[pid]) for pid in order), key=lambda item: (item[1], seat[item[0]]))
