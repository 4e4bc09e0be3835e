"""
Effect definitions for Flip 7 engine results.

Every successful engine operation returns a list of effects describing what
happened, in order, so the presentation layer can animate each step without
diffing table snapshots. The set of effect types is closed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from game import Card


class EffectType(str, Enum):
    """All possible effect types produced by the engine."""

    # Card movement
    DRAW = "draw"
    FLIP_THREE = "flip_three"
    SECOND_CHANCE = "second_chance"

    # Player outcomes
    FREEZE = "freeze"
    FROZEN_SKIP = "frozen_skip"
    BUST = "bust"
    STAY = "stay"
    COMPLETION = "completion"

    # Table outcomes
    ROUND_END = "round_end"
    GAME_OVER = "game_over"


@dataclass
class Effect:
    """
    A single thing that happened during an engine operation.

    Attributes:
        type: The kind of effect.
        player_id: Player whose action caused the effect.
        target_id: Player the effect landed on (same as player_id for
            self-effects such as a draw or a bust).
        cards: Cards involved, in the order they moved.
        message: Human-readable description for logs and toasts.
        data: Effect-specific payload (scores, duplicate value, ...).
    """

    type: EffectType
    player_id: Optional[str] = None
    target_id: Optional[str] = None
    cards: list[Card] = field(default_factory=list)
    message: str = ""
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "player_id": self.player_id,
            "target_id": self.target_id,
            "cards": [card.to_dict() for card in self.cards],
            "message": self.message,
            "data": self.data,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Effect":
        return cls(
            type=EffectType(d["type"]),
            player_id=d.get("player_id"),
            target_id=d.get("target_id"),
            cards=[Card.from_dict(c) for c in d.get("cards", [])],
            message=d.get("message", ""),
            data=d.get("data", {}),
        )


# =============================================================================
# Effect Factory Functions
# =============================================================================


def draw(player_id: str, card: Card) -> Effect:
    return Effect(
        type=EffectType.DRAW,
        player_id=player_id,
        target_id=player_id,
        cards=[card],
        message=f"drew {card.label}",
    )


def stay(player_id: str, score: int) -> Effect:
    return Effect(
        type=EffectType.STAY,
        player_id=player_id,
        target_id=player_id,
        message=f"stayed with {score} points",
        data={"score": score},
    )


def bust(player_id: str, card: Optional[Card] = None, source_id: Optional[str] = None) -> Effect:
    """
    Create a Bust effect.

    Args:
        player_id: Player who busted.
        card: The duplicate card that caused the bust.
        source_id: Player whose Flip Three caused it, if not self-inflicted.
    """
    return Effect(
        type=EffectType.BUST,
        player_id=source_id or player_id,
        target_id=player_id,
        cards=[card] if card else [],
        message="busted",
    )


def second_chance(player_id: str, removed: list[Card], duplicate_value: int) -> Effect:
    return Effect(
        type=EffectType.SECOND_CHANCE,
        player_id=player_id,
        target_id=player_id,
        cards=list(removed),
        message=f"used Second Chance on a duplicate {duplicate_value}",
        data={"duplicate_value": duplicate_value},
    )


def completion(player_id: str, score: int, source_id: Optional[str] = None) -> Effect:
    """Create a Completion (Flip 7) effect."""
    return Effect(
        type=EffectType.COMPLETION,
        player_id=source_id or player_id,
        target_id=player_id,
        message=f"Flip 7! Round won with {score} points",
        data={"score": score},
    )


def freeze(player_id: str, target_id: str, card: Optional[Card], until_round: int) -> Effect:
    return Effect(
        type=EffectType.FREEZE,
        player_id=player_id,
        target_id=target_id,
        cards=[card] if card else [],
        message=f"froze {target_id}",
        data={"frozen_until_round": until_round},
    )


def flip_three(player_id: str, target_id: str, cards: list[Card]) -> Effect:
    return Effect(
        type=EffectType.FLIP_THREE,
        player_id=player_id,
        target_id=target_id,
        cards=list(cards),
        message=f"flipped {len(cards)} cards onto {target_id}",
    )


def frozen_skip(player_id: str) -> Effect:
    return Effect(
        type=EffectType.FROZEN_SKIP,
        player_id=player_id,
        target_id=player_id,
        message="is frozen and skips the turn",
    )


def round_end(round_number: int, scores: dict[str, int], winner_id: Optional[str] = None) -> Effect:
    """
    Create a RoundEnd effect.

    Args:
        round_number: Round that just finished.
        scores: Round score per player id.
        winner_id: Flip 7 winner of the round, if any.
    """
    return Effect(
        type=EffectType.ROUND_END,
        target_id=winner_id,
        message=f"Round {round_number} ended",
        data={"round": round_number, "scores": scores},
    )


def game_over(winner_id: str, total_score: int, standings: list[str]) -> Effect:
    return Effect(
        type=EffectType.GAME_OVER,
        target_id=winner_id,
        message=f"Game over, {winner_id} wins with {total_score} points",
        data={"total_score": total_score, "standings": standings},
    )
