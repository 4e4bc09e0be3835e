"""
Table state for Flip 7.

This module defines the data model the rules engine operates on: cards,
players, the table (room) snapshot, and per-table rule options. It holds no
turn logic; see deck.py, hand.py, turns.py and rounds.py for that.

Flip 7 Rules Summary:
    - Players take turns drawing ("hit") or banking their hand ("stay")
    - Drawing a number you already hold busts you for the round
    - Collecting 7 distinct number values ("Flip 7") ends the round at once
    - Freeze and Flip Three cards are played against another active player
    - Second Chance absorbs one duplicate instead of busting
    - Modifier cards (+4 .. +10, x2) adjust the hand score when it is banked
    - The game ends when someone reaches the goal score or the round limit

Tables are treated as immutable snapshots by the engine: every operation
clones the table, mutates the clone and returns it.
"""

import copy
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from constants import (
    DEFAULT_GOAL_SCORE,
    DEFAULT_MAX_ROUNDS,
    FLIP_7_BONUS,
    FLIP_7_TARGET,
    FLIP_THREE_COUNT,
    MAX_PLAYERS,
    MIN_PLAYERS,
)


class CardType(str, Enum):
    """Broad card category."""

    NUMBER = "number"
    ACTION = "action"
    MODIFIER = "modifier"


class ActionType(str, Enum):
    """
    Action card variants.

    FREEZE: target player can take no further turns this round
    FLIP_THREE: target player is dealt three cards at once
    SECOND_CHANCE: kept in hand, absorbs one duplicate draw
    """

    FREEZE = "freeze"
    FLIP_THREE = "flip_three"
    SECOND_CHANCE = "second_chance"


class ModifierType(str, Enum):
    """Score modifier variants. Plus cards add points, x2 doubles the hand."""

    PLUS4 = "plus4"
    PLUS6 = "plus6"
    PLUS8 = "plus8"
    PLUS10 = "plus10"
    DOUBLE_SCORE = "x2"


class PlayerStatus(str, Enum):
    """Per-round player status. Only ACTIVE players take turns."""

    ACTIVE = "active"
    STAYED = "stayed"
    BUSTED = "busted"
    DISCONNECTED = "disconnected"


class TablePhase(str, Enum):
    """
    Phases of a Flip 7 table.

    Flow: WAITING -> PLAYING -> ROUND_END -> PLAYING -> ... -> GAME_OVER
    """

    WAITING = "waiting"        # Lobby, waiting for players to join
    PLAYING = "playing"        # Round in progress, taking turns
    ROUND_END = "round_end"    # Round complete, showing scores
    GAME_OVER = "game_over"    # Goal or round limit reached


@dataclass(frozen=True)
class Card:
    """
    A single card. Exactly one of value/action/modifier is set, matching type.

    Attributes:
        id: Unique id within a deck ("card_1" .. "card_111").
        type: Number, action or modifier.
        value: Face value 0-12 for number cards.
        action: Variant for action cards.
        modifier: Variant for modifier cards.
        face_up: Display-only visibility flag.
    """

    id: str
    type: CardType
    value: Optional[int] = None
    action: Optional[ActionType] = None
    modifier: Optional[ModifierType] = None
    face_up: bool = False

    @classmethod
    def make_number(cls, card_id: str, value: int) -> "Card":
        return cls(id=card_id, type=CardType.NUMBER, value=value)

    @classmethod
    def make_action(cls, card_id: str, action: ActionType) -> "Card":
        return cls(id=card_id, type=CardType.ACTION, action=action)

    @classmethod
    def make_modifier(cls, card_id: str, modifier: ModifierType) -> "Card":
        return cls(id=card_id, type=CardType.MODIFIER, modifier=modifier)

    @property
    def is_number(self) -> bool:
        return self.type == CardType.NUMBER

    @property
    def is_action(self) -> bool:
        return self.type == CardType.ACTION

    @property
    def is_modifier(self) -> bool:
        return self.type == CardType.MODIFIER

    @property
    def label(self) -> str:
        """Short human-readable name, used in log lines."""
        if self.is_number:
            return str(self.value)
        if self.is_action:
            return self.action.value
        return self.modifier.value

    def revealed(self) -> "Card":
        """Return a face-up copy of this card."""
        return replace(self, face_up=True)

    def to_dict(self) -> dict:
        """
        Convert card to dictionary for JSON serialization.

        Always includes full card data for server-side storage.
        Use to_client_dict() for views that should hide face-down cards.
        """
        return {
            "id": self.id,
            "type": self.type.value,
            "value": self.value,
            "action": self.action.value if self.action else None,
            "modifier": self.modifier.value if self.modifier else None,
            "face_up": self.face_up,
        }

    def to_client_dict(self) -> dict:
        """Card data for a client, or only its id if face-down."""
        if self.face_up:
            return self.to_dict()
        return {"id": self.id, "face_up": False}

    @classmethod
    def from_dict(cls, d: dict) -> "Card":
        return cls(
            id=d["id"],
            type=CardType(d["type"]),
            value=d.get("value"),
            action=ActionType(d["action"]) if d.get("action") else None,
            modifier=ModifierType(d["modifier"]) if d.get("modifier") else None,
            face_up=d.get("face_up", False),
        )


@dataclass
class RoundRecord:
    """One finished round as seen by a single player."""

    round: int
    cards: list[Card]
    score: int
    status: PlayerStatus
    flip7_bonus: bool = False

    def to_dict(self) -> dict:
        return {
            "round": self.round,
            "cards": [card.to_dict() for card in self.cards],
            "score": self.score,
            "status": self.status.value,
            "flip7_bonus": self.flip7_bonus,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "RoundRecord":
        return cls(
            round=d["round"],
            cards=[Card.from_dict(c) for c in d.get("cards", [])],
            score=d["score"],
            status=PlayerStatus(d["status"]),
            flip7_bonus=d.get("flip7_bonus", False),
        )


@dataclass
class Player:
    """
    A player seated at a Flip 7 table.

    Attributes:
        id: Unique identifier for the player.
        name: Display name.
        hand: Cards drawn this round, in draw order.
        status: Active, stayed, busted or disconnected.
        round_score: Score locked in this round (meaningful once not active).
        total_score: Cumulative points across all rounds.
        is_host: Whether this player controls the lobby.
        has_flip7: Whether the player completed Flip 7 this round.
        is_frozen: Whether a Freeze card was played on the player.
        frozen_until_round: Round number at which the freeze lifts.
        connected: Presence flag supplied by the embedding service.
        history: One record per finished round.
    """

    id: str
    name: str
    hand: list[Card] = field(default_factory=list)
    status: PlayerStatus = PlayerStatus.ACTIVE
    round_score: int = 0
    total_score: int = 0
    is_host: bool = False
    has_flip7: bool = False
    is_frozen: bool = False
    frozen_until_round: Optional[int] = None
    connected: bool = True
    history: list[RoundRecord] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.status == PlayerStatus.ACTIVE

    def is_frozen_in(self, round_number: int) -> bool:
        """True if a freeze still blocks this player in the given round."""
        return (
            self.is_frozen
            and self.frozen_until_round is not None
            and self.frozen_until_round > round_number
        )

    def can_take_turn(self, round_number: int) -> bool:
        return self.is_active and not self.is_frozen_in(round_number)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "hand": [card.to_dict() for card in self.hand],
            "status": self.status.value,
            "round_score": self.round_score,
            "total_score": self.total_score,
            "is_host": self.is_host,
            "has_flip7": self.has_flip7,
            "is_frozen": self.is_frozen,
            "frozen_until_round": self.frozen_until_round,
            "connected": self.connected,
            "history": [record.to_dict() for record in self.history],
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Player":
        return cls(
            id=d["id"],
            name=d["name"],
            hand=[Card.from_dict(c) for c in d.get("hand", [])],
            status=PlayerStatus(d.get("status", PlayerStatus.ACTIVE.value)),
            round_score=d.get("round_score", 0),
            total_score=d.get("total_score", 0),
            is_host=d.get("is_host", False),
            has_flip7=d.get("has_flip7", False),
            is_frozen=d.get("is_frozen", False),
            frozen_until_round=d.get("frozen_until_round"),
            connected=d.get("connected", True),
            history=[RoundRecord.from_dict(r) for r in d.get("history", [])],
        )


@dataclass
class GameOptions:
    """
    Rule parameters for one table.

    Defaults come from config.py; a host may override them at creation time.
    """

    max_rounds: int = DEFAULT_MAX_ROUNDS
    """Game ends after this many rounds even if nobody reached the goal."""

    goal_score: int = DEFAULT_GOAL_SCORE
    """Game ends once any total reaches this score."""

    completion_bonus: int = FLIP_7_BONUS
    """Points added after the multiplier for a Flip 7 hand."""

    completion_target: int = FLIP_7_TARGET
    """Distinct number values needed for Flip 7."""

    flip_three_count: int = FLIP_THREE_COUNT
    """Cards dealt by a Flip Three."""

    min_players: int = MIN_PLAYERS
    max_players: int = MAX_PLAYERS

    def to_dict(self) -> dict:
        return {
            "max_rounds": self.max_rounds,
            "goal_score": self.goal_score,
            "completion_bonus": self.completion_bonus,
            "completion_target": self.completion_target,
            "flip_three_count": self.flip_three_count,
            "min_players": self.min_players,
            "max_players": self.max_players,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "GameOptions":
        defaults = cls()
        return cls(**{key: d.get(key, value) for key, value in defaults.to_dict().items()})


@dataclass
class PendingAction:
    """A Freeze or Flip Three waiting for its player to choose a target."""

    player_id: str
    action: ActionType
    card_id: str

    def to_dict(self) -> dict:
        return {
            "player_id": self.player_id,
            "action": self.action.value,
            "card_id": self.card_id,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "PendingAction":
        return cls(
            player_id=d["player_id"],
            action=ActionType(d["action"]),
            card_id=d["card_id"],
        )


@dataclass
class Table:
    """
    Authoritative state of one room.

    Attributes:
        room_code: Code players use to join.
        host_id: Player who controls lobby actions.
        players: Players keyed by id; insertion order is turn order.
        deck: Draw pile, drawn from the front.
        discard_pile: Cards removed from hands during a round.
        current_turn: Player whose turn it is, or None between rounds.
        phase: Waiting, playing, round end or game over.
        round: Current round number (0 before the first round).
        options: Rule parameters for this table.
        winner: Game winner, or the Flip 7 winner of the last round.
        pending_action: Freeze or Flip Three awaiting a target, if any.
    """

    room_code: str
    host_id: Optional[str] = None
    players: dict[str, Player] = field(default_factory=dict)
    deck: list[Card] = field(default_factory=list)
    discard_pile: list[Card] = field(default_factory=list)
    current_turn: Optional[str] = None
    phase: TablePhase = TablePhase.WAITING
    round: int = 0
    options: GameOptions = field(default_factory=GameOptions)
    winner: Optional[str] = None
    pending_action: Optional[PendingAction] = None

    @property
    def max_rounds(self) -> int:
        return self.options.max_rounds

    def clone(self) -> "Table":
        """Deep copy used by every engine operation before mutating."""
        return copy.deepcopy(self)

    def get_player(self, player_id: str) -> Optional[Player]:
        return self.players.get(player_id)

    def current_player(self) -> Optional[Player]:
        if self.current_turn is None:
            return None
        return self.players.get(self.current_turn)

    def turn_order(self) -> list[str]:
        return list(self.players.keys())

    def all_cards(self) -> list[Card]:
        """Every card on the table: deck, discard pile and all hands."""
        cards = list(self.deck) + list(self.discard_pile)
        for player in self.players.values():
            cards.extend(player.hand)
        return cards

    def to_dict(self) -> dict:
        """Lossless serialization for storage."""
        return {
            "room_code": self.room_code,
            "host_id": self.host_id,
            "players": [player.to_dict() for player in self.players.values()],
            "deck": [card.to_dict() for card in self.deck],
            "discard_pile": [card.to_dict() for card in self.discard_pile],
            "current_turn": self.current_turn,
            "phase": self.phase.value,
            "round": self.round,
            "options": self.options.to_dict(),
            "winner": self.winner,
            "pending_action": self.pending_action.to_dict() if self.pending_action else None,
        }

    @classmethod
    def from_dict(cls, d: dict) -> "Table":
        players = [Player.from_dict(p) for p in d.get("players", [])]
        pending = d.get("pending_action")
        return cls(
            room_code=d["room_code"],
            host_id=d.get("host_id"),
            players={player.id: player for player in players},
            deck=[Card.from_dict(c) for c in d.get("deck", [])],
            discard_pile=[Card.from_dict(c) for c in d.get("discard_pile", [])],
            current_turn=d.get("current_turn"),
            phase=TablePhase(d.get("phase", TablePhase.WAITING.value)),
            round=d.get("round", 0),
            options=GameOptions.from_dict(d.get("options", {})),
            winner=d.get("winner"),
            pending_action=PendingAction.from_dict(pending) if pending else None,
        )

    def get_state(self, for_player_id: Optional[str] = None) -> dict:
        """
        Get the table state for a specific client.

        The deck is reduced to its size, and face-down cards in other
        players' hands are hidden. Cards are dealt face up, so hands are
        normally fully visible.

        Args:
            for_player_id: The player who will receive this state.

        Returns:
            Dict suitable for JSON serialization.
        """
        players_data = []
        for player in self.players.values():
            is_self = player.id == for_player_id
            players_data.append({
                "id": player.id,
                "name": player.name,
                "hand": [
                    card.to_dict() if is_self else card.to_client_dict()
                    for card in player.hand
                ],
                "status": player.status.value,
                "round_score": player.round_score,
                "total_score": player.total_score,
                "is_host": player.is_host,
                "has_flip7": player.has_flip7,
                "is_frozen": player.is_frozen_in(self.round),
                "connected": player.connected,
            })

        pending = self.pending_action
        return {
            "room_code": self.room_code,
            "host_id": self.host_id,
            "phase": self.phase.value,
            "players": players_data,
            "current_turn": self.current_turn,
            "round": self.round,
            "max_rounds": self.options.max_rounds,
            "goal_score": self.options.goal_score,
            "deck_remaining": len(self.deck),
            "discard_count": len(self.discard_pile),
            "winner": self.winner,
            "pending_action": pending.to_dict() if pending else None,
            "awaiting_target": pending is not None and pending.player_id == for_player_id,
        }
