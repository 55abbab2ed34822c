"""Action vocabulary and per-action metadata validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, model_validator

from core.config import DEFAULT_INDICATOR_COLOR
from core.errors import InvalidMetadataError


class ActionKind(str, Enum):
    """Every action a client may request. The set is closed."""

    TAP = "tap"
    UNTAP = "untap"
    TOGGLE_TAP = "toggle_tap"
    UNTAP_ALL = "untap_all"
    SHUFFLE_LIBRARY = "shuffle_library"
    MILL = "mill"
    DRAW = "draw"
    LIFE_CHANGE = "life_change"
    EXILE_FROM_TOP = "exile_from_top"
    SCRY = "scry"
    SURVEIL = "surveil"
    MOVE_TO_EXILE = "move_to_exile"
    MOVE_TO_LIBRARY = "move_to_library"
    MOVE_TO_HAND = "move_to_hand"
    MOVE_TO_BATTLEFIELD = "move_to_battlefield"
    MOVE_TO_GRAVEYARD = "move_to_graveyard"
    DISCARD = "discard"  # alias of move_to_graveyard
    ADD_COUNTER = "add_counter"
    REMOVE_COUNTER = "remove_counter"
    CREATE_TOKEN_COPY = "create_token_copy"
    REMOVE_TOKEN = "remove_token"
    CREATE_INDICATOR = "create_indicator"
    MOVE_INDICATOR = "move_indicator"
    DELETE_INDICATOR = "delete_indicator"
    CAST = "cast"
    END_TURN = "end_turn"


def resolve_action_kind(name: str | ActionKind) -> ActionKind:
    """Turn a wire name into an ActionKind."""
    try:
        return ActionKind(name)
    except ValueError:
        raise InvalidMetadataError(f"Unknown action type: {name}") from None


@dataclass(frozen=True)
class PendingAction:
    """A sub-action emitted by a compound handler, run and audited after it."""

    kind: ActionKind
    seat: int
    metadata: dict[str, Any] = field(default_factory=dict)


# Metadata models. Field aliases are the camelCase keys clients send.


class Position(BaseModel):
    """Battlefield coordinates."""

    x: float
    y: float

    def as_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y}


class ActionMetadata(BaseModel):
    """Base for metadata payloads; unknown keys are kept for the audit log."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class EmptyMetadata(ActionMetadata):
    pass


class CountMetadata(ActionMetadata):
    count: int = Field(1, ge=1)


class ObjectMetadata(ActionMetadata):
    object_id: str = Field(..., alias="objectId", min_length=1)


class BattlefieldMoveMetadata(ObjectMetadata):
    position: Position | None = None


class LibraryMoveMetadata(ObjectMetadata):
    placement: Literal["top", "bottom"] | None = None


class LifeChangeMetadata(ActionMetadata):
    amount: StrictInt


class ScryArrangement(BaseModel):
    top: list[str] = Field(default_factory=list)
    bottom: list[str] = Field(default_factory=list)


class ScryMetadata(ActionMetadata):
    count: int | None = Field(None, ge=0)
    arrangement: ScryArrangement | None = None


class SurveilArrangement(BaseModel):
    top: list[str] = Field(default_factory=list)
    graveyard: list[str] = Field(default_factory=list)


class SurveilMetadata(ActionMetadata):
    count: int | None = Field(None, ge=0)
    arrangement: SurveilArrangement | None = None


class CounterMetadata(ObjectMetadata):
    counter_type: str = Field(..., alias="counterType", min_length=1)
    amount: int = Field(1, ge=1)


class TokenCopyMetadata(ActionMetadata):
    source_object_id: str | None = Field(None, alias="sourceObjectId")
    token_card_id: str | None = Field(None, alias="tokenCardId")
    quantity: int = Field(1, ge=1, le=100)
    position: Position | None = None

    @model_validator(mode="after")
    def _needs_a_card_reference(self) -> TokenCopyMetadata:
        if not self.source_object_id and not self.token_card_id:
            raise ValueError("Either tokenCardId or sourceObjectId is required")
        return self


class CreateIndicatorMetadata(ActionMetadata):
    position: Position
    color: str = Field(DEFAULT_INDICATOR_COLOR, min_length=1)


class MoveIndicatorMetadata(ActionMetadata):
    indicator_id: str = Field(..., alias="indicatorId", min_length=1)
    position: Position


class DeleteIndicatorMetadata(ActionMetadata):
    indicator_id: str = Field(..., alias="indicatorId", min_length=1)


METADATA_MODELS: dict[ActionKind, type[ActionMetadata]] = {
    ActionKind.TAP: ObjectMetadata,
    ActionKind.UNTAP: ObjectMetadata,
    ActionKind.TOGGLE_TAP: ObjectMetadata,
    ActionKind.UNTAP_ALL: EmptyMetadata,
    ActionKind.SHUFFLE_LIBRARY: EmptyMetadata,
    ActionKind.MILL: CountMetadata,
    ActionKind.DRAW: CountMetadata,
    ActionKind.LIFE_CHANGE: LifeChangeMetadata,
    ActionKind.EXILE_FROM_TOP: CountMetadata,
    ActionKind.SCRY: ScryMetadata,
    ActionKind.SURVEIL: SurveilMetadata,
    ActionKind.MOVE_TO_EXILE: ObjectMetadata,
    ActionKind.MOVE_TO_LIBRARY: LibraryMoveMetadata,
    ActionKind.MOVE_TO_HAND: ObjectMetadata,
    ActionKind.MOVE_TO_BATTLEFIELD: BattlefieldMoveMetadata,
    ActionKind.MOVE_TO_GRAVEYARD: ObjectMetadata,
    ActionKind.DISCARD: ObjectMetadata,
    ActionKind.ADD_COUNTER: CounterMetadata,
    ActionKind.REMOVE_COUNTER: CounterMetadata,
    ActionKind.CREATE_TOKEN_COPY: TokenCopyMetadata,
    ActionKind.REMOVE_TOKEN: ObjectMetadata,
    ActionKind.CREATE_INDICATOR: CreateIndicatorMetadata,
    ActionKind.MOVE_INDICATOR: MoveIndicatorMetadata,
    ActionKind.DELETE_INDICATOR: DeleteIndicatorMetadata,
    ActionKind.CAST: BattlefieldMoveMetadata,
    ActionKind.END_TURN: EmptyMetadata,
}


def parse_metadata(kind: ActionKind, metadata: dict[str, Any] | None) -> ActionMetadata:
    """Validate raw metadata for an action kind.

    Raises:
        InvalidMetadataError: If required fields are missing or malformed.
    """
    model = METADATA_MODELS[kind]
    try:
        return model.model_validate(metadata or {})
    except ValidationError as e:
        details = [
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise InvalidMetadataError(
            f"Invalid metadata for {kind.value}", details=details
        ) from None


def target_object_id(meta: ActionMetadata) -> str | None:
    """The object an action is aimed at, for the audit row.

    Read from the validated model, so both the wire name and the field name
    of the id are honoured.
    """
    return getattr(meta, "object_id", None) or getattr(meta, "source_object_id", None)
