"""Queued action model.

A QueuedAction is one state-changing intent captured while offline.
Its id doubles as the idempotency key handed to the gateway.
"""
import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum

from mkulima.core.receipt import StopRule, utc_now


class UnknownActionKind(StopRule):
    """Raised for a kind tag outside ActionKind. A programming error."""
    pass


class ActionKind(Enum):
    """Exhaustive set of mutations the client can queue."""
    LISTING_CREATE = "ListingCreate"
    LISTING_UPDATE = "ListingUpdate"
    MESSAGE_SEND = "MessageSend"
    PAYMENT_SUBMIT = "PaymentSubmit"
    PROFILE_UPDATE = "ProfileUpdate"

    @classmethod
    def parse(cls, value: "ActionKind | str") -> "ActionKind":
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            raise UnknownActionKind(f"Unknown queue item kind: {value!r}") from None


def new_action_id() -> str:
    return f"act_{uuid.uuid4().hex}"


@dataclass
class QueuedAction:
    """One pending mutation owned by the ActionQueue."""
    id: str
    kind: ActionKind
    payload: dict
    enqueued_at: str = field(default_factory=utc_now)
    attempts: int = 0
    last_error: str | None = None

    @classmethod
    def create(cls, kind: ActionKind | str, payload: dict) -> "QueuedAction":
        return cls(id=new_action_id(), kind=ActionKind.parse(kind), payload=dict(payload))

    def to_dict(self) -> dict:
        data = asdict(self)
        data["kind"] = self.kind.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "QueuedAction":
        return cls(
            id=data["id"],
            kind=ActionKind.parse(data["kind"]),
            payload=dict(data.get("payload") or {}),
            enqueued_at=data.get("enqueued_at") or utc_now(),
            attempts=int(data.get("attempts", 0)),
            last_error=data.get("last_error"),
        )

    def copy(self) -> "QueuedAction":
        return QueuedAction.from_dict(self.to_dict())
