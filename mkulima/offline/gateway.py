"""Remote gateway contract.

One async operation per ActionKind. Each takes the action payload and the
action id (the idempotency key) and returns a result dict, or raises
GatewayError for a delivery failure the queue should retry.

The gateway, not the queue, deduplicates redelivered actions by key.
"""
import logging
from typing import Awaitable, Callable

from mkulima.core.receipt import utc_now

from .actions import ActionKind, UnknownActionKind

logger = logging.getLogger(__name__)

Operation = Callable[[dict, str], Awaitable[dict]]


class GatewayError(Exception):
    """Delivery failure reported by the gateway.

    retryable=False marks a rejection that redelivery cannot fix
    (e.g. a 4xx from the backend).
    """

    def __init__(self, message: str, status: int | None = None, retryable: bool = True):
        super().__init__(message)
        self.status = status
        self.retryable = retryable


class RemoteGateway:
    """Backend operations, one per queue item kind."""

    async def create_listing(self, payload: dict, idempotency_key: str) -> dict:
        raise NotImplementedError

    async def update_listing(self, payload: dict, idempotency_key: str) -> dict:
        raise NotImplementedError

    async def send_message(self, payload: dict, idempotency_key: str) -> dict:
        raise NotImplementedError

    async def submit_payment(self, payload: dict, idempotency_key: str) -> dict:
        raise NotImplementedError

    async def update_profile(self, payload: dict, idempotency_key: str) -> dict:
        raise NotImplementedError


_OPERATION_NAMES = {
    ActionKind.LISTING_CREATE: "create_listing",
    ActionKind.LISTING_UPDATE: "update_listing",
    ActionKind.MESSAGE_SEND: "send_message",
    ActionKind.PAYMENT_SUBMIT: "submit_payment",
    ActionKind.PROFILE_UPDATE: "update_profile",
}


def operation_for(gateway: RemoteGateway, kind: ActionKind) -> Operation:
    """Gateway operation that delivers actions of kind."""
    name = _OPERATION_NAMES.get(kind)
    if name is None:
        raise UnknownActionKind(f"No gateway operation for {kind!r}")
    return getattr(gateway, name)


class EchoGateway(RemoteGateway):
    """Local stand-in backend that accepts every action.

    Keeps the keys it has seen so redelivery returns the original result.
    Payments are always authorized.
    """

    def __init__(self):
        self.seen: dict[str, dict] = {}

    async def _accept(self, kind: ActionKind, payload: dict, key: str) -> dict:
        if key in self.seen:
            return self.seen[key]
        logger.info("Echo gateway accepted %s %s", kind.value, key)
        result = {"kind": kind.value, "accepted_at": utc_now(), "remote_id": key}
        self.seen[key] = result
        return result

    async def create_listing(self, payload: dict, idempotency_key: str) -> dict:
        return await self._accept(ActionKind.LISTING_CREATE, payload, idempotency_key)

    async def update_listing(self, payload: dict, idempotency_key: str) -> dict:
        return await self._accept(ActionKind.LISTING_UPDATE, payload, idempotency_key)

    async def send_message(self, payload: dict, idempotency_key: str) -> dict:
        return await self._accept(ActionKind.MESSAGE_SEND, payload, idempotency_key)

    async def submit_payment(self, payload: dict, idempotency_key: str) -> dict:
        result = await self._accept(ActionKind.PAYMENT_SUBMIT, payload, idempotency_key)
        return {**result, "authorized": True}

    async def update_profile(self, payload: dict, idempotency_key: str) -> dict:
        return await self._accept(ActionKind.PROFILE_UPDATE, payload, idempotency_key)
