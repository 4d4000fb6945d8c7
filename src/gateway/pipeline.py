"""Generic request pipeline: sign, send, unwrap, deserialize."""
from __future__ import annotations
import logging
from decimal import InvalidOperation
from typing import Any, Callable, Optional, TypeVar

from core.clock import Clock
from core.errors import DeserializationError, RequestFailedError
from core.types import Credential, RequestDescriptor
from gateway.envelopes import Unwrapper
from gateway.signing import SigningStrategy
from gateway.transport import Transport

log = logging.getLogger(__name__)

T = TypeVar("T")

_SHAPE_ERRORS = (KeyError, TypeError, ValueError, IndexError, AttributeError, InvalidOperation)


class RequestPipeline:
    """Runs one logical venue call. Holds no per-call state."""

    def __init__(self, transport: Transport, credential: Credential, clock: Optional[Clock] = None):
        self.transport = transport
        self.credential = credential
        self.clock = clock or Clock()

    async def execute(
        self,
        request: RequestDescriptor,
        signer: SigningStrategy,
        unwrapper: Unwrapper,
        needs_auth: bool = True,
        parse: Optional[Callable[[Any], T]] = None,
    ) -> T:
        if needs_auth:
            request = signer.sign(request, self.credential, self.clock.now_ms())
        endpoint = request.endpoint
        resp = await self.transport.send(request)
        log.debug("REST %s -> %d", endpoint, resp.status)

        if not resp.ok and not resp.body:
            raise RequestFailedError(endpoint, resp.status, resp.body)

        payload = unwrapper(resp, endpoint)
        if parse is None:
            return payload
        try:
            return parse(payload)
        except _SHAPE_ERRORS as e:
            raise DeserializationError(
                f"Unexpected payload shape: {e.__class__.__name__}: {e}",
                endpoint, resp.status, resp.body,
            ) from e
