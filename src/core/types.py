from __future__ import annotations
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

import orjson

from core.errors import GatewayConfigError
from core.quantity import precision_from_step, step_from_precision


class Venue(str, Enum):
    BINANCE = "binance"
    COMMEX = "commex"
    BYBIT = "bybit"
    KUCOIN = "kucoin"
    OKX = "okx"
    GATEIO = "gateio"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    DELETE = "DELETE"


class SettlementState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class CalculationBase(str, Enum):
    """Which leg of the pair an order amount is denominated in."""
    BASE = "base"
    QUOTE = "quote"


@dataclass(slots=True)
class Credential:
    api_key: str
    api_secret: str = field(repr=False)
    passphrase: Optional[str] = field(default=None, repr=False)

    def require_passphrase(self, venue: str) -> str:
        if not self.passphrase:
            raise GatewayConfigError(f"{venue} requires an API passphrase")
        return self.passphrase


def _encode_query(query: Dict[str, Any]) -> str:
    parts = []
    for name, value in query.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        parts.append(f"{name}={quote_plus(str(value))}")
    return "&".join(parts)


def json_body(params: Dict[str, Any]) -> str:
    """Serialize an ordered mapping into the exact body that is signed and sent."""
    return orjson.dumps({k: v for k, v in params.items() if v is not None}).decode()


@dataclass(slots=True)
class RequestDescriptor:
    method: HttpMethod
    path: str
    query: Dict[str, Any] = field(default_factory=dict)
    body: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def query_string(self) -> str:
        return _encode_query(self.query)

    @property
    def path_with_query(self) -> str:
        qs = self.query_string
        return f"{self.path}?{qs}" if qs else self.path

    @property
    def endpoint(self) -> str:
        return f"{self.method.value} {self.path}"


@dataclass(slots=True)
class TransportResponse:
    status: int
    body: str = ""
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


# ── Settlement ─────────────────────────────────────────────────────────

@dataclass(slots=True, frozen=True)
class Verdict:
    state: SettlementState
    tx_hash: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def pending(cls) -> Verdict:
        return cls(SettlementState.PENDING)

    @classmethod
    def success(cls, tx_hash: Optional[str] = None) -> Verdict:
        return cls(SettlementState.SUCCESS, tx_hash=tx_hash)

    @classmethod
    def failure(cls, reason: str) -> Verdict:
        return cls(SettlementState.FAILURE, reason=reason)


@dataclass(slots=True)
class SettlementOutcome:
    settlement_id: str
    tx_hash: Optional[str]
    polls: int
    entry: dict = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class WithdrawalRecord:
    id: str
    tx_hash: Optional[str]
    requested_amount: Decimal
    waited_for_approval: bool
    currency: str = ""
    network: str = ""
    address: str = ""
    address_tag: Optional[str] = None


@dataclass(slots=True, frozen=True)
class DepositRecord:
    tx_hash: str
    amount: Decimal
    currency: str = ""


# ── Sizing ─────────────────────────────────────────────────────────────

@dataclass(slots=True, frozen=True)
class StepSizeSpec:
    step_size: Decimal
    precision_digits: int

    @classmethod
    def from_step(cls, step: Decimal | str) -> StepSizeSpec:
        step = Decimal(str(step))
        return cls(step, precision_from_step(step))

    @classmethod
    def from_precision(cls, digits: int) -> StepSizeSpec:
        return cls(step_from_precision(digits), int(digits))


@dataclass(slots=True, frozen=True)
class NetworkInfo:
    currency: str
    network: str
    precision: int
    min_amount: Decimal
    fee: Decimal


@dataclass(slots=True, frozen=True)
class OrderResult:
    order_id: str
    symbol: str
    side: OrderSide
    quantity: Decimal
    attempts: int
    executed_qty: Decimal = Decimal(0)
    quote_qty: Decimal = Decimal(0)
    raw: dict = field(default_factory=dict)

    @property
    def received(self) -> Decimal:
        return self.executed_qty if self.side == OrderSide.BUY else self.quote_qty

    @property
    def spent(self) -> Decimal:
        return self.quote_qty if self.side == OrderSide.BUY else self.executed_qty
