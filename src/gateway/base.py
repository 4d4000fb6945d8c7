"""Venue-agnostic gateway client.

``GatewayClient`` wires one venue's signer and unwrapper into the generic
request pipeline and settlement poller, and implements the withdrawal and
deposit flows once for every venue. Venue subclasses supply the requests
and the history field names / status tables; anything a venue does not
offer raises ``UnsupportedOperationError``.
"""
from __future__ import annotations
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from core.clock import Clock
from core.config import VenueSettings, load_config
from core.errors import GatewayConfigError, UnsupportedOperationError
from core.quantity import fmt_decimal
from core.types import (
    Credential, DepositRecord, HttpMethod, NetworkInfo, RequestDescriptor,
    Venue, Verdict, WithdrawalRecord, json_body,
)
from gateway.envelopes import Unwrapper
from gateway.pipeline import RequestPipeline
from gateway.settlement import SettlementPoller, StatusTable
from gateway.signing import SigningStrategy
from gateway.transport import AiohttpTransport, Transport

log = logging.getLogger(__name__)

MessageCallback = Callable[[str], Any]


@dataclass(slots=True, frozen=True)
class HistoryFields:
    """Where a venue's history entry keeps the id, status, tx hash and amount."""
    id: str
    status: str
    tx_hash: str
    amount: str = "amount"


class GatewayClient(ABC):
    """Authenticated treasury operations against one venue."""

    venue: Venue
    unwrapper: Unwrapper

    WITHDRAWAL_FIELDS: Optional[HistoryFields] = None
    WITHDRAWAL_STATUS: Optional[StatusTable] = None
    DEPOSIT_FIELDS: Optional[HistoryFields] = None
    DEPOSIT_STATUS: Optional[StatusTable] = None

    def __init__(
        self,
        credential: Credential,
        settings: Optional[VenueSettings] = None,
        transport: Optional[Transport] = None,
        clock: Optional[Clock] = None,
        on_message: Optional[MessageCallback] = None,
    ):
        self.credential = credential
        self.settings = settings or VenueSettings.from_config(self.venue, load_config())
        self.clock = clock or Clock()
        self.on_message = on_message
        self.signer = self._make_signer()
        self.signer.validate(credential)
        self.transport = transport or AiohttpTransport(
            self.settings.base_url, self.settings.request_timeout_s,
        )
        self.pipeline = RequestPipeline(self.transport, credential, self.clock)
        self.poller = SettlementPoller(
            self.clock,
            transient_retries=self.settings.transient_retries,
            transient_backoff_s=self.settings.transient_backoff_s,
            on_status=self._notify,
        )

    @abstractmethod
    def _make_signer(self) -> SigningStrategy: ...

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> GatewayClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    # --- Plumbing ---

    async def _call(
        self,
        method: HttpMethod,
        path: str,
        query: Optional[Dict[str, Any]] = None,
        body: Optional[Dict[str, Any]] = None,
        needs_auth: bool = True,
        parse: Optional[Callable[[Any], Any]] = None,
    ) -> Any:
        request = RequestDescriptor(
            method, path,
            query={k: v for k, v in (query or {}).items() if v is not None},
            body=json_body(body) if body is not None else None,
        )
        return await self.pipeline.execute(request, self.signer, self.unwrapper, needs_auth, parse)

    def _notify(self, message: str) -> None:
        if self.on_message is None:
            return
        try:
            self.on_message(message)
        except Exception as e:
            log.warning("Message callback error: %s", e)

    def _message(self, message: str) -> None:
        log.info("[%s] %s", self.venue.value, message)
        self._notify(message)

    def _unsupported(self, operation: str) -> UnsupportedOperationError:
        return UnsupportedOperationError(self.venue.value, operation)

    # --- Account ---

    async def login(self) -> None:
        """Check connectivity and account standing before trading."""
        raise self._unsupported("login")

    async def get_balance(self, currency: str) -> Decimal:
        raise self._unsupported("get_balance")

    async def get_deposit_address(self, currency: str, network: str) -> str:
        raise self._unsupported("get_deposit_address")

    # --- Withdrawal parameters ---

    async def get_network_info(self, currency: str, network: str) -> NetworkInfo:
        raise self._unsupported("get_network_info")

    async def query_withdrawal_precision(self, currency: str, network: str) -> int:
        return (await self.get_network_info(currency, network)).precision

    async def query_withdrawal_min_amount(self, currency: str, network: str) -> Decimal:
        return (await self.get_network_info(currency, network)).min_amount

    async def query_withdrawal_fee(self, currency: str, network: str) -> Decimal:
        return (await self.get_network_info(currency, network)).fee

    # --- Withdrawal ---

    async def _submit_withdrawal(self, currency: str, amount: Decimal, address: str,
                                 network: str, address_tag: Optional[str]) -> str:
        raise self._unsupported("withdraw")

    async def _withdrawal_history(self, currency: str, withdrawal_id: str) -> List[dict]:
        raise self._unsupported("withdrawal history")

    def classify_withdrawal(self, entry: dict) -> Verdict:
        fields = self.WITHDRAWAL_FIELDS
        return self.WITHDRAWAL_STATUS.verdict(entry.get(fields.status), entry.get(fields.tx_hash) or None)

    async def withdraw(
        self,
        currency: str,
        amount: Decimal | str,
        address: str,
        network: str,
        wait_for_approval: bool = True,
        address_tag: Optional[str] = None,
    ) -> WithdrawalRecord:
        """Submit a withdrawal and, unless told otherwise, wait for it to settle.

        Raises ``SettlementFailed`` on a terminal negative status and
        ``SettlementTimeout`` when the attempt budget or deadline runs out.
        """
        amount = Decimal(str(amount))
        if amount <= 0:
            raise ValueError(f"Withdrawal amount must be positive, got {amount}")
        withdrawal_id = str(await self._submit_withdrawal(currency, amount, address, network, address_tag))
        self._message(f"Withdrawal {withdrawal_id} of {fmt_decimal(amount)} {currency} "
                      f"via {network} submitted")

        tx_hash = None
        if wait_for_approval:
            fields = self.WITHDRAWAL_FIELDS
            if fields is None or self.WITHDRAWAL_STATUS is None:
                raise GatewayConfigError(f"{self.venue.value}: no withdrawal status mapping")
            outcome = await self.poller.wait(
                withdrawal_id,
                lambda: self._withdrawal_history(currency, withdrawal_id),
                self.classify_withdrawal,
                lambda e: e.get(fields.id),
                max_attempts=self.settings.withdrawal_max_attempts,
                interval_s=self.settings.withdrawal_interval_s,
                deadline_s=self.settings.settlement_deadline_s,
                status_of=lambda e: e.get(fields.status),
                label="Withdrawal",
            )
            tx_hash = outcome.tx_hash
            self._message(f"Withdrawal {withdrawal_id} sent, tx {tx_hash}")

        return WithdrawalRecord(
            id=withdrawal_id,
            tx_hash=tx_hash,
            requested_amount=amount,
            waited_for_approval=wait_for_approval,
            currency=currency,
            network=network,
            address=address,
            address_tag=address_tag,
        )

    # --- Deposit ---

    async def _deposit_history(self, tx_hash: str, currency: Optional[str]) -> List[dict]:
        raise self._unsupported("approve_receiving")

    def classify_deposit(self, entry: dict) -> Verdict:
        fields = self.DEPOSIT_FIELDS
        return self.DEPOSIT_STATUS.verdict(entry.get(fields.status), entry.get(fields.tx_hash))

    async def approve_receiving(self, tx_hash: str, currency: Optional[str] = None) -> DepositRecord:
        """Wait until the deposit with ``tx_hash`` is credited and return its amount."""
        fields = self.DEPOSIT_FIELDS
        if fields is None or self.DEPOSIT_STATUS is None:
            raise self._unsupported("approve_receiving")
        self._message(f"Waiting for deposit {tx_hash}")
        outcome = await self.poller.wait(
            tx_hash,
            lambda: self._deposit_history(tx_hash, currency),
            self.classify_deposit,
            lambda e: e.get(fields.tx_hash),
            max_attempts=self.settings.deposit_max_attempts,
            interval_s=self.settings.deposit_interval_s,
            deadline_s=self.settings.settlement_deadline_s,
            status_of=lambda e: e.get(fields.status),
            label="Deposit",
        )
        amount = Decimal(str(outcome.entry.get(fields.amount) or "0"))
        asset = currency or ""
        self._message(f"Deposit {tx_hash} credited: {fmt_decimal(amount)} {asset}".rstrip())
        return DepositRecord(tx_hash=tx_hash, amount=amount, currency=asset)
