"""Gate.io API v4 REST client.

Auth headers ``KEY``, ``Timestamp`` (seconds) and ``SIGN``, an HMAC-SHA512
over method, path, query, body hash and timestamp joined by newlines.
Success bodies are bare JSON; errors are ``{label, message}`` with a
non-2xx status.
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import List, Optional

from core.errors import AssetNotFoundError
from core.quantity import fmt_decimal
from core.types import HttpMethod, Venue
from gateway.base import GatewayClient, HistoryFields
from gateway.envelopes import unwrap_gateio
from gateway.settlement import StatusTable
from gateway.signing import GateIoSigner, SigningStrategy

log = logging.getLogger(__name__)

WITHDRAWAL_STATUSES = StatusTable(
    pending=["REQUEST", "EXTPEND", "VERIFY", "PROCES", "PEND", "SPLITPEND", "REVIEW"],
    success=["DONE"],
    failure=["CANCEL", "DMOVE", "MANUAL", "BCODE", "FAIL", "INVALID"],
)


class GateIoClient(GatewayClient):
    """Withdrawals and deposit addresses. Network parameters and deposit
    confirmation are not offered for this venue."""

    venue = Venue.GATEIO
    unwrapper = staticmethod(unwrap_gateio)

    WITHDRAWAL_FIELDS = HistoryFields(id="id", status="status", tx_hash="txid")
    WITHDRAWAL_STATUS = WITHDRAWAL_STATUSES

    def _make_signer(self) -> SigningStrategy:
        return GateIoSigner()

    async def login(self) -> None:
        await self._call(HttpMethod.GET, "/api/v4/spot/time", needs_auth=False)
        await self._call(HttpMethod.GET, "/api/v4/spot/accounts", query={"currency": "USDT"})
        self._message("Logged in")

    async def get_balance(self, currency: str) -> Decimal:
        def parse(accounts: List[dict]) -> Decimal:
            for acc in accounts:
                if acc["currency"].upper() == currency.upper():
                    return Decimal(str(acc["available"]))
            return Decimal(0)
        return await self._call(HttpMethod.GET, "/api/v4/spot/accounts",
                                query={"currency": currency.upper()}, parse=parse)

    async def get_deposit_address(self, currency: str, network: str) -> str:
        def parse(result: dict) -> str:
            for entry in result.get("multichain_addresses") or []:
                if entry["chain"].upper() == network.upper():
                    return entry["address"]
            raise AssetNotFoundError(f"No {currency} deposit address on {network}")
        return await self._call(HttpMethod.GET, "/api/v4/wallet/deposit_address",
                                query={"currency": currency.upper()}, parse=parse)

    async def _submit_withdrawal(self, currency: str, amount: Decimal, address: str,
                                 network: str, address_tag: Optional[str]) -> str:
        body = {
            "amount": fmt_decimal(amount),
            "currency": currency.upper(),
            "address": address,
            "memo": address_tag,
            "chain": network,
        }
        return await self._call(HttpMethod.POST, "/api/v4/withdrawals",
                                body=body, parse=lambda d: str(d["id"]))

    async def _withdrawal_history(self, currency: str, withdrawal_id: str) -> List[dict]:
        return await self._call(HttpMethod.GET, "/api/v4/wallet/withdrawals",
                                query={"currency": currency.upper()}, parse=list)
