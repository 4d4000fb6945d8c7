"""KuCoin REST client.

Auth headers ``KC-API-*``; the passphrase is sent raw (key version 1) or
HMAC-signed with the secret (key version 2). Responses are wrapped in
``{code, data, msg}`` with ``code == "200000"`` on success.
"""
from __future__ import annotations
import logging
from decimal import Decimal
from typing import List, Optional

from core.errors import AssetNotFoundError
from core.quantity import fmt_decimal
from core.types import HttpMethod, NetworkInfo, Venue
from gateway.base import GatewayClient, HistoryFields
from gateway.envelopes import unwrap_kucoin
from gateway.settlement import StatusTable
from gateway.signing import KucoinSigner, SigningStrategy

log = logging.getLogger(__name__)

WITHDRAWAL_STATUSES = StatusTable(
    pending=["PROCESSING", "WALLET_PROCESSING", "REVIEW"],
    success=["SUCCESS"],
    failure=["FAILURE"],
)


class KucoinClient(GatewayClient):
    venue = Venue.KUCOIN
    unwrapper = staticmethod(unwrap_kucoin)

    WITHDRAWAL_FIELDS = HistoryFields(id="id", status="status", tx_hash="walletTxId")
    WITHDRAWAL_STATUS = WITHDRAWAL_STATUSES

    def _make_signer(self) -> SigningStrategy:
        return KucoinSigner(key_version=self.settings.key_version)

    async def login(self) -> None:
        await self._call(HttpMethod.GET, "/api/v1/timestamp", needs_auth=False)
        await self._call(HttpMethod.GET, "/api/v1/accounts", query={"type": "main"})
        self._message("Logged in")

    async def get_balance(self, currency: str) -> Decimal:
        return await self._call(
            HttpMethod.GET, "/api/v1/accounts",
            query={"currency": currency.upper(), "type": "main"},
            parse=lambda accounts: sum((Decimal(str(a["available"])) for a in accounts), Decimal(0)),
        )

    async def get_deposit_address(self, currency: str, network: str) -> str:
        def parse(addresses: List[dict]) -> str:
            for entry in addresses:
                if str(entry.get("chain", "")).upper() == network.upper():
                    return entry["address"]
            raise AssetNotFoundError(f"No {currency} deposit address on {network}")
        return await self._call(HttpMethod.GET, "/api/v2/deposit-addresses",
                                query={"currency": currency.upper()}, parse=parse)

    async def get_network_info(self, currency: str, network: str) -> NetworkInfo:
        def parse(quotas: dict) -> NetworkInfo:
            return NetworkInfo(
                currency=currency.upper(),
                network=quotas.get("chain") or network,
                precision=int(quotas["precision"]),
                min_amount=Decimal(str(quotas["withdrawMinSize"])),
                fee=Decimal(str(quotas["withdrawMinFee"])),
            )
        return await self._call(
            HttpMethod.GET, "/api/v1/withdrawals/quotas",
            query={"currency": currency.upper(), "chain": network}, parse=parse,
        )

    async def _submit_withdrawal(self, currency: str, amount: Decimal, address: str,
                                 network: str, address_tag: Optional[str]) -> str:
        body = {
            "currency": currency.upper(),
            "address": address,
            "amount": fmt_decimal(amount),
            "memo": address_tag,
            "chain": network,
            "isInner": False,
        }
        return await self._call(HttpMethod.POST, "/api/v1/withdrawals",
                                body=body, parse=lambda d: str(d["withdrawalId"]))

    async def _withdrawal_history(self, currency: str, withdrawal_id: str) -> List[dict]:
        return await self._call(HttpMethod.GET, "/api/v1/withdrawals",
                                query={"currency": currency.upper()},
                                parse=lambda d: d["items"])
