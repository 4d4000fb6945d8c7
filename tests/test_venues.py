"""End-to-end flows for the Bybit, KuCoin, OKX and Gate.io clients."""
from decimal import Decimal

import pytest

from core.errors import (
    GatewayConfigError, SettlementFailed, SettlementTimeout,
    UnsupportedOperationError, VenueError,
)
from core.types import Credential
from gateway.bybit_rest import BybitClient
from gateway.gateio_rest import GateIoClient
from gateway.kucoin_rest import KucoinClient
from gateway.okx_rest import OkxClient, okx_chain


def bybit(result, code=0, msg="OK"):
    return {"retCode": code, "retMsg": msg, "result": result}


def kucoin(data):
    return {"code": "200000", "data": data}


def okx(data, code="0", msg=""):
    return {"code": code, "msg": msg, "data": data}


# ── Bybit ───────────────────────────────────────────────────────────────

class TestBybit:
    CREATE = "/v5/asset/withdraw/create"
    RECORDS = "/v5/asset/withdraw/query-record"

    @pytest.fixture
    def client(self, make_client):
        return make_client(BybitClient)

    async def test_withdraw_and_settle(self, client, transport, clock):
        transport.add_json("POST", self.CREATE, bybit({"id": "B1"}))
        transport.add_json("GET", self.RECORDS, bybit({"rows": [{"withdrawId": "B1", "status": "Pending"}]}))
        transport.add_json("GET", self.RECORDS, bybit({"rows": [
            {"withdrawId": "B1", "status": "success", "txID": "0xb"},
        ]}))

        record = await client.withdraw("usdt", "10", "0xdest", "ETH")

        assert record.id == "B1"
        assert record.tx_hash == "0xb"
        assert clock.sleeps == [10]
        sent = transport.calls("POST", self.CREATE)[0]
        assert sent.json == {
            "coin": "USDT", "chain": "ETH", "address": "0xdest", "amount": "10",
            "timestamp": 1700000000000, "accountType": "FUND",
        }
        assert sent.headers["X-BAPI-TIMESTAMP"] == "1700000000000"
        assert transport.calls("GET", self.RECORDS)[0].query == {"withdrawID": "B1"}

    async def test_rejected(self, client, transport):
        transport.add_json("POST", self.CREATE, bybit({"id": "B1"}))
        transport.add_json("GET", self.RECORDS, bybit({"rows": [{"withdrawId": "B1", "status": "Reject"}]}))
        with pytest.raises(SettlementFailed) as ei:
            await client.withdraw("USDT", "10", "0xdest", "ETH")
        assert ei.value.status == "Reject"

    async def test_submit_error_with_status_200(self, client, transport):
        transport.add_json("POST", self.CREATE, bybit({}, code=131001, msg="insufficient balance"))
        with pytest.raises(VenueError) as ei:
            await client.withdraw("USDT", "10", "0xdest", "ETH")
        assert ei.value.code == 131001

    async def test_balance(self, client, transport):
        transport.add_json("GET", "/v5/asset/transfer/query-account-coin-balance",
                           bybit({"accountType": "FUND", "balance": {"coin": "USDT", "transferBalance": "15.2"}}))
        assert await client.get_balance("USDT") == Decimal("15.2")
        assert transport.requests[0].query == {"accountType": "FUND", "coin": "USDT"}

    async def test_network_info(self, client, transport):
        transport.add_json("GET", "/v5/asset/coin/query-info", bybit({"rows": [{
            "coin": "USDT",
            "chains": [{"chain": "ETH", "minAccuracy": "6", "withdrawMin": "10", "withdrawFee": "2"}],
        }]}))
        info = await client.get_network_info("USDT", "eth")
        assert info.precision == 6
        assert info.min_amount == Decimal("10")
        assert info.fee == Decimal("2")

    async def test_deposit_address(self, client, transport):
        transport.add_json("GET", "/v5/asset/deposit/query-address", bybit({"coin": "USDT", "chains": [
            {"chainType": "TRC20", "chain": "TRX", "addressDeposit": "Ttrx"},
            {"chainType": "ERC20", "chain": "ETH", "addressDeposit": "0xeth"},
        ]}))
        assert await client.get_deposit_address("USDT", "ETH") == "0xeth"

    async def test_approve_receiving(self, client, transport):
        records = "/v5/asset/deposit/query-record"
        transport.add_json("GET", records, bybit({"rows": [{"txID": "0xd", "status": 2, "amount": "7"}]}))
        transport.add_json("GET", records, bybit({"rows": [{"txID": "0xd", "status": 3, "amount": "7"}]}))
        record = await client.approve_receiving("0xd", currency="usdt")
        assert record.amount == Decimal("7")
        assert transport.requests[0].query == {"coin": "USDT"}


# ── KuCoin ──────────────────────────────────────────────────────────────

class TestKucoin:
    WITHDRAWALS = "/api/v1/withdrawals"

    @pytest.fixture
    def client(self, make_client):
        return make_client(KucoinClient)

    async def test_withdraw_and_settle(self, client, transport):
        transport.add_json("POST", self.WITHDRAWALS, kucoin({"withdrawalId": "K1"}))
        transport.add_json("GET", self.WITHDRAWALS, kucoin({"items": [{"id": "K1", "status": "PROCESSING"}]}))
        transport.add_json("GET", self.WITHDRAWALS, kucoin({"items": [
            {"id": "K1", "status": "SUCCESS", "walletTxId": "0xk"},
        ]}))

        record = await client.withdraw("USDT", Decimal("5"), "0xdest", "eth", address_tag="m1")

        assert record.tx_hash == "0xk"
        sent = transport.calls("POST", self.WITHDRAWALS)[0]
        assert sent.json == {
            "currency": "USDT", "address": "0xdest", "amount": "5",
            "memo": "m1", "chain": "eth", "isInner": False,
        }
        assert sent.headers["KC-API-KEY-VERSION"] == "2"
        assert "KC-API-PASSPHRASE" in sent.headers

    async def test_failure(self, client, transport):
        transport.add_json("POST", self.WITHDRAWALS, kucoin({"withdrawalId": "K1"}))
        transport.add_json("GET", self.WITHDRAWALS, kucoin({"items": [{"id": "K1", "status": "FAILURE"}]}))
        with pytest.raises(SettlementFailed):
            await client.withdraw("USDT", Decimal("5"), "0xdest", "eth")

    async def test_balance_sums_main_accounts(self, client, transport):
        transport.add_json("GET", "/api/v1/accounts", kucoin([
            {"currency": "USDT", "type": "main", "available": "1.5"},
            {"currency": "USDT", "type": "main", "available": "2.25"},
        ]))
        assert await client.get_balance("usdt") == Decimal("3.75")

    async def test_network_info(self, client, transport):
        transport.add_json("GET", "/api/v1/withdrawals/quotas", kucoin({
            "currency": "USDT", "chain": "eth", "precision": 6,
            "withdrawMinSize": "10", "withdrawMinFee": "3.2",
        }))
        assert await client.query_withdrawal_fee("USDT", "eth") == Decimal("3.2")
        assert transport.requests[0].query == {"currency": "USDT", "chain": "eth"}

    async def test_approve_receiving_unsupported(self, client, transport):
        with pytest.raises(UnsupportedOperationError):
            await client.approve_receiving("0xd")
        assert transport.requests == []

    async def test_passphrase_required(self, make_client):
        with pytest.raises(GatewayConfigError):
            make_client(KucoinClient, credential=Credential("k", "s"))


# ── OKX ─────────────────────────────────────────────────────────────────

class TestOkx:
    CURRENCIES = "/api/v5/asset/currencies"
    WITHDRAWAL = "/api/v5/asset/withdrawal"
    HISTORY = "/api/v5/asset/withdrawal-history"

    CHAINS = okx([
        {"ccy": "USDT", "chain": "USDT-TRC20", "wdTickSz": "6", "minWd": "1", "minFee": "0.8"},
        {"ccy": "USDT", "chain": "USDT-ERC20", "wdTickSz": "6", "minWd": "2", "minFee": "1.5"},
    ])

    @pytest.fixture
    def client(self, make_client):
        return make_client(OkxClient)

    def test_chain_names(self):
        assert okx_chain("usdt", "ERC20") == "USDT-ERC20"
        assert okx_chain("USDT", "USDT-ERC20") == "USDT-ERC20"

    async def test_withdraw_and_settle(self, client, transport):
        transport.add_json("GET", self.CURRENCIES, self.CHAINS)
        transport.add_json("POST", self.WITHDRAWAL, okx([{"wdId": "O1", "ccy": "USDT"}]))
        transport.add_json("GET", self.HISTORY, okx([{"wdId": "O1", "state": "0"}]))
        transport.add_json("GET", self.HISTORY, okx([{"wdId": "O1", "state": "2", "txId": "0xo"}]))

        record = await client.withdraw("USDT", "20", "0xdest", "ERC20", address_tag="memo")

        assert record.tx_hash == "0xo"
        sent = transport.calls("POST", self.WITHDRAWAL)[0]
        assert sent.json == {
            "ccy": "USDT", "amt": "20", "dest": "4", "toAddr": "0xdest:memo",
            "chain": "USDT-ERC20", "fee": "1.5",
        }
        assert sent.headers["OK-ACCESS-TIMESTAMP"] == "2023-11-14T22:13:20.000Z"
        assert sent.headers["OK-ACCESS-PASSPHRASE"] == "test-pass"

    async def test_failed_state(self, client, transport):
        transport.add_json("GET", self.CURRENCIES, self.CHAINS)
        transport.add_json("POST", self.WITHDRAWAL, okx([{"wdId": "O1"}]))
        transport.add_json("GET", self.HISTORY, okx([{"wdId": "O1", "state": "-1"}]))
        with pytest.raises(SettlementFailed):
            await client.withdraw("USDT", "20", "0xdest", "ERC20")

    async def test_named_error_on_submit(self, client, transport):
        transport.add_json("GET", self.CURRENCIES, self.CHAINS)
        transport.add_json("POST", self.WITHDRAWAL, okx([], code="58350", msg="Insufficient balance"))
        with pytest.raises(VenueError) as ei:
            await client.withdraw("USDT", "20", "0xdest", "ERC20")
        assert ei.value.name == "InsufficientBalance"

    async def test_network_queries(self, client, transport):
        transport.add_json("GET", self.CURRENCIES, self.CHAINS)
        assert await client.query_withdrawal_precision("USDT", "TRC20") == 6
        assert await client.query_withdrawal_min_amount("USDT", "TRC20") == Decimal("1")

    async def test_balance(self, client, transport):
        transport.add_json("GET", "/api/v5/asset/balances", okx([{"ccy": "USDT", "availBal": "99.1"}]))
        assert await client.get_balance("USDT") == Decimal("99.1")

    async def test_approve_receiving(self, client, transport):
        transport.add_json("GET", "/api/v5/asset/deposit-history",
                           okx([{"txId": "0xd", "state": "2", "amt": "3.3", "ccy": "USDT"}]))
        record = await client.approve_receiving("0xd", currency="USDT")
        assert record.amount == Decimal("3.3")
        assert transport.requests[0].query == {"ccy": "USDT", "txId": "0xd"}

    async def test_login_during_maintenance(self, client, transport):
        transport.add_json("GET", "/api/v5/system/status",
                           okx([{"state": "ongoing", "title": "Spot upgrade"}]))
        with pytest.raises(VenueError):
            await client.login()
        assert len(transport.requests) == 1


# ── Gate.io ─────────────────────────────────────────────────────────────

class TestGateIo:
    WITHDRAWALS = "/api/v4/withdrawals"
    HISTORY = "/api/v4/wallet/withdrawals"

    @pytest.fixture
    def client(self, make_client):
        return make_client(GateIoClient)

    async def test_withdraw_and_settle(self, client, transport):
        transport.add_json("POST", self.WITHDRAWALS, {"id": "G1", "status": "REQUEST"})
        transport.add_json("GET", self.HISTORY, [{"id": "G1", "status": "PEND"}])
        transport.add_json("GET", self.HISTORY, [{"id": "G1", "status": "DONE", "txid": "0xg"}])

        record = await client.withdraw("USDT", "10", "0xdest", "ETH")

        assert record.tx_hash == "0xg"
        sent = transport.calls("POST", self.WITHDRAWALS)[0]
        assert sent.json == {"amount": "10", "currency": "USDT", "address": "0xdest", "chain": "ETH"}
        assert sent.headers["Timestamp"] == "1700000000"
        assert len(sent.headers["SIGN"]) == 128

    async def test_timeout(self, client, transport, settings):
        settings.withdrawal_max_attempts = 3
        transport.add_json("POST", self.WITHDRAWALS, {"id": "G1"})
        transport.add_json("GET", self.HISTORY, [{"id": "G1", "status": "REVIEW"}])
        with pytest.raises(SettlementTimeout) as ei:
            await client.withdraw("USDT", "10", "0xdest", "ETH")
        assert ei.value.attempts == 3

    async def test_error_label(self, client, transport):
        transport.add_json("POST", self.WITHDRAWALS,
                           {"label": "BALANCE_NOT_ENOUGH", "message": "balance not enough"}, status=400)
        with pytest.raises(VenueError) as ei:
            await client.withdraw("USDT", "10", "0xdest", "ETH")
        assert ei.value.code == "BALANCE_NOT_ENOUGH"

    async def test_deposit_address(self, client, transport):
        transport.add_json("GET", "/api/v4/wallet/deposit_address", {
            "currency": "USDT",
            "multichain_addresses": [{"chain": "ETH", "address": "0xgate"}],
        })
        assert await client.get_deposit_address("USDT", "eth") == "0xgate"

    async def test_balance(self, client, transport):
        transport.add_json("GET", "/api/v4/spot/accounts",
                           [{"currency": "USDT", "available": "8.5", "locked": "0"}])
        assert await client.get_balance("USDT") == Decimal("8.5")

    async def test_unsupported_operations(self, client, transport):
        with pytest.raises(UnsupportedOperationError):
            await client.query_withdrawal_precision("USDT", "ETH")
        with pytest.raises(UnsupportedOperationError):
            await client.approve_receiving("0xd")
        assert transport.requests == []
