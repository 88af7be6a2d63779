from __future__ import annotations

import base64
import json
from typing import Any, Callable

import httpx
import pytest

from swap_trader.config import Settings
from swap_trader.errors import BuildFailed, NetworkUnavailable
from swap_trader.ledger.rpc import SolanaRpcLedger
from swap_trader.types import Checkpoint

Handler = Callable[[str, list[Any]], Any]


def _ledger(handler: Handler, tmp_path: object, **overrides: object) -> tuple[SolanaRpcLedger, list[str]]:
    methods: list[str] = []

    def transport(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        methods.append(body["method"])
        result = handler(body["method"], body["params"])
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    settings = Settings(
        journal_dir=tmp_path,
        rpc_url="http://rpc.test",
        confirm_poll_interval=0,
        **overrides,  # type: ignore[arg-type]
    )
    return SolanaRpcLedger(settings, transport=httpx.MockTransport(transport)), methods


def test_get_balance_unwraps_value(tmp_path: object) -> None:
    def handler(method: str, params: list[Any]) -> Any:
        assert params[0] == "owner1"
        return {"context": {"slot": 1}, "value": 2_500_000_000}

    ledger, methods = _ledger(handler, tmp_path)
    assert ledger.get_balance("owner1") == 2_500_000_000
    assert methods == ["getBalance"]


def test_token_balance_sums_accounts(tmp_path: object) -> None:
    def account(amount: str) -> dict[str, Any]:
        return {"account": {"data": {"parsed": {"info": {"tokenAmount": {"amount": amount}}}}}}

    def handler(method: str, params: list[Any]) -> Any:
        assert params[1] == {"mint": "TOKEN"}
        assert params[2]["encoding"] == "jsonParsed"
        return {"context": {}, "value": [account("700"), account("300")]}

    ledger, _ = _ledger(handler, tmp_path)
    assert ledger.get_token_balance("owner1", "TOKEN") == 1000


def test_token_balance_without_accounts_is_zero(tmp_path: object) -> None:
    ledger, _ = _ledger(lambda method, params: {"context": {}, "value": []}, tmp_path)
    assert ledger.get_token_balance("owner1", "TOKEN") == 0


def test_latest_checkpoint(tmp_path: object) -> None:
    def handler(method: str, params: list[Any]) -> Any:
        return {"value": {"blockhash": "abc", "lastValidBlockHeight": 321}}

    ledger, _ = _ledger(handler, tmp_path)
    assert ledger.get_latest_checkpoint() == Checkpoint("abc", 321)


def test_submit_sends_base64_without_preflight(tmp_path: object) -> None:
    seen: list[list[Any]] = []

    def handler(method: str, params: list[Any]) -> Any:
        seen.append(params)
        return "sig-abc"

    ledger, methods = _ledger(handler, tmp_path)
    assert ledger.submit(b"signed", skip_preflight=True, max_retries=3) == "sig-abc"
    assert methods == ["sendTransaction"]
    encoded, config = seen[0]
    assert base64.b64decode(encoded) == b"signed"
    assert config["encoding"] == "base64"
    assert config["skipPreflight"] is True
    assert config["maxRetries"] == 3


def test_rpc_error_object_is_network_unavailable_and_reads_retry(tmp_path: object) -> None:
    ledger, methods = _ledger(
        lambda method, params: httpx.Response(
            200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "busy"}}
        ),
        tmp_path,
    )
    with pytest.raises(NetworkUnavailable) as excinfo:
        ledger.get_balance("owner1")
    assert "busy" in excinfo.value.message
    assert methods == ["getBalance"] * 3


def test_submit_is_not_retried(tmp_path: object) -> None:
    ledger, methods = _ledger(lambda method, params: httpx.Response(503), tmp_path)
    with pytest.raises(NetworkUnavailable):
        ledger.submit(b"signed", skip_preflight=True, max_retries=3)
    assert methods == ["sendTransaction"]


def test_confirm_returns_true_when_status_reaches_commitment(tmp_path: object) -> None:
    statuses = iter([None, {"confirmationStatus": "processed", "err": None}, {"confirmationStatus": "confirmed", "err": None}])

    def handler(method: str, params: list[Any]) -> Any:
        if method == "getSignatureStatuses":
            return {"context": {}, "value": [next(statuses)]}
        return 100

    ledger, methods = _ledger(handler, tmp_path)
    assert ledger.confirm("sig", Checkpoint("abc", 150)) is True
    assert methods.count("getSignatureStatuses") == 3


def test_confirm_returns_false_once_checkpoint_expires(tmp_path: object) -> None:
    def handler(method: str, params: list[Any]) -> Any:
        if method == "getSignatureStatuses":
            return {"context": {}, "value": [None]}
        return 151

    ledger, _ = _ledger(handler, tmp_path)
    assert ledger.confirm("sig", Checkpoint("abc", 150)) is False


def test_confirm_raises_when_transaction_failed_on_chain(tmp_path: object) -> None:
    def handler(method: str, params: list[Any]) -> Any:
        return {"value": [{"confirmationStatus": "confirmed", "err": {"InstructionError": [2, "Custom"]}}]}

    ledger, _ = _ledger(handler, tmp_path)
    with pytest.raises(BuildFailed) as excinfo:
        ledger.confirm("sig", Checkpoint("abc", 150))
    assert "transaction_failed" in excinfo.value.message


def test_signature_status_searches_history(tmp_path: object) -> None:
    seen: list[list[Any]] = []
    statuses = iter(
        [
            None,
            {"confirmationStatus": "processed", "err": None},
            {"confirmationStatus": "finalized", "err": None},
            {"confirmationStatus": "finalized", "err": {"InstructionError": [0, "Custom"]}},
        ]
    )

    def handler(method: str, params: list[Any]) -> Any:
        seen.append(params)
        return {"context": {}, "value": [next(statuses)]}

    ledger, _ = _ledger(handler, tmp_path)
    assert [ledger.get_signature_status("sig") for _ in range(4)] == [None, None, "landed", "failed"]
    assert seen[0][1] == {"searchTransactionHistory": True}


def test_block_height(tmp_path: object) -> None:
    ledger, methods = _ledger(lambda method, params: 4242, tmp_path)
    assert ledger.get_block_height() == 4242
    assert methods == ["getBlockHeight"]


def test_unparseable_token_amount_is_network_unavailable(tmp_path: object) -> None:
    def handler(method: str, params: list[Any]) -> Any:
        bad = {"account": {"data": {"parsed": {"info": {"tokenAmount": {"amount": "n/a"}}}}}}
        return {"context": {}, "value": [bad]}

    ledger, _ = _ledger(handler, tmp_path)
    with pytest.raises(NetworkUnavailable):
        ledger.get_token_balance("owner1", "TOKEN")
