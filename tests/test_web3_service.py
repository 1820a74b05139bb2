"""
Tests for the Web3Service retry, account and gas helpers.

The service is built with ``__new__`` so no node is contacted.
"""

from unittest.mock import MagicMock

import pytest
from eth_account import Account
from pydantic import SecretStr
from web3.exceptions import ContractCustomError

from bonding_buyer.exceptions import ConfigError
from bonding_buyer.services.web3_service import Web3Service
from bonding_buyer.utils.config import BuyerConfig

from conftest import MAX_SUPPLY_REACHED, SALE, STABLE

KEY = "0x" + "11" * 32


def make_service(**overrides) -> Web3Service:
    cfg = BuyerConfig(
        sale_address=SALE,
        stable_address=STABLE,
        rpc_urls=["http://a", "http://b"],
        rpc_retries=3,
        rpc_retry_backoff_secs=0,
        **overrides,
    )
    svc = Web3Service.__new__(Web3Service)
    svc.config = cfg
    svc._rpc_urls = list(cfg.rpc_urls)
    svc._current_rpc_idx = 0
    svc._rotate_and_reconnect = MagicMock()
    svc._accounts = {}
    svc._buyer = None
    svc._deployer = None
    svc._w3 = MagicMock()
    return svc


def test_rpc_call_retries_then_succeeds():
    svc = make_service()
    fn = MagicMock(side_effect=[ConnectionError("down"), 42])
    assert svc._rpc_call("x", fn) == 42
    assert fn.call_count == 2
    assert svc._rotate_and_reconnect.call_count == 1


def test_rpc_call_does_not_retry_reverts():
    svc = make_service()
    fn = MagicMock(side_effect=ContractCustomError(MAX_SUPPLY_REACHED, data=MAX_SUPPLY_REACHED))
    with pytest.raises(ContractCustomError):
        svc._rpc_call("x", fn)
    assert fn.call_count == 1
    svc._rotate_and_reconnect.assert_not_called()


def test_rpc_call_reraises_after_last_attempt():
    svc = make_service()
    fn = MagicMock(side_effect=ConnectionError("down"))
    with pytest.raises(ConnectionError):
        svc._rpc_call("x", fn)
    assert fn.call_count == 3
    # no rotation after the final attempt
    assert svc._rotate_and_reconnect.call_count == 2


def test_rpc_call_single_shot():
    svc = make_service()
    fn = MagicMock(side_effect=ValueError("nonce too low"))
    with pytest.raises(ValueError):
        svc._rpc_call("send_raw_tx", fn, retries=1)
    assert fn.call_count == 1
    svc._rotate_and_reconnect.assert_not_called()


def test_accounts():
    svc = make_service()
    svc._buyer = svc._add_account(SecretStr(KEY))
    expected = Account.from_key(KEY).address
    assert svc.buyer_address == expected
    assert svc.account_for(expected.lower()).address == expected
    with pytest.raises(ConfigError):
        svc.account_for(SALE)
    with pytest.raises(ConfigError):
        _ = svc.deployer_address


def test_empty_key_is_no_account():
    svc = make_service()
    assert svc._add_account(SecretStr("")) is None
    assert svc._add_account(None) is None
    with pytest.raises(ConfigError):
        _ = svc.buyer_address


def test_legacy_gas_fields_use_forced_price():
    svc = make_service(gas_price_wei=7)
    svc._gas_mode = "legacy"
    tx = svc._apply_gas_fields({"maxFeePerGas": 1, "maxPriorityFeePerGas": 1, "accessList": []})
    assert tx == {"type": 0, "gasPrice": 7}


def test_1559_gas_fields():
    svc = make_service(max_fee_multiplier=2.0)
    svc._gas_mode = "1559"
    svc._w3.eth.get_block.return_value = {"baseFeePerGas": 100}
    svc._w3.eth.max_priority_fee = 5
    tx = svc._apply_gas_fields({"gasPrice": 3})
    assert "gasPrice" not in tx
    assert tx["type"] == 2
    assert tx["maxPriorityFeePerGas"] == 5
    assert tx["maxFeePerGas"] == 205


def test_gas_mode_override_skips_detection():
    svc = make_service(gas_mode="1559")
    assert svc._detect_gas_mode() == "1559"
    svc._w3.eth.get_block.assert_not_called()
