"""
Tests for unit formatting and revert payload extraction.
"""

import pytest
from web3.exceptions import ContractCustomError, ContractLogicError

from bonding_buyer.utils.web3_utils import ZERO_ADDRESS, extract_revert_data, format_units, is_zero_address

from conftest import MAX_SUPPLY_REACHED, POOL, ZERO_AMOUNT, USDT_TRANSFER_FAILED


@pytest.mark.parametrize("raw,decimals,expected", [
    (0, 18, "0"),
    (10**18, 18, "1"),
    (1_500_000, 6, "1.5"),
    (123, 0, "123"),
    (300_000 * 10**18, 18, "300000"),
    (1, 18, "0.000000000000000001"),
])
def test_format_units(raw, decimals, expected):
    assert format_units(raw, decimals) == expected


def test_zero_address():
    assert is_zero_address(ZERO_ADDRESS)
    assert is_zero_address(None)
    assert is_zero_address("")
    assert not is_zero_address(POOL)


def test_revert_data_from_custom_error():
    assert extract_revert_data(ContractCustomError(MAX_SUPPLY_REACHED, data=MAX_SUPPLY_REACHED)) == MAX_SUPPLY_REACHED


def test_revert_data_from_logic_error_with_dict():
    exc = ContractLogicError("execution reverted", data={"data": ZERO_AMOUNT.upper().replace("0X", "0x")})
    assert extract_revert_data(exc) == ZERO_AMOUNT


def test_revert_data_from_rpc_error_payload():
    exc = ValueError({"code": 3, "message": "execution reverted", "error": {"data": USDT_TRANSFER_FAILED}})
    assert extract_revert_data(exc) == USDT_TRANSFER_FAILED


def test_revert_data_from_bytes():
    assert extract_revert_data(Exception(bytes.fromhex("cf479181"))) == MAX_SUPPLY_REACHED


@pytest.mark.parametrize("exc", [
    ValueError("execution reverted"),
    ValueError({"code": -32000, "message": "out of gas"}),
    ValueError("0x12"),
    ValueError("0xnothexatall"),
])
def test_no_revert_data(exc):
    assert extract_revert_data(exc) == ""
