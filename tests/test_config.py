"""
Tests for YAML + environment configuration loading.
"""

import pytest
from web3 import Web3

from bonding_buyer.exceptions import ConfigError
from bonding_buyer.utils.config import BuyerConfig, load_config

from conftest import SALE, STABLE

KEY = "0x" + "11" * 32


@pytest.fixture
def yaml_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        f"sale_address: \"{SALE}\"\n"
        f"stable_address: \"{STABLE}\"\n"
        "cap_numerator: 25\n"
        "purchase_amount: 1000\n",
        encoding="utf-8",
    )
    return path


def test_yaml_then_env_precedence(yaml_file):
    cfg = load_config(str(yaml_file), environ={"SALE_CAP_NUMERATOR": "40", "RPC_URLS": "http://a, http://b/"})
    assert cfg.cap_numerator == 40
    assert cfg.cap_denominator == 100
    assert cfg.purchase_amount == 1000
    assert cfg.rpc_urls == ["http://a", "http://b"]
    assert cfg.sale_address == Web3.to_checksum_address(SALE)


def test_env_only(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    cfg = load_config(environ={"SALE_ADDRESS": SALE, "STABLE_ADDRESS": STABLE, "FAUCET_MINT": "true"})
    assert cfg.faucet_mint is True
    assert cfg.confirmation_timeout_secs == 180.0


def test_blank_env_values_are_ignored(yaml_file):
    cfg = load_config(str(yaml_file), environ={"SALE_CAP_NUMERATOR": "  ", "PURCHASE_AMOUNT": ""})
    assert cfg.cap_numerator == 25
    assert cfg.purchase_amount == 1000


def test_missing_explicit_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "nope.yaml"), environ={})


def test_missing_file_from_env_var(tmp_path):
    with pytest.raises(ConfigError):
        load_config(environ={"BUYER_CONFIG": str(tmp_path / "nope.yaml")})


def test_yaml_must_be_a_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path), environ={})


@pytest.mark.parametrize("env", [
    {"SALE_ADDRESS": "0x1234"},
    {"SALE_CAP_NUMERATOR": "101"},
    {"GAS_MODE": "eip"},
    {"RPC_URLS": " , "},
    {"PURCHASE_AMOUNT": "0"},
])
def test_invalid_values_are_config_errors(yaml_file, env):
    with pytest.raises(ConfigError) as exc:
        load_config(str(yaml_file), environ=env)
    assert exc.value.details["errors"]


def test_private_keys_are_masked():
    cfg = BuyerConfig(sale_address=SALE, stable_address=STABLE, buyer_private_key=KEY)
    assert KEY not in repr(cfg)
    assert KEY not in str(cfg)
    assert cfg.buyer_private_key.get_secret_value() == KEY


def test_gas_mode_is_case_insensitive():
    cfg = BuyerConfig(sale_address=SALE, stable_address=STABLE, gas_mode="LEGACY")
    assert cfg.gas_mode == "legacy"
