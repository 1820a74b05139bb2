"""
Configuration loading for bonding_buyer.

Values come from three layers, lowest precedence first: the defaults on
``BuyerConfig``, an optional ``config.yaml`` and the process environment
(``main`` runs ``load_dotenv`` first, so a ``.env`` file counts as
environment). The resulting object is passed to every service constructor;
nothing reads addresses or keys from globals.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml  # type: ignore
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator
from web3 import Web3

from bonding_buyer.exceptions import ConfigError

DEFAULT_RPC_URL = "https://devnet.neonevm.org"

# env var -> field
ENV_FIELDS: Dict[str, str] = {
    "RPC_URLS": "rpc_urls",
    "SALE_ADDRESS": "sale_address",
    "STABLE_ADDRESS": "stable_address",
    "PURCHASE_AMOUNT": "purchase_amount",
    "SALE_CAP_NUMERATOR": "cap_numerator",
    "SALE_CAP_DENOMINATOR": "cap_denominator",
    "CONFIRMATION_TIMEOUT_SECS": "confirmation_timeout_secs",
    "RECEIPT_POLL_SECS": "receipt_poll_secs",
    "RPC_TIMEOUT_SECS": "rpc_timeout_secs",
    "RPC_RETRIES": "rpc_retries",
    "RPC_RETRY_BACKOFF_SECS": "rpc_retry_backoff_secs",
    "GAS_MODE": "gas_mode",
    "GAS_PRICE_WEI": "gas_price_wei",
    "PRIORITY_FEE_GWEI": "priority_fee_gwei",
    "MAX_FEE_MULTIPLIER": "max_fee_multiplier",
    "GAS_LIMIT_MULTIPLIER": "gas_limit_multiplier",
    "FAUCET_MINT": "faucet_mint",
    "FAUCET_BUFFER_MULTIPLIER": "faucet_buffer_multiplier",
    "PRIVATE_KEY_BUYER": "buyer_private_key",
    "PRIVATE_KEY_DEPLOYER": "deployer_private_key",
}


class BuyerConfig(BaseModel):
    rpc_urls: List[str] = Field(default_factory=lambda: [DEFAULT_RPC_URL])
    sale_address: str
    stable_address: str
    purchase_amount: Optional[int] = Field(default=None, gt=0)

    cap_numerator: int = Field(default=30, gt=0)
    cap_denominator: int = Field(default=100, gt=0)

    confirmation_timeout_secs: float = Field(default=180.0, gt=0)
    receipt_poll_secs: float = Field(default=0.5, gt=0)
    rpc_timeout_secs: float = Field(default=30.0, gt=0)
    rpc_retries: int = Field(default=3, ge=1)
    rpc_retry_backoff_secs: float = Field(default=0.4, ge=0)

    gas_mode: str = "auto"  # auto | legacy | 1559
    gas_price_wei: int = Field(default=0, ge=0)  # forces gasPrice when > 0
    priority_fee_gwei: float = Field(default=1.5, ge=0)
    max_fee_multiplier: float = Field(default=2.0, gt=0)
    gas_limit_multiplier: float = Field(default=1.2, ge=1)

    faucet_mint: bool = False
    faucet_buffer_multiplier: int = Field(default=2, ge=1)

    buyer_private_key: Optional[SecretStr] = None
    deployer_private_key: Optional[SecretStr] = None

    @field_validator("rpc_urls", mode="before")
    @classmethod
    def _split_urls(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple)):
            v = [str(u).strip().rstrip("/") for u in v if str(u).strip()]
            if not v:
                raise ValueError("at least one RPC url is required")
        return v

    @field_validator("sale_address", "stable_address")
    @classmethod
    def _checksum(cls, v: str) -> str:
        if not Web3.is_address(v):
            raise ValueError(f"not an address: {v!r}")
        return Web3.to_checksum_address(v)

    @field_validator("gas_mode")
    @classmethod
    def _gas_mode(cls, v: str) -> str:
        v = v.lower()
        if v not in ("auto", "legacy", "1559"):
            raise ValueError("gas_mode must be auto, legacy or 1559")
        return v

    @model_validator(mode="after")
    def _cap_fraction(self) -> "BuyerConfig":
        if self.cap_numerator > self.cap_denominator:
            raise ValueError("cap_numerator must not exceed cap_denominator")
        return self


def _read_yaml(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping", details={"path": str(path)})
    return data


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for var, name in ENV_FIELDS.items():
        raw = environ.get(var)
        if raw is None or raw.strip() == "":
            continue
        values[name] = raw.strip()
    return values


def load_config(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> BuyerConfig:
    """Build a :class:`BuyerConfig` from YAML and environment.

    :param path: YAML file; defaults to ``$BUYER_CONFIG`` or ``./config.yaml``.
        A missing default file is fine, a missing explicit one is not.
    :param environ: mapping used instead of ``os.environ`` (tests).
    :raises ConfigError: when the file is unreadable or validation fails.
    """
    env = os.environ if environ is None else environ
    explicit = path or env.get("BUYER_CONFIG")
    config_path = Path(explicit or "config.yaml")

    values: Dict[str, Any] = {}
    if config_path.exists():
        try:
            values.update(_read_yaml(config_path))
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"cannot read {config_path}: {e}", cause=e) from e
    elif explicit:
        raise ConfigError(f"config file not found: {config_path}", details={"path": str(config_path)})

    values.update(_from_env(env))
    try:
        return BuyerConfig(**values)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}", details={"errors": e.errors()}, cause=e) from e
