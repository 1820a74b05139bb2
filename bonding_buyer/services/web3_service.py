from __future__ import annotations
from typing import Any, Callable, Dict, List, Optional
from time import sleep

from web3 import Web3
from web3.contract import Contract
from web3.middleware import ExtraDataToPOAMiddleware
from web3.types import TxReceipt
from eth_account import Account
from eth_account.signers.local import LocalAccount
from pydantic import SecretStr
from web3.exceptions import ContractLogicError

from bonding_buyer.exceptions import ConfigError
from bonding_buyer.utils.config import BuyerConfig
from bonding_buyer.utils.logger import logger_manager, log_function
from bonding_buyer.utils.load_abi import load_launch_token_abi, load_sale_abi, load_stable_token_abi

logger = logger_manager.setup_logger(__name__)


class Web3Service:
    """Single gateway to the ledger: sale contract, launch token and stable token."""

    def __init__(self, config: BuyerConfig) -> None:
        self.config = config
        # RPC list with failover
        self._rpc_urls: List[str] = list(config.rpc_urls)
        self._current_rpc_idx = -1
        self._connect_first_ok()

        self._accounts: Dict[str, LocalAccount] = {}
        self._buyer = self._add_account(config.buyer_private_key)
        self._deployer = self._add_account(config.deployer_private_key)

        self.sale_address = self.checksum(config.sale_address)
        self.stable_address = self.checksum(config.stable_address)
        self._sale_abi = load_sale_abi()
        self._launch_abi = load_launch_token_abi()
        self._stable_abi = load_stable_token_abi()
        self._launch_addr: Optional[str] = None

        self._gas_mode = self._detect_gas_mode()
        try:
            chain = self._w3.eth.chain_id
        except Exception:
            chain = "?"
        logger.debug(f"Connected to {self._active_rpc}; chain_id={chain}; gas_mode={self._gas_mode}")

    # ---------- connection / failover ----------
    def _connect(self, url: str) -> Web3:
        w3 = Web3(Web3.HTTPProvider(url, request_kwargs={"timeout": self.config.rpc_timeout_secs}))
        # PoA-style extra data (Neon/BSC); harmless elsewhere
        w3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
        if not w3.is_connected():
            raise ConnectionError(f"Node not reachable: {url}")
        return w3

    def _connect_first_ok(self) -> None:
        last_err: Optional[Exception] = None
        for idx, url in enumerate(self._rpc_urls):
            try:
                self._w3 = self._connect(url)
                self._current_rpc_idx = idx
                self._active_rpc = url
                return
            except Exception as e:
                last_err = e
                logger.warning(f"RPC failed {url}: {e}")
        raise last_err or ConnectionError("No RPC available.")

    def _rotate_and_reconnect(self) -> None:
        if not self._rpc_urls:
            raise ConnectionError("No RPCs configured.")
        self._current_rpc_idx = (self._current_rpc_idx + 1) % len(self._rpc_urls)
        url = self._rpc_urls[self._current_rpc_idx]
        logger.info(f"Switching to RPC: {url}")
        self._w3 = self._connect(url)
        self._active_rpc = url

    def _rpc_call(self, label: str, fn: Callable[[], Any], retries: Optional[int] = None) -> Any:
        """
        Run an RPC call with retries and provider failover.
        Contract reverts are deterministic and propagate on the first try.
        """
        retries = self.config.rpc_retries if retries is None else retries
        last_exc: Optional[Exception] = None
        for attempt in range(1, retries + 1):
            try:
                return fn()
            except ContractLogicError:
                raise
            except Exception as e:
                last_exc = e
                logger.warning(f"[RPC:{label}] attempt {attempt}/{retries} failed: {e}")
                if attempt == retries:
                    break
                try:
                    self._rotate_and_reconnect()
                except Exception as e2:
                    logger.warning(f"[RPC:{label}] failed to rotate RPC: {e2}")
                sleep(self.config.rpc_retry_backoff_secs * attempt)
        raise last_exc if last_exc else RuntimeError(f"RPC '{label}' failed without exception.")

    # ---------- accounts ----------
    def _add_account(self, key: Optional[SecretStr]) -> Optional[LocalAccount]:
        if key is None or not key.get_secret_value():
            return None
        acct: LocalAccount = Account.from_key(key.get_secret_value())
        self._accounts[acct.address.lower()] = acct
        return acct

    @property
    def buyer_address(self) -> str:
        if not self._buyer:
            raise ConfigError("PRIVATE_KEY_BUYER is not configured.")
        return self._buyer.address

    @property
    def deployer_address(self) -> str:
        if not self._deployer:
            raise ConfigError("PRIVATE_KEY_DEPLOYER is not configured.")
        return self._deployer.address

    def account_for(self, address: str) -> LocalAccount:
        acct = self._accounts.get(address.lower())
        if acct is None:
            raise ConfigError(f"No signing key for {address}.")
        return acct

    # ---------- util ----------
    def checksum(self, address: str) -> str:
        return Web3.to_checksum_address(address)

    def _sale(self) -> Contract:
        return self._w3.eth.contract(address=self.sale_address, abi=self._sale_abi)

    def _stable(self) -> Contract:
        return self._w3.eth.contract(address=self.stable_address, abi=self._stable_abi)

    def _launch(self) -> Contract:
        return self._w3.eth.contract(address=self.launch_token_address(), abi=self._launch_abi)

    # ---------- sale reads ----------
    def launch_token_address(self) -> str:
        if self._launch_addr is None:
            addr = self._rpc_call("sale.launchToken", lambda: self._sale().functions.launchToken().call())
            self._launch_addr = self.checksum(addr)
        return self._launch_addr

    def raydium_pool(self) -> str:
        return str(self._rpc_call("sale.raydiumPool", lambda: self._sale().functions.raydiumPool().call()))

    def get_usdt_to_pay(self, token_quantity: int) -> int:
        return int(self._rpc_call(
            "sale.getUsdtToPay",
            lambda: self._sale().functions.getUsdtToPay(int(token_quantity)).call()
        ))

    def get_amount(self, payment_cost: int) -> int:
        return int(self._rpc_call(
            "sale.getAmount",
            lambda: self._sale().functions.getAmount(int(payment_cost)).call()
        ))

    def simulate_buy(self, payment_cost: int) -> None:
        """eth_call of buyFromBondingCurve from the buyer. Raises ContractLogicError on revert."""
        sender = self.buyer_address
        self._rpc_call(
            "sale.buyFromBondingCurve.call",
            lambda: self._sale().functions.buyFromBondingCurve(int(payment_cost)).call({"from": sender})
        )

    # ---------- launch token reads ----------
    def max_supply(self) -> int:
        return int(self._rpc_call("launch.maxSupply", lambda: self._launch().functions.maxSupply().call()))

    def sale_minted(self) -> int:
        return int(self._rpc_call("launch.saleMinted", lambda: self._launch().functions.saleMinted().call()))

    def launch_balance_of(self, address: str) -> int:
        addr = self.checksum(address)
        return int(self._rpc_call("launch.balanceOf", lambda: self._launch().functions.balanceOf(addr).call()))

    def launch_decimals(self) -> int:
        return int(self._rpc_call("launch.decimals", lambda: self._launch().functions.decimals().call()))

    # ---------- stable token reads ----------
    def stable_decimals(self) -> int:
        return int(self._rpc_call("stable.decimals", lambda: self._stable().functions.decimals().call()))

    def stable_balance_of(self, address: str) -> int:
        addr = self.checksum(address)
        return int(self._rpc_call("stable.balanceOf", lambda: self._stable().functions.balanceOf(addr).call()))

    def allowance(self, owner: str, spender: str) -> int:
        o, s = self.checksum(owner), self.checksum(spender)
        return int(self._rpc_call("stable.allowance", lambda: self._stable().functions.allowance(o, s).call()))

    # ---------- gas detection ----------
    def _detect_gas_mode(self) -> str:
        # manual override
        if self.config.gas_mode in ("legacy", "1559"):
            return self.config.gas_mode

        # AUTO: look for baseFeePerGas
        try:
            latest = self._rpc_call("get_block_latest", lambda: self._w3.eth.get_block("latest"))
            if latest.get("baseFeePerGas", None) is not None:
                return "1559"
        except Exception as e:
            logger.debug(f"gas mode detection fell back to legacy: {e}")
        return "legacy"

    def _legacy_gas_price(self) -> int | None:
        if self.config.gas_price_wei > 0:
            return self.config.gas_price_wei
        try:
            return int(self._rpc_call("gas_price", lambda: self._w3.eth.gas_price))
        except Exception:
            return None

    def _apply_gas_fields(self, tx: dict) -> dict:
        """
        Apply **only** the fields of the active mode and drop the others to avoid
        'both gasPrice and (maxFeePerGas or maxPriorityFeePerGas) specified'
        """
        tx.pop("gasPrice", None)
        tx.pop("maxFeePerGas", None)
        tx.pop("maxPriorityFeePerGas", None)
        tx.pop("accessList", None)

        if self._gas_mode == "1559":
            tx["type"] = 2
            try:
                latest = self._rpc_call("get_block_latest", lambda: self._w3.eth.get_block("latest"))
                base_fee = int(latest.get("baseFeePerGas") or self._rpc_call("gas_price", lambda: self._w3.eth.gas_price))
            except Exception:
                base_fee = int(self._rpc_call("gas_price", lambda: self._w3.eth.gas_price))
            try:
                priority = int(self._rpc_call("max_priority_fee", lambda: self._w3.eth.max_priority_fee))
            except Exception:
                priority = int(Web3.to_wei(self.config.priority_fee_gwei, "gwei"))
            tx["maxPriorityFeePerGas"] = priority
            tx["maxFeePerGas"] = int(base_fee * self.config.max_fee_multiplier + priority)
        else:
            tx["type"] = 0
            gas_price = self._legacy_gas_price()
            if gas_price:
                tx["gasPrice"] = int(gas_price)

        return tx

    # ---------- builders ----------
    def _build_tx(self, label: str, func: Any, sender: str) -> dict:
        sender = self.checksum(sender)
        self.account_for(sender)  # fail early without a key
        # gas=0 keeps build_transaction from estimating; estimated below once fees are set
        tx = func.build_transaction({
            "from": sender,
            "gas": 0,
            "nonce": self._rpc_call("get_transaction_count", lambda: self._w3.eth.get_transaction_count(sender)),
            "chainId": self._rpc_call("chain_id", lambda: self._w3.eth.chain_id),
        })
        tx.pop("gas", None)
        tx = self._apply_gas_fields(tx)

        estimated_gas = int(self._rpc_call(f"estimate_gas_{label}", lambda: self._w3.eth.estimate_gas(tx)))
        tx["gas"] = int(estimated_gas * self.config.gas_limit_multiplier)
        return tx

    @log_function
    def build_approve(self, owner: str, spender: str, amount: int) -> dict:
        func = self._stable().functions.approve(self.checksum(spender), int(amount))
        return self._build_tx("approve", func, owner)

    @log_function
    def build_buy(self, payment_cost: int) -> dict:
        func = self._sale().functions.buyFromBondingCurve(int(payment_cost))
        return self._build_tx("buy", func, self.buyer_address)

    @log_function
    def build_mint(self, to: str, amount: int) -> dict:
        func = self._stable().functions.mint(self.checksum(to), int(amount))
        return self._build_tx("mint", func, self.deployer_address)

    # ---------- send / receipts ----------
    @log_function
    def sign_and_send(self, tx: dict) -> str:
        """Sign with the key matching tx['from'] and broadcast once. Never retried."""
        acct = self.account_for(tx["from"])
        signed = acct.sign_transaction(tx)
        tx_hash = self._rpc_call("send_raw_tx", lambda: self._w3.eth.send_raw_transaction(signed.raw_transaction), retries=1)
        return Web3.to_hex(tx_hash)

    def wait_for_receipt(self, tx_hash: str, timeout: Optional[float] = None) -> TxReceipt:
        """Block until mined. Raises web3.exceptions.TimeExhausted after ``timeout``."""
        return self._w3.eth.wait_for_transaction_receipt(
            tx_hash,
            timeout=timeout or self.config.confirmation_timeout_secs,
            poll_latency=self.config.receipt_poll_secs,
        )
