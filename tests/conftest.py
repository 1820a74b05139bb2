"""
Pytest configuration and fixtures for bonding_buyer tests.

``FakeChain`` stands in for ``Web3Service``: same method surface, in-memory
ledger, flat-price curve (the test deployment uses SLOPE = 0). Reverts are
raised as ``ContractCustomError`` carrying the real selectors and timeouts as
``TimeExhausted``, exactly what web3.py raises.
"""

import os

os.environ["LOG_DIR"] = ""  # no log files from the test run

import threading
import time
from collections import Counter

import pytest
from web3.exceptions import ContractCustomError, TimeExhausted

from bonding_buyer.orchestrators.purchase_orchestrator import PurchaseOrchestrator
from bonding_buyer.services.allowance_service import AllowanceManager
from bonding_buyer.services.price_oracle_service import PriceOracleClient
from bonding_buyer.services.revert_decoder import RevertDecoder
from bonding_buyer.services.sale_cap_service import SaleCapTracker
from bonding_buyer.services.simulation_service import TransactionSimulator
from bonding_buyer.utils.config import BuyerConfig
from bonding_buyer.utils.web3_utils import MAX_UINT256, ZERO_ADDRESS

BUYER = "0x" + "b1" * 20
DEPLOYER = "0x" + "de" * 20
SALE = "0x" + "5a" * 20
STABLE = "0x" + "57" * 20
LAUNCH = "0x" + "1a" * 20
POOL = "0x" + "9e" * 20

ZERO_AMOUNT = "0xb12d13eb"
USDT_TRANSFER_FAILED = "0x4bedbe89"
MAX_SUPPLY_REACHED = "0xcf479181"


def revert(data: str) -> ContractCustomError:
    return ContractCustomError(data, data=data)


class FakeChain:
    def __init__(
        self,
        max_supply: int = 1_000_000,
        cap_numerator: int = 30,
        cap_denominator: int = 100,
        price_num: int = 1,
        price_den: int = 1,
        buyer_funds: int = 10**30,
        decimals: int = 18,
    ) -> None:
        self.buyer_address = BUYER
        self.deployer_address = DEPLOYER
        self.sale_address = SALE
        self.stable_address = STABLE

        self.max_supply_value = max_supply
        self.cap_numerator = cap_numerator
        self.cap_denominator = cap_denominator
        self.price_num = price_num
        self.price_den = price_den
        self.decimals = decimals

        self.minted = 0
        self.pool = ZERO_ADDRESS
        self.stable_balances = {BUYER.lower(): buyer_funds}
        self.token_balances = {}
        self.allowances = {}

        self.sent = []
        self.receipts = {}
        self.calls = Counter()
        self.fail_reads = set()
        self.fail_sends = set()
        self.forced_revert = None
        self.build_revert = None
        self.confirm_timeout = False
        self.before_send = None
        self.read_delay = 0.0
        self._lock = threading.Lock()

    # ---------- helpers ----------
    @property
    def cap(self) -> int:
        return self.max_supply_value * self.cap_numerator // self.cap_denominator

    def _read(self, name: str) -> None:
        self.calls[name] += 1
        if name in self.fail_reads:
            raise ConnectionError(f"{name}: node unreachable")

    def ops(self, op: str) -> list:
        return [tx for tx in self.sent if tx["op"] == op]

    def set_allowance(self, owner: str, spender: str, amount: int) -> None:
        self.allowances[(owner.lower(), spender.lower())] = amount

    # ---------- sale ----------
    def launch_token_address(self) -> str:
        self._read("launch_token_address")
        return LAUNCH

    def raydium_pool(self) -> str:
        self._read("raydium_pool")
        return self.pool

    def get_usdt_to_pay(self, token_quantity: int) -> int:
        self._read("get_usdt_to_pay")
        return token_quantity * self.price_num // self.price_den

    def get_amount(self, payment_cost: int) -> int:
        self._read("get_amount")
        return payment_cost * self.price_den // self.price_num

    def _check_buy(self, sender: str, cost: int) -> int:
        if self.forced_revert:
            raise revert(self.forced_revert)
        if cost == 0:
            raise revert(ZERO_AMOUNT)
        allowed = self.allowances.get((sender.lower(), SALE.lower()), 0)
        if allowed < cost or self.stable_balances.get(sender.lower(), 0) < cost:
            raise revert(USDT_TRANSFER_FAILED)
        tokens = cost * self.price_den // self.price_num
        if self.minted + tokens > self.cap:
            raise revert(MAX_SUPPLY_REACHED)
        return tokens

    def simulate_buy(self, payment_cost: int) -> None:
        self._read("simulate_buy")
        self._check_buy(BUYER, payment_cost)

    # ---------- launch token ----------
    def max_supply(self) -> int:
        self._read("max_supply")
        return self.max_supply_value

    def sale_minted(self) -> int:
        self._read("sale_minted")
        return self.minted

    def launch_balance_of(self, address: str) -> int:
        self._read("launch_balance_of")
        return self.token_balances.get(address.lower(), 0)

    def launch_decimals(self) -> int:
        self._read("launch_decimals")
        return self.decimals

    # ---------- stable token ----------
    def stable_decimals(self) -> int:
        self._read("stable_decimals")
        return self.decimals

    def stable_balance_of(self, address: str) -> int:
        self._read("stable_balance_of")
        return self.stable_balances.get(address.lower(), 0)

    def allowance(self, owner: str, spender: str) -> int:
        self._read("allowance")
        if self.read_delay:
            time.sleep(self.read_delay)
        return self.allowances.get((owner.lower(), spender.lower()), 0)

    # ---------- transactions ----------
    def build_approve(self, owner: str, spender: str, amount: int) -> dict:
        return {"from": owner, "op": "approve", "spender": spender, "amount": amount}

    def build_buy(self, payment_cost: int) -> dict:
        if self.build_revert:
            raise revert(self.build_revert)
        return {"from": BUYER, "op": "buy", "cost": payment_cost}

    def build_mint(self, to: str, amount: int) -> dict:
        return {"from": DEPLOYER, "op": "mint", "to": to, "amount": amount}

    def sign_and_send(self, tx: dict) -> str:
        if tx["op"] in self.fail_sends:
            raise ValueError(f"{tx['op']}: nonce too low")
        if self.before_send:
            self.before_send(self, tx)
        with self._lock:
            self.sent.append(tx)
            tx_hash = "0x%064x" % len(self.sent)
        status = 1
        try:
            self._apply(tx)
        except ContractCustomError:
            status = 0
        self.receipts[tx_hash] = {"status": status, "transactionHash": tx_hash, "gasUsed": 50_000}
        return tx_hash

    def wait_for_receipt(self, tx_hash: str, timeout=None) -> dict:
        if self.confirm_timeout:
            raise TimeExhausted(f"Transaction {tx_hash} is not in the chain after {timeout} seconds")
        return self.receipts[tx_hash]

    def _apply(self, tx: dict) -> None:
        if tx["op"] == "approve":
            self.set_allowance(tx["from"], tx["spender"], tx["amount"])
        elif tx["op"] == "mint":
            key = tx["to"].lower()
            self.stable_balances[key] = self.stable_balances.get(key, 0) + tx["amount"]
        elif tx["op"] == "buy":
            cost = tx["cost"]
            tokens = self._check_buy(tx["from"], cost)
            buyer = tx["from"].lower()
            self.stable_balances[buyer] -= cost
            self.stable_balances[SALE.lower()] = self.stable_balances.get(SALE.lower(), 0) + cost
            key = (buyer, SALE.lower())
            if self.allowances[key] != MAX_UINT256:
                self.allowances[key] -= cost
            self.minted += tokens
            self.token_balances[buyer] = self.token_balances.get(buyer, 0) + tokens
            if self.minted == self.cap:
                self.pool = POOL


def make_orchestrator(chain: FakeChain) -> PurchaseOrchestrator:
    decoder = RevertDecoder()
    return PurchaseOrchestrator(
        w3s=chain,
        oracle=PriceOracleClient(chain),
        allowance=AllowanceManager(chain, confirmation_timeout_secs=5),
        simulator=TransactionSimulator(chain, decoder),
        cap_tracker=SaleCapTracker(chain, chain.cap_numerator, chain.cap_denominator),
        decoder=decoder,
        confirmation_timeout_secs=5,
    )


@pytest.fixture
def chain():
    return FakeChain()


@pytest.fixture
def orchestrator(chain):
    return make_orchestrator(chain)


@pytest.fixture
def config():
    return BuyerConfig(sale_address=SALE, stable_address=STABLE, confirmation_timeout_secs=5)
