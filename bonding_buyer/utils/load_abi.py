import json
from pathlib import Path

ABI_DIR = Path(__file__).resolve().parent.parent / "abis"

def _load_abi(name: str) -> list:
    path = ABI_DIR / name
    if not path.is_file():
        raise FileNotFoundError(f"ABI not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)

def load_sale_abi() -> list:
    return _load_abi("sale_abi.json")

def load_launch_token_abi() -> list:
    return _load_abi("launch_token_abi.json")

def load_stable_token_abi() -> list:
    # ERC20 + mint (mock USDT faucet)
    return _load_abi("stable_token_abi.json")
