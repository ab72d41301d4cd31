"""
Native unit <-> wei conversion.

Amounts are floats in native units above the chain boundary and integer wei
below it. Conversion goes through Decimal(str(x)) so 0.1 MON is exactly
10**17 wei, not the nearest binary float.
"""
from decimal import Decimal

from web3 import Web3


def to_wei(amount: float) -> int:
    if amount < 0:
        raise ValueError(f"Negative amount: {amount}")
    return int(Web3.to_wei(Decimal(str(amount)), "ether"))


def from_wei(amount_wei: int) -> float:
    return float(Web3.from_wei(amount_wei, "ether"))
