"""
Domain enums (minimal set used for clarity in services).
"""

from enum import Enum


class PaymentPhase(str, Enum):
    ORACLE = "oracle"
    WITHDRAW = "withdraw"
    TRANSFER = "transfer"
    SWEEP = "sweep"
    BURN = "burn"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (PaymentPhase.DONE, PaymentPhase.ERROR)


class DiscoveryChannel(str, Enum):
    PROXIMITY = "proximity"
    OPTICAL = "optical"


class YieldBackend(str, Enum):
    MOCK = "mock"
    CONTRACT = "contract"
