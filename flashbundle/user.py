"""Searcher identity statistics returned by `flashbots_getUserStats`."""

from dataclasses import dataclass
from typing import Any, Dict

from .utils import decode_u256


@dataclass(frozen=True)
class UserStats:
    """Stats for the searcher identity that signed the request."""
    is_high_priority: bool
    all_time_validator_payments: int
    all_time_gas_simulated: int
    last_7d_validator_payments: int
    last_7d_gas_simulated: int
    last_1d_validator_payments: int
    last_1d_gas_simulated: int

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "UserStats":
        return UserStats(
            is_high_priority=bool(data["isHighPriority"]),
            all_time_validator_payments=decode_u256(data["allTimeValidatorPayments"]),
            all_time_gas_simulated=decode_u256(data["allTimeGasSimulated"]),
            last_7d_validator_payments=decode_u256(data["last7dValidatorPayments"]),
            last_7d_gas_simulated=decode_u256(data["last7dGasSimulated"]),
            last_1d_validator_payments=decode_u256(data["last1dValidatorPayments"]),
            last_1d_gas_simulated=decode_u256(data["last1dGasSimulated"]),
        )
