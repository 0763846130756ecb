"""
Entire-balance sends: how much native value can leave a wallet once the
settlement cost (estimated gas * fee per gas) is reserved.
"""

from typing import NamedTuple, Optional

from loguru import logger

from autosend.config import SendPolicy
from autosend.errors import InsufficientFunds, QueryFailed
from autosend.fees import FeeOracle
from autosend.schema import FeeQuote


def sendable_amount(balance: int, reserved_cost: int) -> int:
    return balance - reserved_cost if balance > reserved_cost else 0


class Allocation(NamedTuple):
    amount: int
    gas: int
    fees: FeeQuote
    balance: int = 0

    @property
    def reserved_cost(self) -> int:
        return self.gas * self.fees.fee_per_gas


class BalanceAllocator:
    def __init__(self, oracle: FeeOracle, policy: Optional[SendPolicy] = None):
        self.oracle = oracle
        self.policy = policy or SendPolicy()

    async def allocate(self, sender: str, recipient: str) -> Allocation:
        """
        balance - estimatedGas * feePerGas, floored at zero.

        Gas falls back to policy.default_gas and the fee to zero when their
        reads fail. A zero result raises InsufficientFunds.
        """
        balance = await self.oracle.balance_of(sender)

        try:
            gas = await self.oracle.estimate_gas({"from": sender, "to": recipient, "value": 0})
        except Exception as e:
            logger.debug(f"{sender}: gas estimate failed ({e}); using {self.policy.default_gas}")
            gas = self.policy.default_gas

        try:
            fees = await self.oracle.current_fees()
        except QueryFailed as e:
            logger.debug(f"{sender}: {e}; reserving no fee")
            fees = FeeQuote()

        allocation = Allocation(amount=0, gas=gas, fees=fees, balance=balance)
        reserved_cost = allocation.reserved_cost
        amount = sendable_amount(balance, reserved_cost)
        if amount == 0:
            raise InsufficientFunds(balance, reserved_cost)
        logger.debug(f"{sender}: balance {balance}, reserved {reserved_cost}, sending {amount}")
        return allocation._replace(amount=amount)

    async def resolve_send_all_amount(self, sender: str, recipient: str) -> int:
        return (await self.allocate(sender, recipient)).amount
