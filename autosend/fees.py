"""
Remote reads the dispatch core needs: fee suggestions, nonces, balances,
gas estimates. Stateless; every failure surfaces as QueryFailed.
"""

from typing import Any, Dict

from loguru import logger
from web3 import AsyncWeb3

from autosend.errors import QueryFailed, describe_error
from autosend.schema import FeeQuote


class FeeOracle:
    """Query wrapper around one AsyncWeb3 connection (shared read-only by all jobs)."""

    def __init__(self, w3: AsyncWeb3):
        self.w3 = w3

    async def current_fees(self) -> FeeQuote:
        """
        Dynamic pair when the latest block carries a base fee
        (maxFee = 2 * baseFee + priorityFee), legacy gas price otherwise.

        If the dynamic pair cannot be read (e.g. no eth_maxPriorityFeePerGas
        on this endpoint) the legacy price is used. QueryFailed only when
        neither answers.
        """
        try:
            block = await self.w3.eth.get_block("latest")
            base_fee = block.get("baseFeePerGas")
            if base_fee is not None:
                priority = await self.w3.eth.max_priority_fee
                return FeeQuote(
                    max_fee_per_gas=int(base_fee) * 2 + int(priority),
                    max_priority_fee_per_gas=int(priority),
                )
        except Exception as e:
            logger.debug(f"Dynamic fee read failed ({describe_error(e)}); falling back to gas price")

        try:
            gas_price = await self.w3.eth.gas_price
        except Exception as e:
            raise QueryFailed("fee", e) from e
        return FeeQuote(gas_price=int(gas_price))

    async def next_sequence_number(self, address: str, block_identifier: str = "latest") -> int:
        """Transaction count for address; 'latest' = confirmed, 'pending' includes the mempool."""
        try:
            return int(await self.w3.eth.get_transaction_count(address, block_identifier))
        except Exception as e:
            raise QueryFailed("nonce", e) from e

    async def balance_of(self, address: str) -> int:
        try:
            return int(await self.w3.eth.get_balance(address))
        except Exception as e:
            raise QueryFailed("balance", e) from e

    async def estimate_gas(self, params: Dict[str, Any]) -> int:
        """
        Not wrapped in QueryFailed: a revert here is a real rejection the
        sender must classify, not a transport problem.
        """
        estimate = int(await self.w3.eth.estimate_gas(params))
        logger.debug(f"Gas estimate {estimate} for call to {params.get('to')}")
        return estimate
