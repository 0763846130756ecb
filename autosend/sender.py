"""
Retrying submission of one TransactionIntent on behalf of one wallet.

Per attempt: populate unset fields → sign → submit. A rejection is
classified with FAILURE_TABLE (first matching class wins):

  sequence/pricing  re-quote fees and multiply by the bump factor, refresh
                    the nonce from the confirmed count, back off, retry
  transient         back off, retry
  anything else     fatal, stop

Backoff is linear (backoff_seconds * attempt). After max_retries retries
the sender gives up with SendFailed carrying the last error.

Before re-signing at a refreshed nonce, receipts of the job's earlier
submissions are checked: a broadcast that timed out but was mined anyway
is reported as the job's transaction instead of being sent a second time.
An earlier submission that is still only in some node's mempool cannot be
seen this way.

Intents with a spend_limit (entire-balance sends) get value re-derived as
spend_limit - gas * fee before every signature, so escalated fees come out
of the amount sent; InsufficientFunds once nothing is left.
"""

import asyncio
from typing import Awaitable, Callable, List, NamedTuple, Optional, Tuple

from loguru import logger
from web3 import AsyncWeb3, Web3
from web3.exceptions import TransactionNotFound

from autosend.allocator import sendable_amount
from autosend.config import SendPolicy
from autosend.errors import InsufficientFunds, QueryFailed, SendFailed, describe_error
from autosend.fees import FeeOracle
from autosend.schema import (
    Accepted,
    AttemptOutcome,
    FailureClass,
    FatalRejection,
    FeeQuote,
    RecoverableRejection,
    TransactionIntent,
)
from autosend.wallet import SenderWallet

FAILURE_TABLE: Tuple[Tuple[FailureClass, Tuple[str, ...]], ...] = (
    (
        FailureClass.SEQUENCE_PRICING,
        ("nonce too low", "sequence too low", "replacement transaction", "underpriced", "already known"),
    ),
    (
        FailureClass.TRANSIENT,
        ("timeout", "network", "rate limit", "failed"),
    ),
)

# Raised by the transport itself, often with an empty message.
TRANSPORT_ERRORS = (QueryFailed, asyncio.TimeoutError, ConnectionError, OSError)


def classify_failure(message: str) -> FailureClass:
    lowered = (message or "").lower()
    for failure_class, markers in FAILURE_TABLE:
        if any(marker in lowered for marker in markers):
            return failure_class
    return FailureClass.FATAL


def classify_exception(exc: BaseException) -> FailureClass:
    failure_class = classify_failure(describe_error(exc))
    if failure_class is FailureClass.FATAL and isinstance(exc, TRANSPORT_ERRORS):
        return FailureClass.TRANSIENT
    return failure_class


def _escalate(quoted: int, previous: Optional[int], factor: int) -> int:
    bumped = quoted * factor
    if previous is not None and bumped <= previous:
        # Quote dropped since the last round; never offer less than before.
        bumped = previous + 1
    return bumped


class SendReceipt(NamedTuple):
    tx_hash: str
    attempts: int


class RetryableSender:
    """Drives the attempt loop. One instance can serve many jobs concurrently."""

    def __init__(
        self,
        w3: AsyncWeb3,
        oracle: Optional[FeeOracle] = None,
        policy: Optional[SendPolicy] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.w3 = w3
        self.oracle = oracle or FeeOracle(w3)
        self.policy = policy or SendPolicy()
        self._sleep = sleep

    async def send(self, intent: TransactionIntent, wallet: SenderWallet) -> SendReceipt:
        """Returns on the first accepted submission; raises SendFailed otherwise."""
        attempt = 0
        attempts_made = 0
        last_error = "unknown"
        signed_hashes: List[str] = []
        while attempt <= self.policy.max_retries:
            attempts_made += 1
            outcome = await self._attempt(intent, wallet, signed_hashes)
            if isinstance(outcome, Accepted):
                return SendReceipt(outcome.tx_hash, attempts_made)

            last_error = outcome.message
            if isinstance(outcome, FatalRejection):
                logger.warning(f"{wallet.address}: fatal rejection, not retrying: {last_error}")
                break

            if outcome.reason is FailureClass.SEQUENCE_PRICING:
                included = await self._find_included(signed_hashes)
                if included:
                    logger.info(f"{wallet.address}: earlier submission {included} already mined ({last_error})")
                    return SendReceipt(included, attempts_made)

            attempt += 1
            if attempt > self.policy.max_retries:
                break
            if outcome.reason is FailureClass.SEQUENCE_PRICING:
                await self._remediate(intent, wallet.address, attempt)
            delay = self.policy.backoff_for(attempt)
            logger.warning(
                f"{wallet.address}: {outcome.reason.value} rejection on attempt {attempts_made} "
                f"({last_error}); retrying in {delay:.1f}s"
            )
            await self._sleep(delay)

        raise SendFailed(last_error, attempts_made)

    async def _attempt(
        self, intent: TransactionIntent, wallet: SenderWallet, signed_hashes: List[str]
    ) -> AttemptOutcome:
        try:
            await self._populate(intent, wallet.address)
            self._fit_to_spend_limit(intent)
            raw_tx = wallet.sign_intent(intent)
            signed_hashes.append(Web3.to_hex(Web3.keccak(raw_tx)))
            tx_hash = await self.w3.eth.send_raw_transaction(raw_tx)
        except Exception as e:
            message = describe_error(e)
            failure_class = classify_exception(e)
            if failure_class is FailureClass.FATAL:
                return FatalRejection(message=message)
            return RecoverableRejection(reason=failure_class, message=message)
        return Accepted(tx_hash=Web3.to_hex(tx_hash))

    async def _populate(self, intent: TransactionIntent, sender: str) -> None:
        """Fill whatever is still unset. Fields set by earlier rounds are kept."""
        if intent.chain_id is None:
            intent.chain_id = int(await self.w3.eth.chain_id)
        if not intent.has_fees:
            intent.apply_fees(await self.oracle.current_fees())
        if intent.nonce is None:
            intent.nonce = await self.oracle.next_sequence_number(sender, "pending")
        if intent.gas is None:
            estimate = await self.oracle.estimate_gas(intent.call_params(sender))
            intent.gas = estimate + self.policy.gas_headroom

    @staticmethod
    def _fit_to_spend_limit(intent: TransactionIntent) -> None:
        if intent.spend_limit is None:
            return
        cost = intent.settlement_cost
        value = sendable_amount(intent.spend_limit, cost)
        if value == 0:
            raise InsufficientFunds(intent.spend_limit, cost)
        intent.value = value

    async def _find_included(self, tx_hashes: List[str]) -> Optional[str]:
        """First of the job's signed submissions that already has a receipt."""
        for tx_hash in dict.fromkeys(tx_hashes):
            try:
                await self.w3.eth.get_transaction_receipt(tx_hash)
            except TransactionNotFound:
                continue
            except Exception as e:
                logger.debug(f"Receipt lookup for {tx_hash} failed: {describe_error(e)}")
                continue
            return tx_hash
        return None

    async def _remediate(self, intent: TransactionIntent, sender: str, attempt: int) -> None:
        factor = self.policy.bump_factor(attempt)
        previous = intent.current_fees()
        try:
            quote = await self.oracle.current_fees()
        except QueryFailed as e:
            logger.debug(f"{sender}: {e}; escalating from the intent's own fees")
            quote = previous

        if quote.is_dynamic:
            intent.max_priority_fee_per_gas = _escalate(
                quote.max_priority_fee_per_gas, previous.max_priority_fee_per_gas, factor
            )
            intent.max_fee_per_gas = _escalate(quote.max_fee_per_gas, previous.max_fee_per_gas, factor)
            intent.gas_price = None
        elif quote.gas_price is not None:
            intent.apply_fees(FeeQuote(gas_price=_escalate(quote.gas_price, previous.gas_price, factor)))

        try:
            intent.nonce = await self.oracle.next_sequence_number(sender, "latest")
        except QueryFailed as e:
            logger.debug(f"{sender}: {e}; keeping nonce {intent.nonce}")

        logger.debug(
            f"{sender}: fees x{factor} -> maxFee={intent.max_fee_per_gas} "
            f"priority={intent.max_priority_fee_per_gas} gasPrice={intent.gas_price} nonce={intent.nonce}"
        )
