"""
Bounded-concurrency dispatch of TransferJob lists.

`concurrency` worker coroutines pull jobs off one queue in submission
order; a worker takes the next job as soon as its current one finishes.
Every job produces exactly one JobResult, whatever happens to it or to
its siblings, and run() returns only after all of them are in.

Per job: pending → (amount_resolving) → submitting → succeeded | failed.
amount_resolving only happens for entire-balance native jobs.
"""

import asyncio
from typing import List, Optional, Protocol, Sequence, Tuple

from loguru import logger
from web3 import AsyncWeb3, Web3

from autosend.allocator import BalanceAllocator
from autosend.config import MAX_CONCURRENCY, MIN_CONCURRENCY, SendPolicy
from autosend.errors import SendFailed, describe_error
from autosend.fees import FeeOracle
from autosend.schema import AssetKind, JobResult, JobState, TransactionIntent, TransferJob
from autosend.sender import RetryableSender
from autosend.token import encode_transfer
from autosend.wallet import SenderWallet


class ProgressSink(Protocol):
    """Receives job state changes. Called from the event loop thread only."""

    def transition(self, index: int, job: TransferJob, state: JobState) -> None: ...

    def finished(self, result: JobResult) -> None: ...


class NullSink:
    def transition(self, index: int, job: TransferJob, state: JobState) -> None:
        pass

    def finished(self, result: JobResult) -> None:
        pass


class DispatchPool:
    def __init__(
        self,
        w3: AsyncWeb3,
        chain_id: int,
        policy: Optional[SendPolicy] = None,
        sink: Optional[ProgressSink] = None,
        sender: Optional[RetryableSender] = None,
        allocator: Optional[BalanceAllocator] = None,
    ):
        self.w3 = w3
        self.chain_id = chain_id
        self.policy = policy or SendPolicy()
        self.sink = sink or NullSink()
        oracle = FeeOracle(w3)
        self.sender = sender or RetryableSender(w3, oracle, self.policy)
        self.allocator = allocator or BalanceAllocator(oracle, self.policy)

    async def run(self, jobs: Sequence[TransferJob], concurrency: int) -> List[JobResult]:
        """
        Dispatch all jobs with at most `concurrency` in flight.

        Results come back in completion order; JobResult.index points at the
        job's position in `jobs`.
        """
        if not MIN_CONCURRENCY <= concurrency <= MAX_CONCURRENCY:
            raise ValueError(f"concurrency must be in [{MIN_CONCURRENCY}, {MAX_CONCURRENCY}], got {concurrency}")

        queue: "asyncio.Queue[Tuple[int, TransferJob]]" = asyncio.Queue()
        for index, job in enumerate(jobs):
            queue.put_nowait((index, job))
        results: List[JobResult] = []
        total = len(jobs)

        async def worker() -> None:
            while True:
                try:
                    index, job = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                result = await self._run_job(index, job)
                results.append(result)
                status = "OK" if result.ok else "FAILED"
                logger.info(f"[{len(results)}/{total}] {status} {result.sender} -> {result.recipient}")
                self._notify_finished(result)

        workers = [asyncio.create_task(worker()) for _ in range(min(concurrency, total))]
        await asyncio.gather(*workers)
        return results

    async def _run_job(self, index: int, job: TransferJob) -> JobResult:
        """Never raises: every failure becomes this job's JobResult."""
        sender = job.sender or ""
        try:
            wallet = SenderWallet.from_key(job.signing_key.get_secret_value())
            sender = wallet.address
            intent = await self._build_intent(index, job, wallet)
            self._notify_transition(index, job, JobState.SUBMITTING)
            receipt = await self.sender.send(intent, wallet)
        except SendFailed as e:
            result = JobResult(
                index=index, sender=sender, recipient=job.recipient, ok=False, error=str(e), attempts=e.attempts
            )
        except Exception as e:
            result = JobResult(index=index, sender=sender, recipient=job.recipient, ok=False, error=describe_error(e))
        else:
            result = JobResult(
                index=index,
                sender=sender,
                recipient=job.recipient,
                ok=True,
                tx_hash=receipt.tx_hash,
                attempts=receipt.attempts,
            )
        self._notify_transition(index, job, JobState.SUCCEEDED if result.ok else JobState.FAILED)
        return result

    async def _build_intent(self, index: int, job: TransferJob, wallet: SenderWallet) -> TransactionIntent:
        recipient = Web3.to_checksum_address(job.recipient)
        intent = TransactionIntent(to=recipient, chain_id=self.chain_id)

        if job.sends_entire_balance:
            self._notify_transition(index, job, JobState.AMOUNT_RESOLVING)
            allocation = await self.allocator.allocate(wallet.address, recipient)
            intent.value = allocation.amount
            # Pin what the reservation assumed so value + gas * fee fits the balance;
            # the sender shrinks value as it escalates fees.
            intent.spend_limit = allocation.balance
            intent.gas = allocation.gas
            if allocation.fees.fee_per_gas:
                intent.apply_fees(allocation.fees)
        elif job.asset is AssetKind.TOKEN:
            intent.to = Web3.to_checksum_address(job.token_address)
            intent.data = encode_transfer(recipient, job.amount.value)
        else:
            intent.value = job.amount.value
        return intent

    def _notify_transition(self, index: int, job: TransferJob, state: JobState) -> None:
        try:
            self.sink.transition(index, job, state)
        except Exception as e:
            logger.warning(f"Progress sink failed on {state.value}: {e}")

    def _notify_finished(self, result: JobResult) -> None:
        try:
            self.sink.finished(result)
        except Exception as e:
            logger.warning(f"Progress sink failed on result #{result.index}: {e}")
