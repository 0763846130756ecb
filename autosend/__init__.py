"""
autosend: batch native / token transfers against an EVM JSON-RPC endpoint.

Many signed transfers, one or many sender wallets, bounded concurrency,
automatic retry with nonce refresh and fee escalation.
"""

__version__ = "1.0.0"

from autosend.schema import (
    AssetKind,
    EntireBalance,
    FixedAmount,
    JobResult,
    JobState,
    Network,
    TransactionIntent,
    TransferJob,
)
from autosend.errors import AutoSendError, InsufficientFunds, QueryFailed, SendFailed
from autosend.config import SendPolicy, load_networks
from autosend.fees import FeeOracle
from autosend.sender import RetryableSender, classify_failure
from autosend.allocator import BalanceAllocator
from autosend.pool import DispatchPool, NullSink, ProgressSink
from autosend.wallet import SenderWallet

__all__ = [
    "__version__",
    "AssetKind",
    "EntireBalance",
    "FixedAmount",
    "JobResult",
    "JobState",
    "Network",
    "TransactionIntent",
    "TransferJob",
    "AutoSendError",
    "InsufficientFunds",
    "QueryFailed",
    "SendFailed",
    "SendPolicy",
    "load_networks",
    "FeeOracle",
    "RetryableSender",
    "classify_failure",
    "BalanceAllocator",
    "DispatchPool",
    "NullSink",
    "ProgressSink",
    "SenderWallet",
]
