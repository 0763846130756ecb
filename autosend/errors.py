"""
Failure conditions raised by the dispatch core.

All of them stop at the single-job boundary in DispatchPool and become a
JobResult with ok=False; none abort the batch.
"""


class AutoSendError(Exception):
    """Base for every error the core raises on purpose."""


class QueryFailed(AutoSendError):
    """A read against the remote endpoint failed. Callers fall back or retry."""

    def __init__(self, what: str, cause: BaseException):
        self.what = what
        self.cause = cause
        super().__init__(f"{what} query failed: {describe_error(cause)}")


class InsufficientFunds(AutoSendError):
    """Balance does not cover settlement cost for an entire-balance send."""

    def __init__(self, balance: int, reserved_cost: int):
        self.balance = balance
        self.reserved_cost = reserved_cost
        super().__init__(
            f"insufficient funds for gas: balance {balance} wei, settlement cost {reserved_cost} wei"
        )


class SendFailed(AutoSendError):
    """Retry budget exhausted or the endpoint rejected the transaction for good."""

    def __init__(self, last_error: str, attempts: int):
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"send failed after {attempts} attempt(s): {last_error}")


def describe_error(exc: BaseException) -> str:
    """Message used for classification and reports; falls back to the class name."""
    return str(exc).strip() or type(exc).__name__
