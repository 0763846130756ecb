"""
Job-list producer: key/recipient files, amount parsing, send modes.

one-to-many  one key, one job per recipient, fixed amount
many-to-one  one job per key to a single recipient; fixed amount, or the
             whole balance (native: resolved at dispatch; token: balanceOf
             read here and frozen)
"""

from decimal import Decimal, InvalidOperation, localcontext
from pathlib import Path
from typing import List, Optional, Sequence, Union

from web3 import AsyncWeb3

from autosend.schema import AssetKind, EntireBalance, FixedAmount, TransferJob
from autosend.token import token_balance
from autosend.wallet import address_for_key

NATIVE_DECIMALS = 18

KEY_FILE = "pk.txt"
ADDRESS_FILE = "address.txt"


def read_lines(path: Union[str, Path]) -> List[str]:
    """Non-empty, stripped lines. A missing file reads as empty."""
    path = Path(path)
    if not path.exists():
        return []
    data = path.read_text(encoding="utf-8")
    return [line.strip() for line in data.splitlines() if line.strip()]


def parse_amount(text: str, decimals: int = NATIVE_DECIMALS) -> int:
    """'1.5' with 18 decimals -> 1500000000000000000. Rejects <= 0 and excess precision."""
    try:
        amount = Decimal(str(text).strip())
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {text!r}") from e
    if not amount.is_finite() or amount <= 0:
        raise ValueError(f"Amount must be a positive number, got {text!r}")
    with localcontext() as ctx:
        ctx.prec = 100
        units = amount.scaleb(decimals)
        if units != units.to_integral_value():
            raise ValueError(f"Amount {text!r} has more than {decimals} decimal places")
        return int(units)


def format_amount(units: int, decimals: int = NATIVE_DECIMALS) -> str:
    with localcontext() as ctx:
        ctx.prec = 100
        return format(Decimal(units).scaleb(-decimals).normalize(), "f")


def _job(
    key: str,
    recipient: str,
    amount: Union[FixedAmount, EntireBalance],
    token_address: Optional[str],
) -> TransferJob:
    return TransferJob(
        signing_key=key,
        recipient=recipient,
        asset=AssetKind.TOKEN if token_address else AssetKind.NATIVE,
        token_address=token_address,
        amount=amount,
        sender=address_for_key(key),
    )


def one_to_many(
    key: str,
    recipients: Sequence[str],
    amount: int,
    token_address: Optional[str] = None,
) -> List[TransferJob]:
    if not recipients:
        raise ValueError("No recipients (address.txt is empty?)")
    return [_job(key, to, FixedAmount(value=amount), token_address) for to in recipients]


def many_to_one(
    keys: Sequence[str],
    recipient: str,
    amount: Optional[int],
    token_address: Optional[str] = None,
) -> List[TransferJob]:
    """amount=None sends the entire native balance (not allowed for tokens)."""
    if not keys:
        raise ValueError("No sender keys (pk.txt is empty?)")
    if not recipient:
        raise ValueError("No recipient address")
    if amount is None:
        if token_address:
            raise ValueError("Use token_balance_jobs() for entire-balance token sends")
        whole = EntireBalance()
        return [_job(key, recipient, whole, None) for key in keys]
    return [_job(key, recipient, FixedAmount(value=amount), token_address) for key in keys]


async def token_balance_jobs(
    w3: AsyncWeb3,
    keys: Sequence[str],
    recipient: str,
    token_address: str,
) -> List[TransferJob]:
    """many-to-one with each sender's full token balance, read once before dispatch."""
    if not keys:
        raise ValueError("No sender keys (pk.txt is empty?)")
    jobs = []
    for key in keys:
        balance = await token_balance(w3, token_address, address_for_key(key))
        jobs.append(_job(key, recipient, FixedAmount(value=balance), token_address))
    return jobs
