"""
Sender wallet: a local keypair held in memory for one job.

Keys come from PRIVATE_KEY (env / .env) or from pk.txt lines via the job
builder. Nothing here writes a key anywhere.
"""

import os
from typing import Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount

from autosend.schema import TransactionIntent

ENV_PRIVATE_KEY = "PRIVATE_KEY"


def normalize_key(private_key: str) -> str:
    pk = private_key.strip()
    if pk.startswith("0x") or pk.startswith("0X"):
        pk = pk[2:]
    return pk


def key_from_env() -> str:
    """
    Single sender key from PRIVATE_KEY (env or .env, loaded by the CLI).
    Raises RuntimeError if it is not set.
    """
    pk_env = os.getenv(ENV_PRIVATE_KEY)
    if not pk_env or not pk_env.strip():
        raise RuntimeError(
            "PRIVATE_KEY not found in the environment or .env (never commit it). "
            "Use pk.txt (one key per line) instead, or set PRIVATE_KEY."
        )
    return pk_env.strip()


def address_for_key(private_key: str) -> str:
    return Account.from_key(normalize_key(private_key)).address


class SenderWallet:
    """Signing identity for one job. Drop it once the job's result is recorded."""

    def __init__(self, account: LocalAccount):
        self._account = account

    @property
    def address(self) -> str:
        return self._account.address

    @property
    def account(self) -> LocalAccount:
        return self._account

    def sign_intent(self, intent: TransactionIntent) -> bytes:
        """Sign a fully populated intent. Returns the raw transaction bytes."""
        signed = self._account.sign_transaction(intent.to_transaction())
        raw_tx = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
        if not raw_tx:
            raise RuntimeError("Signed transaction missing raw_transaction (check web3/eth-account version)")
        return bytes(raw_tx)

    @classmethod
    def from_key(cls, private_key: str) -> "SenderWallet":
        """Create wallet from raw private key (hex string, 0x optional)."""
        return cls(account=Account.from_key(normalize_key(private_key)))

    def __repr__(self) -> str:
        return f"SenderWallet({self.address})"
