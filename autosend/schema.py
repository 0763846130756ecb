"""
Job, intent and result schema for the batch sender.

Contract: a producer builds TransferJob items → DispatchPool resolves each
job's amount, builds a TransactionIntent and hands it to RetryableSender →
one JobResult comes back per job.
"""

from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr, model_validator


class Network(BaseModel):
    """One entry of rpc.json: a remote endpoint the operator can pick."""

    name: str = Field(..., description="Friendly name shown in menus")
    endpoint: str = Field(..., description="JSON-RPC URL")
    chain_id: int = Field(..., alias="chainId", description="EIP-155 chain id")

    model_config = ConfigDict(populate_by_name=True)


class AssetKind(str, Enum):
    NATIVE = "native"
    TOKEN = "token"


class FixedAmount(BaseModel):
    """Amount already expressed in the asset's smallest unit."""

    kind: Literal["fixed"] = "fixed"
    value: int = Field(..., ge=0)


class EntireBalance(BaseModel):
    """Send whatever is left after reserving settlement cost (native only)."""

    kind: Literal["entire_balance"] = "entire_balance"


AmountSpec = Annotated[Union[FixedAmount, EntireBalance], Field(discriminator="kind")]


class TransferJob(BaseModel):
    """One unit of work. Built once before dispatch, read-only afterwards."""

    signing_key: SecretStr = Field(..., description="Sender private key; masked in repr/str")
    recipient: str = Field(..., description="Destination address (0x...)")
    asset: AssetKind = AssetKind.NATIVE
    token_address: Optional[str] = Field(None, description="Token contract for AssetKind.TOKEN")
    amount: AmountSpec
    sender: Optional[str] = Field(None, description="Sender address, if the producer already derived it")

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_asset(self) -> "TransferJob":
        if self.asset is AssetKind.TOKEN:
            if not self.token_address:
                raise ValueError("token transfer requires token_address")
            if isinstance(self.amount, EntireBalance):
                raise ValueError("entire-balance amounts are only valid for native transfers")
        return self

    @property
    def sends_entire_balance(self) -> bool:
        return isinstance(self.amount, EntireBalance)


class FeeQuote(BaseModel):
    """Fee suggestion: either the dynamic pair or a single legacy price."""

    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None

    @property
    def is_dynamic(self) -> bool:
        return self.max_fee_per_gas is not None and self.max_priority_fee_per_gas is not None

    @property
    def fee_per_gas(self) -> int:
        """Highest price per gas unit this quote can charge (0 if empty)."""
        if self.is_dynamic:
            return self.max_fee_per_gas
        return self.gas_price or 0


class TransactionIntent(BaseModel):
    """
    Mutable working state for one job's attempt sequence.

    RetryableSender fills unset fields and escalates fees / refreshes the
    nonce in place between attempts. Never shared across jobs.
    """

    to: str
    value: int = 0
    data: Optional[bytes] = None
    gas: Optional[int] = None
    max_fee_per_gas: Optional[int] = None
    max_priority_fee_per_gas: Optional[int] = None
    gas_price: Optional[int] = None
    nonce: Optional[int] = None
    chain_id: Optional[int] = None
    # Entire-balance sends: value is re-derived as balance - gas * fee before every signature.
    spend_limit: Optional[int] = None

    @property
    def uses_dynamic_fees(self) -> bool:
        return self.max_fee_per_gas is not None and self.max_priority_fee_per_gas is not None

    @property
    def has_fees(self) -> bool:
        return self.uses_dynamic_fees or self.gas_price is not None

    def apply_fees(self, quote: FeeQuote) -> None:
        if quote.is_dynamic:
            self.max_fee_per_gas = quote.max_fee_per_gas
            self.max_priority_fee_per_gas = quote.max_priority_fee_per_gas
            self.gas_price = None
        else:
            self.gas_price = quote.gas_price
            self.max_fee_per_gas = None
            self.max_priority_fee_per_gas = None

    @property
    def settlement_cost(self) -> int:
        return (self.gas or 0) * self.current_fees().fee_per_gas

    def current_fees(self) -> FeeQuote:
        return FeeQuote(
            max_fee_per_gas=self.max_fee_per_gas,
            max_priority_fee_per_gas=self.max_priority_fee_per_gas,
            gas_price=self.gas_price,
        )

    def call_params(self, sender: str) -> Dict[str, Any]:
        """Fields for eth_estimateGas."""
        params: Dict[str, Any] = {"from": sender, "to": self.to, "value": self.value}
        if self.data:
            params["data"] = self.data
        return params

    def to_transaction(self) -> Dict[str, Any]:
        """Fully populated dict for eth_account signing."""
        tx: Dict[str, Any] = {
            "to": self.to,
            "value": self.value,
            "gas": self.gas,
            "nonce": self.nonce,
            "chainId": self.chain_id,
            "data": self.data or b"",
        }
        if self.uses_dynamic_fees:
            tx["maxFeePerGas"] = self.max_fee_per_gas
            tx["maxPriorityFeePerGas"] = self.max_priority_fee_per_gas
        else:
            tx["gasPrice"] = self.gas_price
        return tx


class FailureClass(str, Enum):
    SEQUENCE_PRICING = "sequence_pricing"
    TRANSIENT = "transient"
    FATAL = "fatal"


class Accepted(BaseModel):
    tx_hash: str


class RecoverableRejection(BaseModel):
    reason: FailureClass
    message: str


class FatalRejection(BaseModel):
    message: str


AttemptOutcome = Union[Accepted, RecoverableRejection, FatalRejection]


class JobState(str, Enum):
    PENDING = "pending"
    AMOUNT_RESOLVING = "amount_resolving"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class JobResult(BaseModel):
    """Outcome of one TransferJob. Exactly one per job after a dispatch cycle."""

    index: int = Field(..., description="Position of the job in the submitted list")
    sender: str = Field(..., description="Sender address, or empty if the key was unusable")
    recipient: str
    ok: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None
    attempts: int = Field(0, description="Submission attempts made (0 if never submitted)")
