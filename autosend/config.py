"""
Runtime configuration: tunable send policy, network list, .env loading.

Values come from the environment. A .env file in the working directory is
loaded first without overriding variables that are already set.
"""

import json
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from autosend.schema import Network

DEFAULT_RPC_FILE = "rpc.json"
ENV_RPC_FILE = "AUTOSEND_RPC_FILE"

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 50
DEFAULT_CONCURRENCY = 4


def load_dotenv_file(path: Optional[Path] = None) -> bool:
    """Load .env from cwd (or path). Existing env vars win."""
    return load_dotenv(path or Path.cwd() / ".env", override=False)


class SendPolicy(BaseModel):
    """Retry, backoff, fee escalation and gas constants for one dispatch cycle."""

    max_retries: int = Field(4, ge=0, description="Retries after the first attempt")
    backoff_seconds: float = Field(1.0, ge=0, description="Linear backoff unit: wait = unit * attempt")
    gas_headroom: int = Field(10_000, ge=0, description="Units added to every gas estimate")
    default_gas: int = Field(21_000, gt=0, description="Fallback gas units when estimation fails")
    fee_bump_step: int = Field(1, ge=1, description="Escalation factor is 1 + step * attempt")
    request_timeout: float = Field(30.0, gt=0, description="HTTP provider timeout (seconds)")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def bump_factor(self, attempt: int) -> int:
        return 1 + self.fee_bump_step * attempt

    def backoff_for(self, attempt: int) -> float:
        return self.backoff_seconds * attempt

    @classmethod
    def from_env(cls) -> "SendPolicy":
        """Build from AUTOSEND_* variables; unset ones keep their defaults."""
        env_map = {
            "max_retries": "AUTOSEND_MAX_RETRIES",
            "backoff_seconds": "AUTOSEND_BACKOFF_SECONDS",
            "gas_headroom": "AUTOSEND_GAS_HEADROOM",
            "default_gas": "AUTOSEND_DEFAULT_GAS",
            "fee_bump_step": "AUTOSEND_FEE_BUMP_STEP",
            "request_timeout": "AUTOSEND_RPC_TIMEOUT",
        }
        values = {}
        for field_name, var in env_map.items():
            raw = (os.getenv(var) or "").strip()
            if raw:
                values[field_name] = raw
        try:
            return cls(**values)
        except ValidationError as e:
            raise ValueError(f"Invalid AUTOSEND_* setting: {e}") from e


def clamp_concurrency(value: Optional[int]) -> int:
    """Coerce operator input into [1, 50]; empty or zero means the default."""
    if not value:
        return DEFAULT_CONCURRENCY
    return max(MIN_CONCURRENCY, min(MAX_CONCURRENCY, int(value)))


def rpc_file_path(path: Optional[str] = None) -> Path:
    return Path(path or os.getenv(ENV_RPC_FILE) or Path.cwd() / DEFAULT_RPC_FILE)


def load_networks(path: Optional[str] = None) -> List[Network]:
    """
    Read the endpoint list: a JSON array of {name, endpoint, chainId}.

    Raises FileNotFoundError / ValueError so the CLI can stop before any
    job is built.
    """
    rpc_path = rpc_file_path(path)
    if not rpc_path.exists():
        raise FileNotFoundError(
            f"{rpc_path} not found. Create it with an array of objects {{ name, endpoint, chainId }}"
        )
    try:
        data = json.loads(rpc_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{rpc_path} is not valid JSON: {e}") from e
    if not isinstance(data, list) or not data:
        raise ValueError(f"{rpc_path} must contain a non-empty list of networks")
    networks = []
    for i, entry in enumerate(data):
        try:
            networks.append(Network.model_validate(entry))
        except ValidationError as e:
            raise ValueError(f"{rpc_path} entry {i}: {e}") from e
    return networks
