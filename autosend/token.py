"""
ERC-20 / BEP-20 helpers: transfer calldata, one-off metadata and balance reads.
"""

from typing import NamedTuple

from eth_abi import encode
from loguru import logger
from web3 import AsyncWeb3, Web3

# keccak("transfer(address,uint256)")[:4]
TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")

DEFAULT_DECIMALS = 18

ERC20_ABI = [
    {
        "constant": True,
        "inputs": [],
        "name": "decimals",
        "outputs": [{"name": "", "type": "uint8"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [{"name": "account", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "value", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
]


class TokenInfo(NamedTuple):
    address: str
    decimals: int
    symbol: str


def encode_transfer(recipient: str, amount: int) -> bytes:
    """Calldata for transfer(recipient, amount)."""
    return TRANSFER_SELECTOR + encode(
        ["address", "uint256"], [Web3.to_checksum_address(recipient), amount]
    )


def _contract(w3: AsyncWeb3, token_address: str):
    return w3.eth.contract(address=Web3.to_checksum_address(token_address), abi=ERC20_ABI)


async def read_token_info(w3: AsyncWeb3, token_address: str) -> TokenInfo:
    """decimals() and symbol(); defaults to 18 / '' if the contract does not answer."""
    address = Web3.to_checksum_address(token_address)
    contract = _contract(w3, address)
    try:
        decimals = int(await contract.functions.decimals().call())
        symbol = str(await contract.functions.symbol().call())
    except Exception as e:
        logger.warning(f"Could not read decimals/symbol of {address} ({e}); defaulting to {DEFAULT_DECIMALS}")
        return TokenInfo(address, DEFAULT_DECIMALS, "")
    return TokenInfo(address, decimals, symbol)


async def token_balance(w3: AsyncWeb3, token_address: str, holder: str) -> int:
    contract = _contract(w3, token_address)
    return int(await contract.functions.balanceOf(Web3.to_checksum_address(holder)).call())
