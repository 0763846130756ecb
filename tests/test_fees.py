import pytest

from autosend.errors import QueryFailed
from autosend.fees import FeeOracle

from fakes import address_of, make_key

SENDER = address_of(make_key(1))


@pytest.fixture
def oracle(w3):
    return FeeOracle(w3)


@pytest.mark.asyncio
async def test_dynamic_quote_from_base_fee(oracle):
    quote = await oracle.current_fees()

    assert quote.is_dynamic
    assert quote.max_fee_per_gas == 2 * 10 + 2
    assert quote.max_priority_fee_per_gas == 2
    assert quote.fee_per_gas == 22


@pytest.mark.asyncio
async def test_legacy_quote_without_base_fee(w3, oracle):
    w3.eth.base_fee = None

    quote = await oracle.current_fees()

    assert not quote.is_dynamic
    assert quote.gas_price == 5
    assert quote.fee_per_gas == 5


@pytest.mark.asyncio
async def test_fee_read_failure_is_query_failed(w3, oracle):
    w3.eth.fee_error = ConnectionError("connection refused")

    with pytest.raises(QueryFailed) as excinfo:
        await oracle.current_fees()

    assert excinfo.value.what == "fee"
    assert "connection refused" in str(excinfo.value)


@pytest.mark.asyncio
async def test_sequence_number_latest_and_pending(w3, oracle):
    w3.eth.nonces[SENDER] = 9
    w3.eth.pending_offset = 2

    assert await oracle.next_sequence_number(SENDER) == 9
    assert await oracle.next_sequence_number(SENDER, "pending") == 11
    assert w3.eth.nonce_queries == ["latest", "pending"]


@pytest.mark.asyncio
async def test_sequence_number_failure_is_query_failed(w3, oracle):
    w3.eth.nonce_error = TimeoutError()

    with pytest.raises(QueryFailed) as excinfo:
        await oracle.next_sequence_number(SENDER)

    assert str(excinfo.value) == "nonce query failed: TimeoutError"


@pytest.mark.asyncio
async def test_balance(w3, oracle):
    w3.eth.balances[SENDER] = 12345
    assert await oracle.balance_of(SENDER) == 12345


@pytest.mark.asyncio
async def test_estimate_revert_is_not_wrapped(w3, oracle):
    w3.eth.estimate_error = ValueError("execution reverted")

    with pytest.raises(ValueError, match="execution reverted"):
        await oracle.estimate_gas({"from": SENDER, "to": SENDER, "value": 0})


@pytest.mark.asyncio
async def test_missing_priority_fee_method_falls_back_to_gas_price(w3, oracle):
    w3.eth.priority_error = ValueError("{'code': -32601, 'message': 'the method eth_maxPriorityFeePerGas does not exist'}")

    quote = await oracle.current_fees()

    assert not quote.is_dynamic
    assert quote.gas_price == 5


@pytest.mark.asyncio
async def test_block_read_failure_falls_back_to_gas_price(w3, oracle):
    async def broken(block_identifier):
        raise ConnectionError("block unavailable")

    w3.eth.get_block = broken

    assert (await oracle.current_fees()).gas_price == 5
