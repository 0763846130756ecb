import pytest

from autosend import jobs
from autosend.jobs import format_amount, many_to_one, one_to_many, parse_amount, read_lines, token_balance_jobs
from autosend.schema import AssetKind, EntireBalance, FixedAmount

from fakes import OTHER_RECIPIENT, RECIPIENT, TOKEN, address_of, make_key


@pytest.mark.parametrize(
    "text, decimals, expected",
    [
        ("1", 18, 10**18),
        ("0.01", 18, 10**16),
        (" 1.5 ", 18, 1_500_000_000_000_000_000),
        ("2.5", 6, 2_500_000),
        ("123456789.123456789123456789", 18, 123456789123456789123456789),
    ],
)
def test_parse_amount(text, decimals, expected):
    assert parse_amount(text, decimals) == expected


@pytest.mark.parametrize("text", ["0", "-1", "abc", "", "NaN", "Infinity", "0.0000001"])
def test_parse_amount_rejects(text):
    with pytest.raises(ValueError):
        parse_amount(text, 6)


def test_format_amount():
    assert format_amount(1_500_000_000_000_000_000) == "1.5"
    assert format_amount(10**19) == "10"
    assert format_amount(2_500_000, 6) == "2.5"


def test_read_lines_skips_blanks(tmp_path):
    path = tmp_path / "address.txt"
    path.write_text(f"{RECIPIENT}\n\n  {OTHER_RECIPIENT}  \n", encoding="utf-8")

    assert read_lines(path) == [RECIPIENT, OTHER_RECIPIENT]


def test_missing_file_reads_empty(tmp_path):
    assert read_lines(tmp_path / "nope.txt") == []


def test_one_to_many_native():
    key = make_key(1)

    built = one_to_many(key, [RECIPIENT, OTHER_RECIPIENT], 1_000)

    assert [j.recipient for j in built] == [RECIPIENT, OTHER_RECIPIENT]
    assert all(j.sender == address_of(key) for j in built)
    assert all(j.asset is AssetKind.NATIVE and j.amount == FixedAmount(value=1_000) for j in built)


def test_one_to_many_token():
    built = one_to_many(make_key(1), [RECIPIENT], 5, TOKEN)

    assert built[0].asset is AssetKind.TOKEN
    assert built[0].token_address == TOKEN


def test_one_to_many_needs_recipients():
    with pytest.raises(ValueError):
        one_to_many(make_key(1), [], 1)


def test_many_to_one_entire_balance():
    keys = [make_key(1), make_key(2)]

    built = many_to_one(keys, RECIPIENT, None)

    assert [j.sender for j in built] == [address_of(k) for k in keys]
    assert all(isinstance(j.amount, EntireBalance) for j in built)


def test_many_to_one_entire_token_balance_needs_reads():
    with pytest.raises(ValueError):
        many_to_one([make_key(1)], RECIPIENT, None, TOKEN)


def test_many_to_one_needs_keys():
    with pytest.raises(ValueError):
        many_to_one([], RECIPIENT, 1)


def test_key_without_prefix_is_accepted():
    key = make_key(3)[2:]
    [job] = many_to_one([key], RECIPIENT, 7)
    assert job.sender == address_of("0x" + key)


@pytest.mark.asyncio
async def test_token_balance_jobs_freeze_each_balance(monkeypatch):
    keys = [make_key(1), make_key(2)]
    balances = {address_of(keys[0]): 100, address_of(keys[1]): 0}

    async def fake_balance(w3, token_address, holder):
        assert token_address == TOKEN
        return balances[holder]

    monkeypatch.setattr(jobs, "token_balance", fake_balance)

    built = await token_balance_jobs(None, keys, RECIPIENT, TOKEN)

    assert [j.amount.value for j in built] == [100, 0]
    assert all(j.asset is AssetKind.TOKEN for j in built)
