import json

import pytest

from autosend.config import SendPolicy, clamp_concurrency, load_networks

POLICY_VARS = [
    "AUTOSEND_MAX_RETRIES",
    "AUTOSEND_BACKOFF_SECONDS",
    "AUTOSEND_GAS_HEADROOM",
    "AUTOSEND_DEFAULT_GAS",
    "AUTOSEND_FEE_BUMP_STEP",
    "AUTOSEND_RPC_TIMEOUT",
]


@pytest.fixture
def clean_env(monkeypatch):
    for var in POLICY_VARS + ["AUTOSEND_RPC_FILE"]:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


def test_policy_defaults(clean_env):
    policy = SendPolicy.from_env()

    assert policy.max_attempts == 5
    assert policy.gas_headroom == 10_000
    assert policy.default_gas == 21_000
    assert [policy.backoff_for(a) for a in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 4.0]
    assert [policy.bump_factor(a) for a in (1, 2, 3)] == [2, 3, 4]


def test_policy_from_env(clean_env):
    clean_env.setenv("AUTOSEND_MAX_RETRIES", "2")
    clean_env.setenv("AUTOSEND_BACKOFF_SECONDS", "0.25")
    clean_env.setenv("AUTOSEND_GAS_HEADROOM", " ")

    policy = SendPolicy.from_env()

    assert policy.max_retries == 2
    assert policy.backoff_seconds == 0.25
    assert policy.gas_headroom == 10_000


@pytest.mark.parametrize("var, value", [("AUTOSEND_MAX_RETRIES", "many"), ("AUTOSEND_FEE_BUMP_STEP", "0")])
def test_policy_rejects_bad_values(clean_env, var, value):
    clean_env.setenv(var, value)
    with pytest.raises(ValueError, match="AUTOSEND_"):
        SendPolicy.from_env()


@pytest.mark.parametrize("value, expected", [(None, 4), (0, 4), (1, 1), (7, 7), (50, 50), (51, 50), (500, 50), (-3, 1)])
def test_clamp_concurrency(value, expected):
    assert clamp_concurrency(value) == expected


def _write(path, payload):
    path.write_text(payload if isinstance(payload, str) else json.dumps(payload), encoding="utf-8")
    return str(path)


def test_load_networks(tmp_path, clean_env):
    path = _write(
        tmp_path / "rpc.json",
        [
            {"name": "BSC", "endpoint": "https://bsc.example", "chainId": 56},
            {"name": "Base", "endpoint": "https://base.example", "chainId": 8453},
        ],
    )

    networks = load_networks(path)

    assert [(n.name, n.chain_id) for n in networks] == [("BSC", 56), ("Base", 8453)]


def test_rpc_file_from_env(tmp_path, clean_env):
    path = _write(tmp_path / "nets.json", [{"name": "X", "endpoint": "http://x", "chainId": 1}])
    clean_env.setenv("AUTOSEND_RPC_FILE", path)

    assert load_networks()[0].endpoint == "http://x"


def test_missing_rpc_file(tmp_path, clean_env):
    with pytest.raises(FileNotFoundError):
        load_networks(str(tmp_path / "rpc.json"))


@pytest.mark.parametrize(
    "payload",
    ["{not json", [], {"name": "X"}, [{"name": "X", "endpoint": "http://x"}]],
)
def test_malformed_rpc_file(tmp_path, clean_env, payload):
    path = _write(tmp_path / "rpc.json", payload)
    with pytest.raises(ValueError):
        load_networks(path)
