import pytest

from autosend.config import SendPolicy

from fakes import FakeWeb3, SleepRecorder


@pytest.fixture
def w3():
    return FakeWeb3()


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def policy():
    return SendPolicy()
