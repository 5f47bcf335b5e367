import pytest

from gfsbox.linear_analysis import analyze
from gfsbox.sbox_math import sbox_math


@pytest.fixture(scope="session")
def aes_sbox():
    return list(sbox_math.AES_SBOX)


@pytest.fixture(scope="session")
def identity_sbox():
    return list(range(256))


@pytest.fixture(scope="session")
def aes_analysis(aes_sbox):
    return analyze(aes_sbox)


@pytest.fixture(scope="session")
def identity_analysis(identity_sbox):
    return analyze(identity_sbox)
