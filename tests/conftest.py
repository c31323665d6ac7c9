import random

import pytest

from zkrec.circuits import Factorization
from zkrec.groth16 import prove, setup


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture(scope="session")
def key():
    return setup(Factorization(), random.Random(7))


@pytest.fixture(scope="session")
def pk(key):
    return key.get_pk()


@pytest.fixture(scope="session")
def vk(key):
    return key.get_vk()


@pytest.fixture(scope="session")
def proof(pk):
    # p = 17, q = 23, N = 391
    return prove(Factorization(), Factorization.assign(17, 23), pk, random.Random(8))
