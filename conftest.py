import pytest

from cifra import algo
from cifra.algo import Direction
from cifra.service import CryptService
from cifra.settings import Settings


@pytest.fixture(scope="session")
def key_pair():
    # 2048 bits keeps key generation fast; block sizes are 245 / 256
    return algo.generate_key_pair(2048)


@pytest.fixture(scope="session")
def other_key_pair():
    return algo.generate_key_pair(2048)


@pytest.fixture(scope="session")
def public_key(key_pair):
    return algo.load_key(key_pair.public_pem, Direction.ENCRYPT)


@pytest.fixture(scope="session")
def private_key(key_pair):
    return algo.load_key(key_pair.private_pem, Direction.DECRYPT)


@pytest.fixture
def settings():
    return Settings(_env_file=None, max_concurrent_jobs=4, default_modulus_bits=2048)


@pytest.fixture
def service(settings):
    return CryptService(settings)
