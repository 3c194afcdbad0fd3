"""
Shared fixtures: deterministic key generation with well-known vectors.
"""

import pytest

from paperwallet.keys import KeyGenerator
from paperwallet.wallet_types import Network

# Public keys of private keys 1, 2, 3 (compressed)
PUB_1 = "0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798"
PUB_2 = "02c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
PUB_3 = "02f9308a019258c31049344f85f89d5229b531c845836f99b08601f113bce036f9"
HASH160_1 = "751e76e8199196d454941c45d1b3a323f1433bd6"
WIF_1_MAINNET = "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn"


class FixedKeyGenerator(KeyGenerator):
    """Hands out private keys 1, 2, 3, ... and counts generations."""

    def __init__(self, start: int = 1):
        self.next_key = start
        self.calls = 0

    def _entropy(self) -> bytes:
        self.calls += 1
        secret = self.next_key.to_bytes(32, "big")
        self.next_key += 1
        return secret


@pytest.fixture
def fixed_generator():
    return FixedKeyGenerator()


@pytest.fixture
def testnet():
    return Network.TESTNET


@pytest.fixture
def mainnet():
    return Network.BITCOIN
