"""
Paper Wallet - Alias Key Store

Alias -> KeyMaterial map for one run. Populated lazily during the key
generation pass, read-only once frozen.
"""

import logging
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import MissingMappedKeyError
from .keys import KeyGenerator
from .wallet_types import KeyMaterial, Network

log = logging.getLogger(__name__)


class AliasKeyStore:
    """
    One key pair per distinct alias.

    Usage:
        store = AliasKeyStore(Network.TESTNET)
        pub = store.get_or_create("Alice")   # generates
        pub == store.get_or_create("Alice")  # True, no new key
        store.freeze()
        for alias, material in store.items():
            ...
    """

    def __init__(self, network: Network, generator: Optional[KeyGenerator] = None):
        self.network = network
        self.generator = generator or KeyGenerator()
        self._keys: Dict[str, KeyMaterial] = {}
        self._frozen = False

    def get_or_create(self, alias: str) -> str:
        """
        Public key hex for `alias`, generating the pair on first sight.

        Raises:
            MissingMappedKeyError: alias unseen and the store is frozen
        """
        material = self._keys.get(alias)
        if material is None:
            if self._frozen:
                raise MissingMappedKeyError(alias)
            material = self.generator.generate(self.network)
            self._keys[alias] = material
            log.debug(f"Alias {alias} -> {material.public}")
        return material.public

    def get(self, alias: str) -> KeyMaterial:
        """Stored key material, MissingMappedKeyError if absent."""
        try:
            return self._keys[alias]
        except KeyError:
            raise MissingMappedKeyError(alias)

    def freeze(self):
        """End of the generation pass, no more keys afterwards."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def aliases(self) -> List[str]:
        """Aliases in first-sight order."""
        return list(self._keys)

    def items(self) -> Iterator[Tuple[str, KeyMaterial]]:
        return iter(list(self._keys.items()))

    def __contains__(self, alias: str) -> bool:
        return alias in self._keys

    def __len__(self) -> int:
        return len(self._keys)
