"""
Paper Wallet - Legend Builder

For every alias, builds the owner's view of the key map (own WIF, everyone
else's public key), re-translates the alias template with it and assembles
the WalletRecord printed on that owner's paper wallet.
"""

import logging
from typing import Callable, Dict, List, Optional

from .descriptor import PolicyTemplate, split_checksum, to_display_string
from .errors import MissingMappedKeyError
from .key_store import AliasKeyStore
from .keys import hash160_hex, mask_secret
from .translator import Resolver, translate
from .wallet_types import Address, KeyMaterial, WalletRecord

log = logging.getLogger(__name__)


class LegendView:
    """
    Alias -> display string, as seen by `owner`.

    The owner's entry is its WIF, all other entries are public keys. With
    owner=None every entry is public.
    """

    def __init__(self, owner: Optional[str], keys: Dict[str, KeyMaterial]):
        self.owner = owner
        self.keys = keys

    @classmethod
    def for_owner(cls, owner: str, store: AliasKeyStore) -> "LegendView":
        return cls(owner, dict(store.items()))

    @classmethod
    def public_only(cls, store: AliasKeyStore) -> "LegendView":
        return cls(None, dict(store.items()))

    def material(self, alias: str) -> KeyMaterial:
        try:
            return self.keys[alias]
        except KeyError:
            raise MissingMappedKeyError(alias)

    def value(self, alias: str) -> str:
        material = self.material(alias)
        if alias == self.owner:
            return material.secret
        return material.public

    def rows(self) -> List[str]:
        """Rows formatted as "alias: value", in key order."""
        return [f"{alias}: {self.value(alias)}" for alias in self.keys]

    def masked(self) -> Dict[str, str]:
        """Loggable form of the view."""
        return {
            alias: mask_secret(self.value(alias)) if alias == self.owner else self.value(alias)
            for alias in self.keys
        }


class LegendResolver(Resolver):
    """
    Redaction pass: plain positions show the view's entry, hashed positions
    the HASH160 of the entry's public key (the owner's included).
    """

    def __init__(self, view: LegendView):
        self.view = view

    def plain(self, alias: str) -> str:
        return self.view.value(alias)

    def hashed(self, alias: str) -> str:
        return hash160_hex(self.view.material(alias).public)


class LegendBuilder:
    """
    Builds one WalletRecord per alias.

    Usage:
        builder = LegendBuilder()
        records = builder.build(store, address, template)
    """

    def __init__(self, serializer: Callable[[PolicyTemplate], str] = to_display_string):
        """
        Args:
            serializer: template -> "<descriptor>#<checksum>"
        """
        self.serializer = serializer

    def redact(self, template: PolicyTemplate, view: LegendView) -> str:
        """Serialized template as seen through `view`, with checksum."""
        return self.serializer(translate(template, LegendResolver(view)))

    def build(self, store: AliasKeyStore, address: Address,
              template: PolicyTemplate) -> List[WalletRecord]:
        """
        Create data for every single paper wallet.

        Args:
            store: populated key store, read only here
            address: shared address derived from the resolved template
            template: unresolved alias template

        Returns:
            WalletRecords in store order, empty when the template has no aliases

        Raises:
            MissingMappedKeyError: template alias absent from the store
            MissingChecksumError: serializer output without "#checksum"
        """
        address_string = address.value
        address_qr = address.qr_form()
        descriptor_alias = str(template)

        records = []
        for alias in store.aliases():
            view = LegendView.for_owner(alias, store)
            log.debug(f"legend for {alias}: {view.masked()}")

            descriptor_qr = self.redact(template, view)
            _, checksum = split_checksum(descriptor_qr)

            records.append(WalletRecord(
                alias=alias,
                address=address_string,
                address_qr=address_qr,
                descriptor_alias=f"{descriptor_alias}#{checksum}",
                legend_rows=tuple(view.rows()),
                descriptor_qr=descriptor_qr,
            ))

        return records
