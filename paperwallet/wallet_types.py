"""
Paper Wallet - Data Types

Networks, key material, addresses and the per-owner wallet records handed
to the page renderer.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Tuple
import json


# ═══════════════════════════════════════════════════════════════════════════════
# NETWORKS
# ═══════════════════════════════════════════════════════════════════════════════

NETWORKS = {
    "bitcoin": {
        "name": "Bitcoin",
        "wif": b"\x80",
        "p2pkh": b"\x00",
        "p2sh": b"\x05",
        "hrp": "bc",
    },
    "testnet": {
        "name": "Testnet",
        "wif": b"\xef",
        "p2pkh": b"\x6f",
        "p2sh": b"\xc4",
        "hrp": "tb",
    },
    "signet": {
        "name": "Signet",
        "wif": b"\xef",
        "p2pkh": b"\x6f",
        "p2sh": b"\xc4",
        "hrp": "tb",
    },
    "regtest": {
        "name": "Regtest",
        "wif": b"\xef",
        "p2pkh": b"\x6f",
        "p2sh": b"\xc4",
        "hrp": "bcrt",
    },
}


class Network(Enum):
    """Bitcoin network a paper wallet is generated for"""
    BITCOIN = "bitcoin"
    TESTNET = "testnet"
    SIGNET = "signet"
    REGTEST = "regtest"

    @property
    def params(self) -> dict:
        return NETWORKS[self.value]

    @property
    def wif_version(self) -> bytes:
        return self.params["wif"]

    @property
    def p2pkh_version(self) -> bytes:
        return self.params["p2pkh"]

    @property
    def p2sh_version(self) -> bytes:
        return self.params["p2sh"]

    @property
    def hrp(self) -> str:
        return self.params["hrp"]


# ═══════════════════════════════════════════════════════════════════════════════
# KEYS AND ADDRESSES
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class KeyMaterial:
    """
    One generated key pair.

      - secret: private key in compressed WIF for the network
      - public: compressed SEC public key, 66 hex chars
    """
    secret: str
    public: str

    def __repr__(self) -> str:
        # WIF stays out of reprs and tracebacks
        return f"KeyMaterial(public={self.public!r})"


class AddressType(Enum):
    """Address (output script) type"""
    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2WPKH = "p2wpkh"
    P2WSH = "p2wsh"

    @property
    def is_witness(self) -> bool:
        return self in (AddressType.P2WPKH, AddressType.P2WSH)


@dataclass(frozen=True)
class Address:
    """Derived on-chain address"""
    value: str
    address_type: AddressType
    network: Network

    def __str__(self) -> str:
        return self.value

    def qr_form(self) -> str:
        """Uppercase bech32 fits the QR alphanumeric mode, smaller and more legible."""
        if self.address_type.is_witness:
            return self.value.upper()
        return self.value


# ═══════════════════════════════════════════════════════════════════════════════
# WALLET RECORD
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WalletRecord:
    """
    Everything printed on one paper wallet.

    Structure:
      - alias: owner of this paper wallet, shown in the public part
      - address: shared address of the wallet
      - address_qr: address as encoded in the public QR
      - descriptor_alias: alias template with the checksum of descriptor_qr
      - legend_rows: "alias: key" rows, the owner's row holds the WIF
      - descriptor_qr: redacted descriptor (owner's WIF, others' public keys)
    """
    alias: str
    address: str
    address_qr: str
    descriptor_alias: str
    legend_rows: Tuple[str, ...] = ()
    descriptor_qr: str = ""

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "alias": self.alias,
            "address": self.address,
            "address_qr": self.address_qr,
            "descriptor_alias": self.descriptor_alias,
            "legend_rows": list(self.legend_rows),
            "descriptor_qr": self.descriptor_qr,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WalletRecord":
        """Create WalletRecord from dictionary."""
        return cls(
            alias=data["alias"],
            address=data["address"],
            address_qr=data.get("address_qr", data["address"]),
            descriptor_alias=data["descriptor_alias"],
            legend_rows=tuple(data.get("legend_rows", [])),
            descriptor_qr=data.get("descriptor_qr", ""),
        )

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=2)
