"""
Paper Wallet

Generates descriptor-based bitcoin paper wallets offline.

Architecture:
  - The descriptor is a template: keys are replaced by aliases ("Alice")
  - One key pair is generated per distinct alias, the resolved descriptor
    gives the single address shared by all participants
  - Every participant gets a paper wallet showing their own WIF and the
    other participants' public keys, plus the redacted descriptor as QR

Usage:
    from paperwallet import process, Network

    # HTML page as data url, pasteable in a browser
    url = process("wsh(multi(2,Alice,Bob,Carol))", Network.TESTNET)

    # Or step by step
    run = PaperWalletProcess(Network.TESTNET)
    records = run.build("wpkh(Alice)")
    html = run.assemble(records)
"""

from .wallet_types import Address, AddressType, KeyMaterial, Network, WalletRecord
from .errors import (
    ErrorKind,
    PaperWalletError,
    TemplateParseError,
    AddressError,
    MissingMappedKeyError,
    MissingChecksumError,
    KeyGenerationError,
    QrError,
    NodeCheckError,
)
from .descriptor import PolicyTemplate, parse, to_display_string
from .keys import KeyGenerator
from .key_store import AliasKeyStore
from .translator import Resolver, translate
from .address import derive_address
from .legend import LegendBuilder, LegendView
from .process import PaperWalletProcess, ProcessState, process

__version__ = "0.1.0"
__all__ = [
    # Types
    "Address", "AddressType", "KeyMaterial", "Network", "WalletRecord",
    "PolicyTemplate",
    # Errors
    "ErrorKind", "PaperWalletError", "TemplateParseError", "AddressError",
    "MissingMappedKeyError", "MissingChecksumError", "KeyGenerationError",
    "QrError", "NodeCheckError",
    # Core
    "parse", "to_display_string", "KeyGenerator", "AliasKeyStore",
    "Resolver", "translate", "derive_address", "LegendBuilder", "LegendView",
    "PaperWalletProcess", "ProcessState", "process",
]
