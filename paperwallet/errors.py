"""
Paper Wallet - Errors

Every failure of a run surfaces as a PaperWalletError. None of them are
retried: the pipeline aborts in the state it was in and the caller reports
the error.
"""

from enum import Enum


class ErrorKind(Enum):
    """Failure categories"""
    TEMPLATE_PARSE = "template_parse"
    ADDRESS = "address"
    MISSING_MAPPED_KEY = "missing_mapped_key"
    MISSING_CHECKSUM = "missing_checksum"
    KEY_GENERATION = "key_generation"
    QR = "qr"
    NODE_CHECK = "node_check"


class PaperWalletError(Exception):
    """Base class, carries the error kind."""
    kind = None

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TemplateParseError(PaperWalletError):
    """Malformed descriptor template."""
    kind = ErrorKind.TEMPLATE_PARSE


class AddressError(PaperWalletError):
    """Resolved template does not produce an address."""
    kind = ErrorKind.ADDRESS


class MissingMappedKeyError(PaperWalletError):
    """An alias in the template has no entry in the key map."""
    kind = ErrorKind.MISSING_MAPPED_KEY

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"Missing mapped key for alias {alias}")


class MissingChecksumError(PaperWalletError):
    """Serialized descriptor lacks its checksum suffix."""
    kind = ErrorKind.MISSING_CHECKSUM

    def __init__(self, message: str = "Missing checksum"):
        super().__init__(message)


class KeyGenerationError(PaperWalletError):
    """Random source failed or produced an invalid key."""
    kind = ErrorKind.KEY_GENERATION


class QrError(PaperWalletError):
    """Data does not fit in a QR code."""
    kind = ErrorKind.QR


class NodeCheckError(PaperWalletError):
    """Node cross-check failed or disagreed with the local result."""
    kind = ErrorKind.NODE_CHECK

    def __init__(self, message: str, code: int = -1):
        self.code = code
        super().__init__(message)
