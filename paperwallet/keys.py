"""
Paper Wallet - Key Generation

Fresh secp256k1 key pairs from the system CSPRNG, exported as WIF and
compressed public key hex.
"""

import logging
import secrets

from bip_utils import Secp256k1PrivateKey, WifEncoder
from bip_utils.utils.crypto import Hash160

from .errors import KeyGenerationError
from .wallet_types import KeyMaterial, Network

log = logging.getLogger(__name__)

SECRET_SIZE = 32


def mask_secret(secret: str, visible_prefix: int = 4, visible_suffix: int = 4) -> str:
    """Mask a secret for safe logging. NEVER log full secrets/WIFs."""
    if not secret or len(secret) <= visible_prefix + visible_suffix:
        return "***"
    return f"{secret[:visible_prefix]}...{secret[-visible_suffix:]}"


def hash160_hex(public_hex: str) -> str:
    """HASH160 (RIPEMD160 of SHA256) of a hex public key, as hex."""
    return Hash160.QuickDigest(bytes.fromhex(public_hex)).hex()


class KeyGenerator:
    """
    Generates one key pair per call.

    Usage:
        gen = KeyGenerator()
        material = gen.generate(Network.TESTNET)
        material.secret  # "cT..." WIF
        material.public  # "02..." / "03..."
    """

    def _entropy(self) -> bytes:
        return secrets.token_bytes(SECRET_SIZE)

    def generate(self, network: Network) -> KeyMaterial:
        """
        Generate a random key pair for `network`.

        Raises:
            KeyGenerationError: random source failed or produced an invalid scalar
        """
        try:
            secret = self._entropy()
        except OSError as e:
            raise KeyGenerationError(f"Random source failed: {e}")
        return self.from_secret(secret, network)

    @staticmethod
    def from_secret(secret: bytes, network: Network) -> KeyMaterial:
        """
        Build key material from an explicit 32-byte secret.

        Args:
            secret: private key scalar, big endian
            network: selects the WIF version byte

        Returns:
            KeyMaterial with compressed WIF and compressed public key hex
        """
        try:
            priv = Secp256k1PrivateKey.FromBytes(secret)
        except ValueError as e:
            raise KeyGenerationError(f"Invalid private key: {e}")

        public = priv.PublicKey().RawCompressed().ToHex()
        wif = WifEncoder.Encode(priv, net_ver=network.wif_version)
        log.debug(f"Generated key {public} (wif {mask_secret(wif)})")
        return KeyMaterial(secret=wif, public=public)
