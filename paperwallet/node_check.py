"""
Paper Wallet - Node Cross-Check

Optional second opinion from a Bitcoin Core node: the node recomputes the
descriptor checksum and derives the address, both must match ours.
Paper wallets are usually made offline, so this only runs when an RPC url
is configured.
"""

import logging
from typing import Any, List

import requests

from .descriptor import split_checksum
from .errors import MissingChecksumError, NodeCheckError
from .wallet_types import Address

log = logging.getLogger(__name__)


class RPCClient:
    """
    JSON-RPC client for bitcoind.

    Usage:
        rpc = RPCClient("http://127.0.0.1:18332", "user", "pass")
        info = rpc.getdescriptorinfo("wpkh(02...)")
    """

    def __init__(self, url: str = "http://127.0.0.1:18332",
                 user: str = "", password: str = "", timeout: int = 30):
        self.url = url
        self.auth = (user, password) if user else None
        self.timeout = timeout
        self._id = 0

    def _call(self, method: str, *params) -> Any:
        """
        One JSON-RPC request. bitcoind answers RPC errors with HTTP 500 and a
        JSON error object, and a bad login with HTTP 401 and no body.
        """
        self._id += 1
        body = {"jsonrpc": "1.0", "id": f"paper-wallet-{self._id}",
                "method": method, "params": list(params)}
        try:
            response = requests.post(self.url, json=body, auth=self.auth, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NodeCheckError(f"{method}: node unreachable at {self.url}: {e}")

        if response.status_code == 401:
            raise NodeCheckError(f"{method}: RPC authentication failed", 401)
        try:
            reply = response.json()
        except ValueError:
            raise NodeCheckError(f"{method}: HTTP {response.status_code} without JSON body",
                                 response.status_code)

        error = reply.get("error")
        if error:
            raise NodeCheckError(f"{method}: {error.get('message')}", error.get("code", -1))
        return reply.get("result")

    def getdescriptorinfo(self, descriptor: str) -> dict:
        """Analyse a descriptor (checksum, solvability)."""
        return self._call("getdescriptorinfo", descriptor)

    def deriveaddresses(self, descriptor: str) -> List[str]:
        """Addresses of a checksummed, non-ranged descriptor."""
        return self._call("deriveaddresses", descriptor)


class NodeVerifier:
    """Cross-checks the locally computed checksum and address."""

    def __init__(self, rpc: RPCClient):
        self.rpc = rpc

    def verify(self, descriptor: str, address: Address):
        """
        Args:
            descriptor: public descriptor with checksum ("wpkh(02..)#abcd1234")
            address: locally derived address

        Raises:
            NodeCheckError: node unreachable, rejects the descriptor, or disagrees
        """
        try:
            body, checksum = split_checksum(descriptor)
        except MissingChecksumError:
            raise NodeCheckError(f"Descriptor without checksum: {descriptor}")

        info = self.rpc.getdescriptorinfo(body)
        if info.get("checksum") != checksum:
            raise NodeCheckError(
                f"Checksum mismatch: local {checksum}, node {info.get('checksum')}"
            )

        addresses = self.rpc.deriveaddresses(descriptor)
        if addresses != [address.value]:
            raise NodeCheckError(
                f"Address mismatch: local {address.value}, node {addresses}"
            )
        log.info(f"Node agrees on checksum {checksum} and address {address.value}")
