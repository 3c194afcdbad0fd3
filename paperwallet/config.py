"""
Paper Wallet - Configuration
"""

import os
from dataclasses import dataclass
from typing import Optional

from .wallet_types import Network

# RPC credentials may come from the environment instead of the command line
ENV_RPC_USER = "PAPER_WALLET_RPC_USER"
ENV_RPC_PASSWORD = "PAPER_WALLET_RPC_PASSWORD"

OUTPUT_FORMATS = ("data-url", "html", "json")


@dataclass
class Config:
    network: Network = Network.TESTNET

    # Output: data url on stdout (default), html page or json records
    output_format: str = "data-url"
    output_path: Optional[str] = None

    # Optional node cross-check, disabled when rpc_url is empty
    rpc_url: str = ""
    rpc_user: str = ""
    rpc_password: str = ""
    rpc_timeout: int = 30

    log_level: str = "WARNING"

    def __post_init__(self):
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(f"Unknown output format: {self.output_format}. Supported: {OUTPUT_FORMATS}")
        if not self.rpc_user:
            self.rpc_user = os.environ.get(ENV_RPC_USER, "")
        if not self.rpc_password:
            self.rpc_password = os.environ.get(ENV_RPC_PASSWORD, "")

    @property
    def node_check(self) -> bool:
        return bool(self.rpc_url)
