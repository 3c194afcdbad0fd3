#!/usr/bin/env python3
"""
paper-wallet - Creates paper wallets given a descriptor.

The descriptor defines the spending script of the paper wallet and contains
aliases such as 'Alice' in place of keys; every alias is substituted with a
randomly generated key. For a basic paper wallet use: 'wpkh(Alice)'.

Examples:
    paper-wallet "wpkh(Alice)"
    paper-wallet -n bitcoin "wsh(multi(2,Alice,Bob,Carol))" --output wallets.html
    paper-wallet "sh(wpkh(Alice))" --json
"""

import argparse
import json
import logging
import sys
from typing import List, Optional, Tuple

from .config import Config, OUTPUT_FORMATS
from .errors import PaperWalletError
from .node_check import NodeVerifier, RPCClient
from .process import PaperWalletProcess
from .render import to_data_url
from .wallet_types import Network

log = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> Tuple[Config, str]:
    parser = argparse.ArgumentParser(description="Creates a paper wallet given a descriptor.")
    parser.add_argument("descriptor",
                        help="Descriptor with aliases in place of keys, e.g. 'wpkh(Alice)'")
    parser.add_argument("-n", "--network", default="testnet",
                        choices=[n.value for n in Network],
                        help="Network used (default: testnet)")
    parser.add_argument("--output", default=None,
                        help="Write the HTML page to this file instead of printing a data url")
    parser.add_argument("--json", action="store_true",
                        help="Print wallet records as JSON instead of the page")
    parser.add_argument("--rpc-url", default="",
                        help="Bitcoin Core RPC url to cross-check checksum and address")
    parser.add_argument("--rpc-user", default="", help="RPC user")
    parser.add_argument("--rpc-password", default="", help="RPC password")
    parser.add_argument("--rpc-timeout", type=int, default=30, help="RPC timeout in seconds")
    parser.add_argument("--log-level", default="WARNING",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"])

    args = parser.parse_args(argv)

    if args.json and args.output:
        parser.error("--json and --output are mutually exclusive")
    output_format = OUTPUT_FORMATS[0]
    if args.json:
        output_format = "json"
    elif args.output:
        output_format = "html"

    config = Config(
        network=Network(args.network),
        output_format=output_format,
        output_path=args.output,
        rpc_url=args.rpc_url,
        rpc_user=args.rpc_user,
        rpc_password=args.rpc_password,
        rpc_timeout=args.rpc_timeout,
        log_level=args.log_level,
    )
    return config, args.descriptor


def run(config: Config, template_text: str) -> str:
    """Run one pass, returns what goes to stdout."""
    wallet_run = PaperWalletProcess(config.network)
    records = wallet_run.build(template_text)
    log.info(f"{len(records)} paper wallet(s) for {wallet_run.address}")

    if config.node_check:
        rpc = RPCClient(config.rpc_url, config.rpc_user, config.rpc_password, config.rpc_timeout)
        NodeVerifier(rpc).verify(wallet_run.public_descriptor(), wallet_run.address)

    if config.output_format == "json":
        return json.dumps([r.to_dict() for r in records], indent=2)

    html = wallet_run.assemble(records)
    if config.output_format == "html":
        with open(config.output_path, "w") as f:
            f.write(html)
        return f"Written {config.output_path}"
    return to_data_url(html, "text/html")


def main(argv: Optional[List[str]] = None) -> int:
    config, template_text = parse_args(argv)

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    try:
        print(run(config, template_text))
    except PaperWalletError as e:
        log.error(f"{e}")
        return 1
    except OSError as e:
        log.error(f"Cannot write output: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
