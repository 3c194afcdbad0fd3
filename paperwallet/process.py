"""
Paper Wallet - Process

One linear pass per invocation:

    PARSE_TEMPLATE -> GENERATE_KEYS_AND_ADDRESS -> BUILD_LEGENDS
        -> ASSEMBLE_OUTPUT -> DONE

Any error moves the run to FAILED and is re-raised unchanged; no state is
revisited and nothing is retried. The only external resource used is the
random source behind KeyGenerator; checks against a node happen outside,
on `public_descriptor()`.
"""

import logging
from enum import Enum
from typing import List, Optional, Tuple

from . import descriptor
from .address import derive_address
from .errors import PaperWalletError
from .key_store import AliasKeyStore
from .keys import KeyGenerator
from .legend import LegendBuilder
from .render import paper_wallets, to_data_url
from .translator import KeyStoreResolver, PublicKeyResolver, translate
from .wallet_types import Address, Network, WalletRecord

log = logging.getLogger(__name__)


class ProcessState(Enum):
    """Pipeline state"""
    PARSE_TEMPLATE = "parse_template"
    GENERATE_KEYS_AND_ADDRESS = "generate_keys_and_address"
    BUILD_LEGENDS = "build_legends"
    ASSEMBLE_OUTPUT = "assemble_output"
    DONE = "done"
    FAILED = "failed"


class PaperWalletProcess:
    """
    Single-use pipeline from descriptor template to paper wallet page.

    Usage:
        run = PaperWalletProcess(Network.TESTNET)
        records = run.build("wsh(multi(2,Alice,Bob,Carol))")
        html = run.assemble(records)
    """

    def __init__(self, network: Network,
                 generator: Optional[KeyGenerator] = None,
                 legend_builder: Optional[LegendBuilder] = None):
        self.network = network
        self.store = AliasKeyStore(network, generator)
        self.legend_builder = legend_builder or LegendBuilder()
        self.state = ProcessState.PARSE_TEMPLATE
        self.failed_in: Optional[ProcessState] = None
        self.error: Optional[PaperWalletError] = None
        self.template: Optional[descriptor.PolicyTemplate] = None
        self.address: Optional[Address] = None

    def _advance(self, state: ProcessState):
        log.debug(f"{self.state.value} -> {state.value}")
        self.state = state

    def _fail(self, error: PaperWalletError):
        self.failed_in = self.state
        self.error = error
        self.state = ProcessState.FAILED
        log.debug(f"failed in {self.failed_in.value}: {error}")

    def generate_keys_and_address(
            self, template: descriptor.PolicyTemplate
    ) -> Tuple[descriptor.PolicyTemplate, Address]:
        """
        Creates a key pair for every alias and the resolved (all public key)
        template, from which the address is computed.
        """
        resolved = translate(template, KeyStoreResolver(self.store))
        self.store.freeze()
        log.debug(f"resolved descriptor: {resolved}")

        address = derive_address(resolved, self.network)

        return resolved, address

    def build(self, template_text: str) -> List[WalletRecord]:
        """Parse, generate keys and address, build one record per alias."""
        if self.state != ProcessState.PARSE_TEMPLATE:
            raise RuntimeError("PaperWalletProcess instances are single use")
        try:
            template = descriptor.parse(template_text)
            self.template = template
            log.debug(f"descriptor template: {template}")

            self._advance(ProcessState.GENERATE_KEYS_AND_ADDRESS)
            _, self.address = self.generate_keys_and_address(template)

            self._advance(ProcessState.BUILD_LEGENDS)
            records = self.legend_builder.build(self.store, self.address, template)
        except PaperWalletError as e:
            self._fail(e)
            raise

        self._advance(ProcessState.ASSEMBLE_OUTPUT)
        return records

    def public_descriptor(self) -> str:
        """
        Template with every alias replaced by its public key, with checksum.

        Key hashes are not used in pk_h/pkh positions, so the result is
        accepted by Bitcoin Core's getdescriptorinfo/deriveaddresses.
        Only valid once keys are generated.
        """
        if self.template is None or not self.store.frozen:
            raise RuntimeError("keys not generated yet")
        public = translate(self.template, PublicKeyResolver(self.store))
        return descriptor.to_display_string(public)

    def assemble(self, records: List[WalletRecord]) -> str:
        """HTML page for `records`."""
        try:
            html = paper_wallets(records)
        except PaperWalletError as e:
            self._fail(e)
            raise
        self._advance(ProcessState.DONE)
        return html


def process(template_text: str, network: Network) -> str:
    """
    Process descriptor template and network and return an html page encoded in
    a data url, pasteable in a browser.

    Raises:
        PaperWalletError: any failure, surfaced unchanged
    """
    run = PaperWalletProcess(network)
    records = run.build(template_text)
    return to_data_url(run.assemble(records), "text/html")
