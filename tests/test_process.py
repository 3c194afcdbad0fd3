"""
Tests for the end to end pipeline and its state machine.
"""

import base64
import re

import pytest

from paperwallet.descriptor import descriptor_checksum
from paperwallet.errors import (
    AddressError,
    ErrorKind,
    KeyGenerationError,
    MissingChecksumError,
    TemplateParseError,
)
from paperwallet.keys import KeyGenerator
from paperwallet.legend import LegendBuilder
from paperwallet.process import PaperWalletProcess, ProcessState, process
from paperwallet.wallet_types import Network

from conftest import FixedKeyGenerator, PUB_1, PUB_2

TESTNET_P2WPKH = re.compile(r"^tb1q[02-9ac-hj-np-z]{38}$")
TESTNET_P2WSH = re.compile(r"^tb1q[02-9ac-hj-np-z]{58}$")


class TestScenarios:
    """Test the documented scenarios with random keys."""

    def test_single_key(self):
        run = PaperWalletProcess(Network.TESTNET)
        records = run.build("wpkh(Alice)")
        assert len(records) == 1
        record = records[0]
        secret = run.store.get("Alice").secret
        assert record.alias == "Alice"
        assert record.legend_rows == (f"Alice: {secret}",)
        assert TESTNET_P2WPKH.match(record.address)

    def test_two_aliases(self):
        run = PaperWalletProcess(Network.TESTNET)
        records = run.build("wsh(multi(2,Alice,Bob))")
        alice, bob = run.store.get("Alice"), run.store.get("Bob")

        assert [r.alias for r in records] == ["Alice", "Bob"]
        assert records[0].legend_rows == (f"Alice: {alice.secret}", f"Bob: {bob.public}")
        assert records[1].legend_rows == (f"Alice: {alice.public}", f"Bob: {bob.secret}")
        assert records[0].address == records[1].address
        assert TESTNET_P2WSH.match(records[0].address)

    def test_repeated_alias_generates_once(self):
        generator = FixedKeyGenerator()
        run = PaperWalletProcess(Network.TESTNET, generator=generator)
        records = run.build("wsh(or_d(pk(Alice),and_v(v:pkh(Alice),older(144))))")
        assert generator.calls == 1
        assert len(records) == 1
        assert run.store.get("Alice").public == PUB_1

    def test_fresh_keys_every_run(self):
        first = PaperWalletProcess(Network.TESTNET).build("wpkh(Alice)")[0]
        second = PaperWalletProcess(Network.TESTNET).build("wpkh(Alice)")[0]
        assert first.address != second.address


class TestStateMachine:
    """Test ProcessState transitions."""

    def test_happy_path(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        assert run.state == ProcessState.PARSE_TEMPLATE
        records = run.build("wpkh(Alice)")
        assert run.state == ProcessState.ASSEMBLE_OUTPUT
        html = run.assemble(records)
        assert run.state == ProcessState.DONE
        assert run.failed_in is None
        assert "<!DOCTYPE html>" in html

    def test_parse_failure(self):
        run = PaperWalletProcess(Network.TESTNET)
        with pytest.raises(TemplateParseError):
            run.build("wpkh(Alice")
        assert run.state == ProcessState.FAILED
        assert run.failed_in == ProcessState.PARSE_TEMPLATE
        assert run.error.kind == ErrorKind.TEMPLATE_PARSE

    def test_address_failure(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        with pytest.raises(AddressError):
            run.build("pk(Alice)")
        assert run.failed_in == ProcessState.GENERATE_KEYS_AND_ADDRESS

    def test_key_generation_failure(self):
        class ZeroGenerator(KeyGenerator):
            def _entropy(self):
                return bytes(32)

        run = PaperWalletProcess(Network.TESTNET, generator=ZeroGenerator())
        with pytest.raises(KeyGenerationError):
            run.build("wpkh(Alice)")
        assert run.failed_in == ProcessState.GENERATE_KEYS_AND_ADDRESS
        assert len(run.store) == 0

    def test_legend_failure(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator,
                                 legend_builder=LegendBuilder(serializer=str))
        with pytest.raises(MissingChecksumError):
            run.build("wpkh(Alice)")
        assert run.error.kind == ErrorKind.MISSING_CHECKSUM
        assert run.failed_in == ProcessState.BUILD_LEGENDS

    def test_type_error_fails_in_parse(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        with pytest.raises(TemplateParseError):
            run.build("wsh(and_v(pk(Alice),pk(Bob)))")
        assert run.failed_in == ProcessState.PARSE_TEMPLATE
        assert fixed_generator.calls == 0

    def test_deep_nesting_fails_in_parse(self):
        run = PaperWalletProcess(Network.TESTNET)
        text = "wsh(" + "or_i(0," * 1500 + "pk(Alice)" + ")" * 1500 + ")"
        with pytest.raises(TemplateParseError, match="Nesting too deep"):
            run.build(text)
        assert run.state == ProcessState.FAILED
        assert run.failed_in == ProcessState.PARSE_TEMPLATE

    def test_nesting_below_limit(self, fixed_generator):
        """Test that every pass copes with nesting just under the bound."""
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        text = "wsh(" + "or_i(0," * 150 + "pk(Alice)" + ")" * 150 + ")"
        records = run.build(text)
        assert len(records) == 1
        assert TESTNET_P2WSH.match(records[0].address)

    def test_single_use(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        run.build("wpkh(Alice)")
        with pytest.raises(RuntimeError):
            run.build("wpkh(Alice)")


class TestPublicDescriptor:
    """Test the public key descriptor handed to node checks."""

    def test_public_keys_in_hashed_positions(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        run.build("wsh(or_d(pk(Alice),and_v(v:pkh(Bob),older(144))))")
        body, _, checksum = run.public_descriptor().partition("#")
        assert body == f"wsh(or_d(pk({PUB_1}),and_v(v:pkh({PUB_2}),older(144))))"
        assert checksum == descriptor_checksum(body)

    def test_no_generation_outside_build(self, fixed_generator):
        run = PaperWalletProcess(Network.TESTNET, generator=fixed_generator)
        with pytest.raises(RuntimeError):
            run.public_descriptor()
        assert fixed_generator.calls == 0


class TestProcess:
    """Test the process() entry point."""

    def test_data_url(self):
        url = process("wsh(multi(2,Alice,Bob))", Network.TESTNET)
        prefix = "data:text/html;base64,"
        assert url.startswith(prefix)
        html = base64.b64decode(url[len(prefix):]).decode("utf-8")
        assert html.count('class="single"') == 2
        assert "wsh(multi(2,Alice,Bob))#" in html

    def test_error_surfaces(self):
        with pytest.raises(TemplateParseError):
            process("wsh(unknown(Alice))", Network.TESTNET)
