"""
Tests for script compilation and address derivation.
"""

import hashlib

import pytest

from paperwallet.address import (
    MAX_STANDARD_P2WSH_SCRIPT,
    OP_CHECKMULTISIG,
    OP_CHECKSIG,
    OP_CHECKSIGVERIFY,
    OP_VERIFY,
    compile_fragment,
    derive_address,
    push_int,
    script_num,
    serialize_script,
)
from paperwallet.descriptor import parse
from paperwallet.errors import AddressError
from paperwallet.wallet_types import AddressType, Network

from conftest import HASH160_1, PUB_1, PUB_2, PUB_3


class TestScriptEncoding:
    """Test number and push encoding."""

    def test_script_num(self):
        assert script_num(0) == b""
        assert script_num(1) == b"\x01"
        assert script_num(127) == b"\x7f"
        assert script_num(128) == b"\x80\x00"
        assert script_num(144) == b"\x90\x00"
        assert script_num(-1) == b"\x81"
        assert script_num(700000) == b"\x60\xae\x0a"

    def test_push_int_small(self):
        assert push_int(0) == 0x00
        assert push_int(1) == 0x51
        assert push_int(16) == 0x60
        assert push_int(17) == b"\x11"

    def test_serialize_pushes(self):
        assert serialize_script([b"\x01" * 33]) == b"\x21" + b"\x01" * 33
        assert serialize_script([b"\x02" * 80]) == b"\x4c\x50" + b"\x02" * 80
        assert serialize_script([0x51, 0xae]) == b"\x51\xae"


class TestCompile:
    """Test miniscript compilation."""

    def test_pk(self):
        template = parse(f"wsh(pk({PUB_1}))")
        script = serialize_script(compile_fragment(template.root.args[0]))
        assert script == b"\x21" + bytes.fromhex(PUB_1) + b"\xac"

    def test_v_wrapper_folds_checksig(self):
        template = parse(f"wsh(and_v(v:pk({PUB_1}),older(144)))")
        ops = compile_fragment(template.root.args[0])
        assert OP_CHECKSIGVERIFY in ops
        assert OP_CHECKSIG not in ops
        assert OP_VERIFY not in ops

    def test_v_wrapper_appends_verify(self):
        template = parse(f"wsh(and_v(v:older(144),pk({PUB_1})))")
        ops = compile_fragment(template.root.args[0])
        assert ops[:3] == [b"\x90\x00", 0xb2, OP_VERIFY]

    def test_pkh_hash_or_key(self):
        """Test that a hashed position accepts the hash or the full key."""
        with_hash = parse(f"wsh(pkh({HASH160_1}))")
        with_key = parse(f"wsh(pkh({PUB_1}))")
        assert compile_fragment(with_hash.root.args[0]) == compile_fragment(with_key.root.args[0])

    def test_multi(self):
        template = parse(f"wsh(multi(2,{PUB_2},{PUB_1}))")
        ops = compile_fragment(template.root.args[0])
        assert ops == [0x52, bytes.fromhex(PUB_2), bytes.fromhex(PUB_1), 0x52, OP_CHECKMULTISIG]

    def test_sortedmulti_sorts_keys(self):
        template = parse(f"wsh(sortedmulti(2,{PUB_2},{PUB_1}))")
        ops = compile_fragment(template.root.args[0])
        assert ops[1:3] == [bytes.fromhex(PUB_1), bytes.fromhex(PUB_2)]

    def test_thresh(self):
        template = parse(f"wsh(thresh(2,pk({PUB_1}),s:pk({PUB_2}),s:pk({PUB_3})))")
        ops = compile_fragment(template.root.args[0])
        assert ops.count(0x93) == 2
        assert ops[-2:] == [0x52, 0x87]


class TestDeriveAddress:
    """Test address derivation against known vectors."""

    def test_wpkh_mainnet(self, mainnet):
        address = derive_address(parse(f"wpkh({PUB_1})"), mainnet)
        assert address.value == "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
        assert address.address_type == AddressType.P2WPKH

    def test_wpkh_testnet(self, testnet):
        address = derive_address(parse(f"wpkh({PUB_1})"), testnet)
        assert address.value == "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"

    def test_wpkh_regtest_hrp(self):
        address = derive_address(parse(f"wpkh({PUB_1})"), Network.REGTEST)
        assert address.value.startswith("bcrt1q")

    def test_pkh_mainnet(self, mainnet):
        address = derive_address(parse(f"pkh({PUB_1})"), mainnet)
        assert address.value == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
        assert address.address_type == AddressType.P2PKH

    def test_wsh_pk(self, mainnet, testnet):
        """Test the P2WSH vectors for <K1> OP_CHECKSIG."""
        template = parse(f"wsh(pk({PUB_1}))")
        assert derive_address(template, mainnet).value == \
            "bc1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3qccfmv3"
        assert derive_address(template, testnet).value == \
            "tb1qrp33g0q5c5txsp9arysrx4k6zdkfs4nce4xj0gdcccefvpysxf3q0sl5k7"
        assert derive_address(template, testnet).address_type == AddressType.P2WSH

    def test_sh_wpkh(self, mainnet, testnet):
        template = parse(f"sh(wpkh({PUB_1}))")
        assert derive_address(template, mainnet).value[0] == "3"
        assert derive_address(template, testnet).value[0] == "2"
        assert derive_address(template, mainnet).address_type == AddressType.P2SH

    def test_sh_wsh_differs_from_wsh(self, mainnet):
        sh_wsh = derive_address(parse(f"sh(wsh(multi(1,{PUB_1},{PUB_2})))"), mainnet)
        sh = derive_address(parse(f"sh(multi(1,{PUB_1},{PUB_2}))"), mainnet)
        assert sh_wsh.value != sh.value
        assert sh_wsh.value[0] == sh.value[0] == "3"

    def test_wsh_program_is_sha256_of_script(self, mainnet):
        from bip_utils import SegwitBech32Encoder
        script = b"\x21" + bytes.fromhex(PUB_1) + b"\xac"
        expected = SegwitBech32Encoder.Encode("bc", 0, hashlib.sha256(script).digest())
        assert derive_address(parse(f"wsh(pk({PUB_1}))"), mainnet).value == expected

    def test_qr_form(self, mainnet):
        wpkh = derive_address(parse(f"wpkh({PUB_1})"), mainnet)
        pkh = derive_address(parse(f"pkh({PUB_1})"), mainnet)
        assert wpkh.qr_form() == wpkh.value.upper()
        assert pkh.qr_form() == pkh.value

    @pytest.mark.parametrize("text", [
        f"pk({PUB_1})",
        f"multi(1,{PUB_1},{PUB_2})",
    ])
    def test_bare_has_no_address(self, text, mainnet):
        with pytest.raises(AddressError):
            derive_address(parse(text), mainnet)

    def test_unresolved_alias(self, mainnet):
        with pytest.raises(AddressError):
            derive_address(parse("wpkh(Alice)"), mainnet)

    def test_uncompressed_key_rejected(self, mainnet):
        with pytest.raises(AddressError):
            derive_address(parse("wpkh(04" + "11" * 64 + ")"), mainnet)

    def test_p2sh_script_limit(self, mainnet):
        keys = ",".join([PUB_1, PUB_2, PUB_3] * 6)
        with pytest.raises(AddressError, match="too large"):
            derive_address(parse(f"sh(multi(1,{keys}))"), mainnet)

    def test_p2wsh_script_limit(self, mainnet):
        """Test that a witness script over 3600 bytes gets no address."""
        subs = ",".join([f"pk({PUB_1})"] + [f"s:pk({PUB_2})"] * 99)
        with pytest.raises(AddressError, match="Witness script too large"):
            derive_address(parse(f"wsh(thresh(1,{subs}))"), mainnet)
        with pytest.raises(AddressError, match="Witness script too large"):
            derive_address(parse(f"sh(wsh(thresh(1,{subs})))"), mainnet)

    def test_p2wsh_script_below_limit(self, mainnet):
        subs = ",".join([f"pk({PUB_1})"] + [f"s:pk({PUB_2})"] * 89)
        template = parse(f"wsh(thresh(1,{subs}))")
        assert len(serialize_script(compile_fragment(template.root.args[0]))) <= MAX_STANDARD_P2WSH_SCRIPT
        assert derive_address(template, mainnet).address_type == AddressType.P2WSH
