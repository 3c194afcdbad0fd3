"""
Paper Wallet - Address Derivation

Compiles a resolved template (keys in place of aliases) to its output
script and encodes the address.

  pkh(K)      -> P2PKH   base58check(ver || HASH160(K))
  wpkh(K)     -> P2WPKH  bech32 v0, HASH160(K)
  sh(X)       -> P2SH    base58check(ver || HASH160(script(X)))
  wsh(X)      -> P2WSH   bech32 v0, SHA256(script(X))

Bare templates (pk(), top-level multi()/miniscript) have no address.
Redeem scripts are limited to 520 bytes, witness scripts to the 3600 byte
standardness limit.
"""

import hashlib
import logging
from typing import List, Union

from bip_utils import Base58Encoder, SegwitBech32Encoder
from bip_utils.utils.crypto import Hash160

from .descriptor import Fragment, KeyLeaf, Literal, PolicyTemplate
from .errors import AddressError
from .wallet_types import Address, AddressType, Network

log = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# OPCODES
# ═══════════════════════════════════════════════════════════════════════════════

OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1 = 0x51
OP_IF = 0x63
OP_NOTIF = 0x64
OP_ELSE = 0x67
OP_ENDIF = 0x68
OP_VERIFY = 0x69
OP_TOALTSTACK = 0x6b
OP_FROMALTSTACK = 0x6c
OP_IFDUP = 0x73
OP_DUP = 0x76
OP_SWAP = 0x7c
OP_SIZE = 0x82
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_0NOTEQUAL = 0x92
OP_ADD = 0x93
OP_BOOLAND = 0x9a
OP_BOOLOR = 0x9b
OP_NUMEQUAL = 0x9c
OP_NUMEQUALVERIFY = 0x9d
OP_RIPEMD160 = 0xa6
OP_SHA256 = 0xa8
OP_HASH160 = 0xa9
OP_HASH256 = 0xaa
OP_CHECKSIG = 0xac
OP_CHECKSIGVERIFY = 0xad
OP_CHECKMULTISIG = 0xae
OP_CHECKMULTISIGVERIFY = 0xaf
OP_CHECKLOCKTIMEVERIFY = 0xb1
OP_CHECKSEQUENCEVERIFY = 0xb2

# v: wrapper folds into the VERIFY form of these
VERIFY_FORMS = {
    OP_EQUAL: OP_EQUALVERIFY,
    OP_CHECKSIG: OP_CHECKSIGVERIFY,
    OP_CHECKMULTISIG: OP_CHECKMULTISIGVERIFY,
    OP_NUMEQUAL: OP_NUMEQUALVERIFY,
}

HASH_OPS = {
    "sha256": OP_SHA256,
    "hash256": OP_HASH256,
    "ripemd160": OP_RIPEMD160,
    "hash160": OP_HASH160,
}

MAX_P2SH_SCRIPT = 520
MAX_STANDARD_P2WSH_SCRIPT = 3600

# A script is built as a list of opcodes (int) and pushes (bytes)
Ops = List[Union[int, bytes]]


# ═══════════════════════════════════════════════════════════════════════════════
# SCRIPT ENCODING
# ═══════════════════════════════════════════════════════════════════════════════

def script_num(n: int) -> bytes:
    """Minimal CScriptNum encoding."""
    if n == 0:
        return b""
    negative = n < 0
    value = abs(n)
    out = bytearray()
    while value:
        out.append(value & 0xff)
        value >>= 8
    if out[-1] & 0x80:
        out.append(0x80 if negative else 0x00)
    elif negative:
        out[-1] |= 0x80
    return bytes(out)


def push_int(n: int) -> Union[int, bytes]:
    if n == 0:
        return OP_0
    if 1 <= n <= 16:
        return OP_1 + n - 1
    return script_num(n)


def serialize_script(ops: Ops) -> bytes:
    out = bytearray()
    for op in ops:
        if isinstance(op, int):
            out.append(op)
            continue
        size = len(op)
        if size < OP_PUSHDATA1:
            out.append(size)
        elif size <= 0xff:
            out += bytes([OP_PUSHDATA1, size])
        elif size <= 0xffff:
            out.append(OP_PUSHDATA2)
            out += size.to_bytes(2, "little")
        else:
            out.append(OP_PUSHDATA4)
            out += size.to_bytes(4, "little")
        out += op
    return bytes(out)


# ═══════════════════════════════════════════════════════════════════════════════
# KEYS
# ═══════════════════════════════════════════════════════════════════════════════

def _pubkey(leaf: KeyLeaf) -> bytes:
    try:
        key = bytes.fromhex(leaf.value)
    except ValueError:
        raise AddressError(f"Not a public key: {leaf.value!r}")
    if len(key) != 33 or key[0] not in (2, 3):
        raise AddressError(f"Not a compressed public key: {leaf.value!r}")
    return key


def _pubkey_hash(leaf: KeyLeaf) -> bytes:
    """Hashed positions hold HASH160(K); a full key is hashed here."""
    if len(leaf.value) == 40:
        try:
            return bytes.fromhex(leaf.value)
        except ValueError:
            raise AddressError(f"Not a key hash: {leaf.value!r}")
    return Hash160.QuickDigest(_pubkey(leaf))


# ═══════════════════════════════════════════════════════════════════════════════
# MINISCRIPT COMPILATION
# ═══════════════════════════════════════════════════════════════════════════════

def _verify(ops: Ops) -> Ops:
    if ops and isinstance(ops[-1], int) and ops[-1] in VERIFY_FORMS:
        return ops[:-1] + [VERIFY_FORMS[ops[-1]]]
    return ops + [OP_VERIFY]


def _wrap(wrapper: str, ops: Ops) -> Ops:
    if wrapper == "a":
        return [OP_TOALTSTACK] + ops + [OP_FROMALTSTACK]
    if wrapper == "s":
        return [OP_SWAP] + ops
    if wrapper == "c":
        return ops + [OP_CHECKSIG]
    if wrapper == "t":
        return ops + [OP_1]
    if wrapper == "d":
        return [OP_DUP, OP_IF] + ops + [OP_ENDIF]
    if wrapper == "v":
        return _verify(ops)
    if wrapper == "j":
        return [OP_SIZE, OP_0NOTEQUAL, OP_IF] + ops + [OP_ENDIF]
    if wrapper == "n":
        return ops + [OP_0NOTEQUAL]
    if wrapper == "l":
        return [OP_IF, OP_0, OP_ELSE] + ops + [OP_ENDIF]
    if wrapper == "u":
        return [OP_IF] + ops + [OP_ELSE, OP_0, OP_ENDIF]
    raise AddressError(f"Unknown wrapper {wrapper!r}")


def _multi(node: Fragment) -> Ops:
    threshold = int(node.args[0].value)
    keys = [_pubkey(leaf) for leaf in node.args[1:]]
    if node.name == "sortedmulti":
        keys.sort()
    return [push_int(threshold)] + keys + [push_int(len(keys)), OP_CHECKMULTISIG]


def _fragment(node: Fragment) -> Ops:
    name, args = node.name, node.args

    if name == "0":
        return [OP_0]
    if name == "1":
        return [OP_1]
    if name == "pk_k":
        return [_pubkey(args[0])]
    if name == "pk_h":
        return [OP_DUP, OP_HASH160, _pubkey_hash(args[0]), OP_EQUALVERIFY]
    if name == "pk":
        return [_pubkey(args[0]), OP_CHECKSIG]
    if name == "pkh":
        return [OP_DUP, OP_HASH160, _pubkey_hash(args[0]), OP_EQUALVERIFY, OP_CHECKSIG]
    if name == "older":
        return [push_int(int(args[0].value)), OP_CHECKSEQUENCEVERIFY]
    if name == "after":
        return [push_int(int(args[0].value)), OP_CHECKLOCKTIMEVERIFY]
    if name in HASH_OPS:
        return [OP_SIZE, push_int(32), OP_EQUALVERIFY, HASH_OPS[name],
                bytes.fromhex(args[0].value), OP_EQUAL]
    if name in ("multi", "sortedmulti"):
        return _multi(node)
    if name == "thresh":
        subs = [compile_fragment(sub) for sub in args[1:]]
        ops = list(subs[0])
        for sub in subs[1:]:
            ops += sub + [OP_ADD]
        return ops + [push_int(int(args[0].value)), OP_EQUAL]

    x = compile_fragment(args[0]) if args else []
    z = compile_fragment(args[1]) if len(args) > 1 else []
    if name == "and_v":
        return x + z
    if name == "and_b":
        return x + z + [OP_BOOLAND]
    if name == "and_n":
        return x + [OP_NOTIF, OP_0, OP_ELSE] + z + [OP_ENDIF]
    if name == "andor":
        return x + [OP_NOTIF] + compile_fragment(args[2]) + [OP_ELSE] + z + [OP_ENDIF]
    if name == "or_b":
        return x + z + [OP_BOOLOR]
    if name == "or_c":
        return x + [OP_NOTIF] + z + [OP_ENDIF]
    if name == "or_d":
        return x + [OP_IFDUP, OP_NOTIF] + z + [OP_ENDIF]
    if name == "or_i":
        return [OP_IF] + x + [OP_ELSE] + z + [OP_ENDIF]

    raise AddressError(f"Cannot compile fragment {name!r}")


def compile_fragment(node: Union[Fragment, KeyLeaf, Literal]) -> Ops:
    """Script ops of a miniscript fragment, wrappers applied innermost first."""
    if not isinstance(node, Fragment):
        raise AddressError(f"Expected fragment, got {node}")
    ops = _fragment(node)
    for wrapper in reversed(node.wrappers):
        ops = _wrap(wrapper, ops)
    return ops


# ═══════════════════════════════════════════════════════════════════════════════
# ADDRESSES
# ═══════════════════════════════════════════════════════════════════════════════

def _p2sh(script: bytes, network: Network) -> Address:
    if len(script) > MAX_P2SH_SCRIPT:
        raise AddressError(f"Redeem script too large: {len(script)} > {MAX_P2SH_SCRIPT} bytes")
    payload = network.p2sh_version + Hash160.QuickDigest(script)
    return Address(Base58Encoder.CheckEncode(payload), AddressType.P2SH, network)


def _wsh_program(node: Fragment) -> bytes:
    """SHA256 of the witness script of `node`, a wsh() child."""
    witness_script = serialize_script(compile_fragment(node))
    if len(witness_script) > MAX_STANDARD_P2WSH_SCRIPT:
        raise AddressError(
            f"Witness script too large: {len(witness_script)} > {MAX_STANDARD_P2WSH_SCRIPT} bytes"
        )
    return hashlib.sha256(witness_script).digest()


def _witness_script(node: Fragment) -> bytes:
    if node.name == "wpkh":
        return serialize_script([OP_0, Hash160.QuickDigest(_pubkey(node.args[0]))])
    if node.name == "wsh":
        return serialize_script([OP_0, _wsh_program(node.args[0])])
    return serialize_script(compile_fragment(node))


def derive_address(resolved: PolicyTemplate, network: Network) -> Address:
    """
    Address of a fully resolved template.

    Args:
        resolved: template whose key leaves hold public keys (plain positions)
                  and public keys or key hashes (hashed positions)
        network: address network

    Returns:
        Address

    Raises:
        AddressError: bare template, leaves that are not valid keys, or a
                      script above the P2SH or standard P2WSH size limit
    """
    root = resolved.root

    if root.name == "pkh":
        payload = network.p2pkh_version + Hash160.QuickDigest(_pubkey(root.args[0]))
        address = Address(Base58Encoder.CheckEncode(payload), AddressType.P2PKH, network)
    elif root.name == "wpkh":
        program = Hash160.QuickDigest(_pubkey(root.args[0]))
        address = Address(SegwitBech32Encoder.Encode(network.hrp, 0, program),
                          AddressType.P2WPKH, network)
    elif root.name == "wsh":
        program = _wsh_program(root.args[0])
        address = Address(SegwitBech32Encoder.Encode(network.hrp, 0, program),
                          AddressType.P2WSH, network)
    elif root.name == "sh":
        address = _p2sh(_witness_script(root.args[0]), network)
    else:
        raise AddressError(f"Descriptor {root.name}() has no address form")

    log.debug(f"address: {address.value} ({address.address_type.value})")
    return address
