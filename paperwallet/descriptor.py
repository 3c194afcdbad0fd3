"""
Paper Wallet - Descriptor Templates

Parses output descriptors whose keys are aliases ("wsh(multi(2,Alice,Bob))")
into an immutable tree and serializes trees back to descriptor text with the
descriptor checksum appended.

Supported:
  - Top level: pkh, wpkh, pk, sh, wsh, multi, sortedmulti, bare miniscript
  - Inside sh/wsh: multi, sortedmulti (direct child only) and the miniscript
    fragments listed in MINISCRIPT_FRAGMENTS, with wrappers "asctdvjnlu"

Key positions come in two classes:
  - PLAIN: the script contains the key itself
  - HASHED: the script contains HASH160(key), i.e. miniscript pk_h/pkh
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterator, List, Optional, Tuple, Union
import re

from .errors import MissingChecksumError, TemplateParseError


# ═══════════════════════════════════════════════════════════════════════════════
# CHECKSUM (BIP 380)
# ═══════════════════════════════════════════════════════════════════════════════

INPUT_CHARSET = (
    "0123456789()[],'/*abcdefgh@:$%{}"
    "IJKLMNOPQRSTUVWXYZ&+-.;<=>?!^_|~"
    "ijklmnopqrstuvwxyzABCDEFGH`#\"\\ "
)
CHECKSUM_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHECKSUM_LENGTH = 8
GENERATOR = [0xf5dee51989, 0xa9fdca3312, 0x1bab10e32d, 0x3706b1677a, 0x644d626ffd]


def _polymod(symbols: List[int]) -> int:
    chk = 1
    for value in symbols:
        top = chk >> 35
        chk = (chk & 0x7ffffffff) << 5 ^ value
        for i in range(5):
            if (top >> i) & 1:
                chk ^= GENERATOR[i]
    return chk


def _expand(text: str) -> List[int]:
    groups = []
    symbols = []
    for c in text:
        v = INPUT_CHARSET.find(c)
        if v < 0:
            raise TemplateParseError(f"Invalid character {c!r} in descriptor")
        symbols.append(v & 31)
        groups.append(v >> 5)
        if len(groups) == 3:
            symbols.append(groups[0] * 9 + groups[1] * 3 + groups[2])
            groups = []
    if len(groups) == 1:
        symbols.append(groups[0])
    elif len(groups) == 2:
        symbols.append(groups[0] * 3 + groups[1])
    return symbols


def descriptor_checksum(text: str) -> str:
    """
    Compute the 8 character descriptor checksum of `text`.

    Examples:
        >>> descriptor_checksum("raw(deadbeef)")
        '89f8spxm'
    """
    symbols = _expand(text) + [0] * CHECKSUM_LENGTH
    checksum = _polymod(symbols) ^ 1
    return "".join(
        CHECKSUM_CHARSET[(checksum >> (5 * (7 - i))) & 31]
        for i in range(CHECKSUM_LENGTH)
    )


def split_checksum(text: str) -> Tuple[str, str]:
    """
    Split serializer output "<descriptor>#<checksum>" into its two fields.

    Raises:
        MissingChecksumError: no '#' delimiter, more than one, or empty checksum
    """
    if text.count("#") != 1:
        raise MissingChecksumError()
    body, checksum = text.split("#")
    if not checksum:
        raise MissingChecksumError()
    return body, checksum


# ═══════════════════════════════════════════════════════════════════════════════
# TREE
# ═══════════════════════════════════════════════════════════════════════════════

class LeafKind(Enum):
    """Syntactic class of a key position"""
    PLAIN = "plain"
    HASHED = "hashed"


@dataclass(frozen=True)
class KeyLeaf:
    """Key position; value is an alias, a key or a key hash depending on the pass."""
    value: str
    kind: LeafKind = LeafKind.PLAIN

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Literal:
    """Non-key argument: threshold, timelock or hash"""
    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Fragment:
    """Descriptor or miniscript fragment, e.g. wsh(...), v:pk(...), 0"""
    name: str
    args: Tuple[Union["Fragment", KeyLeaf, Literal], ...] = ()
    wrappers: str = ""

    def __str__(self) -> str:
        prefix = f"{self.wrappers}:" if self.wrappers else ""
        if self.name in ("0", "1"):
            return prefix + self.name
        return f"{prefix}{self.name}({','.join(str(a) for a in self.args)})"

    def leaves(self) -> Iterator[KeyLeaf]:
        """Key leaves in document order."""
        for arg in self.args:
            if isinstance(arg, KeyLeaf):
                yield arg
            elif isinstance(arg, Fragment):
                yield from arg.leaves()


@dataclass(frozen=True)
class PolicyTemplate:
    """Parsed descriptor, logically immutable"""
    root: Fragment

    def __str__(self) -> str:
        return str(self.root)

    def leaves(self) -> Iterator[KeyLeaf]:
        return self.root.leaves()

    def aliases(self) -> List[str]:
        """Distinct leaf values in order of first appearance."""
        seen = []
        for leaf in self.leaves():
            if leaf.value not in seen:
                seen.append(leaf.value)
        return seen


def to_display_string(template: PolicyTemplate) -> str:
    """Serialize with checksum: "<descriptor>#<checksum>"."""
    body = str(template)
    return f"{body}#{descriptor_checksum(body)}"


# ═══════════════════════════════════════════════════════════════════════════════
# GRAMMAR
# ═══════════════════════════════════════════════════════════════════════════════

# Argument layouts
KEY = "key"
HASHED_KEY = "hashed_key"
NUMBER = "number"
HASH32 = "hash32"
HASH20 = "hash20"
SUB = "sub"

MINISCRIPT_FRAGMENTS = {
    "pk_k": (KEY,),
    "pk_h": (HASHED_KEY,),
    "pk": (KEY,),
    "pkh": (HASHED_KEY,),
    "older": (NUMBER,),
    "after": (NUMBER,),
    "sha256": (HASH32,),
    "hash256": (HASH32,),
    "ripemd160": (HASH20,),
    "hash160": (HASH20,),
    "andor": (SUB, SUB, SUB),
    "and_v": (SUB, SUB),
    "and_b": (SUB, SUB),
    "and_n": (SUB, SUB),
    "or_b": (SUB, SUB),
    "or_c": (SUB, SUB),
    "or_d": (SUB, SUB),
    "or_i": (SUB, SUB),
}

WRAPPERS = "asctdvjnlu"
MAX_MULTI_KEYS = 20
MAX_TIMELOCK = 2 ** 31
# every pass over the tree recurses once per level
MAX_NESTING = 200

ALIAS_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")
NAME_RE = re.compile(r"^(?:([a-z]+):)?([a-z_0-9]+)$")


@dataclass
class _Expr:
    """Untyped parse node: name(args) or a bare token"""
    token: str
    args: Optional[List["_Expr"]] = None

    @property
    def is_call(self) -> bool:
        return self.args is not None


class _Reader:
    def __init__(self, text: str):
        self.text = text
        self.pos = 0
        self.depth = 0

    def error(self, message: str) -> TemplateParseError:
        return TemplateParseError(f"{message} at position {self.pos} in {self.text!r}")

    def expr(self) -> _Expr:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] not in "(),":
            self.pos += 1
        token = self.text[start:self.pos]
        if not token:
            raise self.error("Expected expression")
        if self.pos < len(self.text) and self.text[self.pos] == "(":
            self.depth += 1
            if self.depth > MAX_NESTING:
                raise self.error("Nesting too deep")
            self.pos += 1
            args = [self.expr()]
            while self.pos < len(self.text) and self.text[self.pos] == ",":
                self.pos += 1
                args.append(self.expr())
            if self.pos >= len(self.text) or self.text[self.pos] != ")":
                raise self.error("Expected ')'")
            self.pos += 1
            self.depth -= 1
            return _Expr(token, args)
        return _Expr(token)


def _split_name(expr: _Expr) -> Tuple[str, str]:
    match = NAME_RE.match(expr.token)
    if not match:
        raise TemplateParseError(f"Invalid fragment name {expr.token!r}")
    wrappers = match.group(1) or ""
    if any(w not in WRAPPERS for w in wrappers):
        raise TemplateParseError(f"Unknown wrapper in {expr.token!r}")
    return wrappers, match.group(2)


def _key(expr: _Expr, kind: LeafKind) -> KeyLeaf:
    if expr.is_call or not ALIAS_RE.match(expr.token):
        raise TemplateParseError(f"Invalid alias {expr.token!r}")
    return KeyLeaf(expr.token, kind)


def _number(expr: _Expr, low: int, high: int) -> Literal:
    if expr.is_call or not expr.token.isdigit():
        raise TemplateParseError(f"Expected number, got {expr.token!r}")
    value = int(expr.token)
    if not low <= value <= high:
        raise TemplateParseError(f"Number {value} out of range [{low}, {high}]")
    return Literal(str(value))


def _hash(expr: _Expr, size: int) -> Literal:
    if expr.is_call or not re.match(r"^[0-9a-fA-F]{%d}$" % (2 * size), expr.token):
        raise TemplateParseError(f"Expected {size}-byte hex hash, got {expr.token!r}")
    return Literal(expr.token.lower())


def _multi(name: str, expr: _Expr, wrappers: str = "") -> Fragment:
    if len(expr.args) < 2:
        raise TemplateParseError(f"{name}() needs a threshold and at least one key")
    keys = expr.args[1:]
    if len(keys) > MAX_MULTI_KEYS:
        raise TemplateParseError(f"{name}() supports at most {MAX_MULTI_KEYS} keys")
    threshold = _number(expr.args[0], 1, len(keys))
    return Fragment(
        name,
        (threshold,) + tuple(_key(k, LeafKind.PLAIN) for k in keys),
        wrappers,
    )


def _miniscript(expr: _Expr, allow_sorted: bool = False) -> Fragment:
    """Miniscript expression (inside sh/wsh, or bare)."""
    wrappers, name = _split_name(expr)

    if not expr.is_call:
        if name in ("0", "1"):
            return Fragment(name, (), wrappers)
        raise TemplateParseError(f"Expected fragment, got {expr.token!r}")

    if name == "multi" or (name == "sortedmulti" and allow_sorted and not wrappers):
        return _multi(name, expr, wrappers)

    if name == "thresh":
        if len(expr.args) < 2:
            raise TemplateParseError("thresh() needs a threshold and at least one sub")
        subs = tuple(_miniscript(e) for e in expr.args[1:])
        threshold = _number(expr.args[0], 1, len(subs))
        return Fragment(name, (threshold,) + subs, wrappers)

    layout = MINISCRIPT_FRAGMENTS.get(name)
    if layout is None:
        raise TemplateParseError(f"Unsupported fragment {name!r}")
    if len(expr.args) != len(layout):
        raise TemplateParseError(
            f"{name}() takes {len(layout)} argument(s), got {len(expr.args)}"
        )

    args = []
    for kind, arg in zip(layout, expr.args):
        if kind == KEY:
            args.append(_key(arg, LeafKind.PLAIN))
        elif kind == HASHED_KEY:
            args.append(_key(arg, LeafKind.HASHED))
        elif kind == NUMBER:
            args.append(_number(arg, 1, MAX_TIMELOCK - 1))
        elif kind == HASH32:
            args.append(_hash(arg, 32))
        elif kind == HASH20:
            args.append(_hash(arg, 20))
        else:
            args.append(_miniscript(arg))
    return Fragment(name, tuple(args), wrappers)


def _single(expr: _Expr) -> _Expr:
    if not expr.is_call or len(expr.args) != 1:
        raise TemplateParseError(f"{expr.token}() takes exactly one argument")
    return expr.args[0]


def _top(expr: _Expr) -> Fragment:
    """Descriptor-level expression."""
    if expr.token in ("pkh", "wpkh", "pk"):
        return Fragment(expr.token, (_key(_single(expr), LeafKind.PLAIN),))

    if expr.token == "sh":
        inner = _single(expr)
        if inner.token == "wpkh":
            return Fragment("sh", (Fragment("wpkh", (_key(_single(inner), LeafKind.PLAIN),)),))
        if inner.token == "wsh":
            return Fragment("sh", (Fragment("wsh", (_miniscript(_single(inner), allow_sorted=True),)),))
        return Fragment("sh", (_miniscript(inner, allow_sorted=True),))

    if expr.token == "wsh":
        return Fragment("wsh", (_miniscript(_single(expr), allow_sorted=True),))

    if expr.token in ("tr", "combo", "addr", "raw", "rawtr"):
        raise TemplateParseError(f"Unsupported descriptor {expr.token}()")

    return _miniscript(expr, allow_sorted=True)


# ═══════════════════════════════════════════════════════════════════════════════
# TYPE SYSTEM
# ═══════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class MiniscriptType:
    """
    Basic type and correctness properties of a miniscript fragment.

    Basic types:
        B: pushes nonzero on success, zero on dissatisfaction
        V: pushes nothing, aborts on failure
        K: pushes a key, to be checked by a CHECKSIG
        W: like B, but takes its input one below the top of the stack

    Properties:
        z: consumes no stack elements    o: consumes exactly one
        n: top input is never zero       d: has a dissatisfaction
        u: pushes exactly 1 on success
    """
    base: str
    props: FrozenSet[str] = frozenset()

    def has(self, props: str) -> bool:
        return all(p in self.props for p in props)

    def __str__(self) -> str:
        return self.base + "".join(p for p in "zondu" if p in self.props)


def _props(**flags: bool) -> FrozenSet[str]:
    return frozenset(p for p, on in flags.items() if on)


def _expect(t: MiniscriptType, bases: str, props: str, where: str):
    if t.base not in bases or not t.has(props):
        wanted = "/".join(bases) + props
        raise TemplateParseError(f"{where} needs type {wanted}, got {t}")


def _fragment_type(node: Fragment) -> MiniscriptType:
    name = node.name
    where = f"{name}()"

    if name == "0":
        return MiniscriptType("B", _props(z=True, u=True, d=True))
    if name == "1":
        return MiniscriptType("B", _props(z=True, u=True))
    if name == "pk_k":
        return MiniscriptType("K", _props(o=True, n=True, d=True, u=True))
    if name == "pk_h":
        return MiniscriptType("K", _props(n=True, d=True, u=True))
    if name in ("pk", "pkh"):
        # c:pk_k / c:pk_h
        return MiniscriptType("B", _props(o=name == "pk", n=True, d=True, u=True))
    if name in ("older", "after"):
        return MiniscriptType("B", _props(z=True))
    if name in ("sha256", "hash256", "ripemd160", "hash160"):
        return MiniscriptType("B", _props(o=True, n=True, d=True, u=True))
    if name in ("multi", "sortedmulti"):
        return MiniscriptType("B", _props(n=True, d=True, u=True))

    if name == "thresh":
        subs = [miniscript_type(sub) for sub in node.args[1:]]
        _expect(subs[0], "B", "du", f"{where} first argument")
        for sub in subs[1:]:
            _expect(sub, "W", "du", f"{where} argument")
        zero = sum(1 for t in subs if t.has("z"))
        one = sum(1 for t in subs if t.has("o"))
        return MiniscriptType("B", _props(
            z=zero == len(subs),
            o=zero == len(subs) - 1 and one == 1,
            d=True, u=True,
        ))

    x = miniscript_type(node.args[0])
    y = miniscript_type(node.args[1])

    if name == "and_v":
        _expect(x, "V", "", f"{where} first argument")
        _expect(y, "BKV", "", f"{where} second argument")
        return MiniscriptType(y.base, _props(
            z=x.has("z") and y.has("z"),
            o=(x.has("z") and y.has("o")) or (x.has("o") and y.has("z")),
            n=x.has("n") or (x.has("z") and y.has("n")),
            u=y.has("u"),
        ))
    if name == "and_b":
        _expect(x, "B", "", f"{where} first argument")
        _expect(y, "W", "", f"{where} second argument")
        return MiniscriptType("B", _props(
            z=x.has("z") and y.has("z"),
            o=(x.has("z") and y.has("o")) or (x.has("o") and y.has("z")),
            n=x.has("n") or (x.has("z") and y.has("n")),
            d=x.has("d") and y.has("d"),
            u=True,
        ))
    if name in ("andor", "and_n"):
        # and_n(X,Y) is andor(X,Y,0)
        w = miniscript_type(node.args[2]) if name == "andor" else _fragment_type(Fragment("0"))
        _expect(x, "B", "du", f"{where} first argument")
        _expect(y, "BKV", "", f"{where} second argument")
        if w.base != y.base:
            raise TemplateParseError(f"{where} branches have types {y} and {w}")
        return MiniscriptType(y.base, _props(
            z=x.has("z") and y.has("z") and w.has("z"),
            o=(x.has("z") and y.has("o") and w.has("o"))
            or (x.has("o") and y.has("z") and w.has("z")),
            d=x.has("d") and w.has("d"),
            u=y.has("u") and w.has("u"),
        ))
    if name == "or_b":
        _expect(x, "B", "d", f"{where} first argument")
        _expect(y, "W", "d", f"{where} second argument")
        return MiniscriptType("B", _props(
            z=x.has("z") and y.has("z"),
            o=(x.has("z") and y.has("o")) or (x.has("o") and y.has("z")),
            d=True, u=True,
        ))
    if name == "or_c":
        _expect(x, "B", "du", f"{where} first argument")
        _expect(y, "V", "", f"{where} second argument")
        return MiniscriptType("V", _props(
            z=x.has("z") and y.has("z"),
            o=x.has("o") and y.has("z"),
        ))
    if name == "or_d":
        _expect(x, "B", "du", f"{where} first argument")
        _expect(y, "B", "", f"{where} second argument")
        return MiniscriptType("B", _props(
            z=x.has("z") and y.has("z"),
            o=x.has("o") and y.has("z"),
            d=y.has("d"),
            u=y.has("u"),
        ))
    if name == "or_i":
        _expect(x, "BKV", "", f"{where} first argument")
        if x.base != y.base:
            raise TemplateParseError(f"{where} branches have types {x} and {y}")
        return MiniscriptType(x.base, _props(
            o=x.has("z") and y.has("z"),
            d=x.has("d") or y.has("d"),
            u=x.has("u") and y.has("u"),
        ))

    raise TemplateParseError(f"Cannot type fragment {name!r}")


def _wrapper_type(wrapper: str, x: MiniscriptType) -> MiniscriptType:
    where = f"{wrapper}: wrapper"

    if wrapper in "as":
        _expect(x, "B", "o" if wrapper == "s" else "", where)
        return MiniscriptType("W", _props(d=x.has("d"), u=x.has("u")))
    if wrapper == "c":
        _expect(x, "K", "", where)
        return MiniscriptType("B", _props(o=x.has("o"), n=x.has("n"), d=x.has("d"), u=True))
    if wrapper == "t":
        _expect(x, "V", "", where)
        return MiniscriptType("B", _props(z=x.has("z"), o=x.has("o"), n=x.has("n"), u=True))
    if wrapper == "d":
        _expect(x, "V", "z", where)
        return MiniscriptType("B", _props(o=True, n=True, d=True, u=True))
    if wrapper == "v":
        _expect(x, "B", "", where)
        return MiniscriptType("V", _props(z=x.has("z"), o=x.has("o"), n=x.has("n")))
    if wrapper == "j":
        _expect(x, "B", "n", where)
        return MiniscriptType("B", _props(o=x.has("o"), n=True, d=True, u=x.has("u")))
    if wrapper == "n":
        _expect(x, "B", "", where)
        return MiniscriptType("B", _props(
            z=x.has("z"), o=x.has("o"), n=x.has("n"), d=x.has("d"), u=True))
    # l: or_i(0,X), u: or_i(X,0)
    _expect(x, "B", "", where)
    return MiniscriptType("B", _props(o=x.has("z"), d=True, u=x.has("u")))


def miniscript_type(node: Fragment) -> MiniscriptType:
    """Type of `node`, wrappers applied innermost first."""
    t = _fragment_type(node)
    for wrapper in reversed(node.wrappers):
        t = _wrapper_type(wrapper, t)
    return t


def typecheck(template: PolicyTemplate):
    """
    Check that every miniscript in `template` is well typed with a B-type
    top level; scripts failing this cannot be satisfied.

    Raises:
        TemplateParseError: fragment or wrapper applied to the wrong type
    """
    node = template.root
    if node.name in ("pkh", "wpkh", "pk"):
        return
    if node.name == "sh":
        node = node.args[0]
        if node.name == "wpkh":
            return
    if node.name == "wsh":
        node = node.args[0]

    t = miniscript_type(node)
    if t.base != "B":
        raise TemplateParseError(f"Top level of {node} has type {t}, needs B")


def parse(text: str) -> PolicyTemplate:
    """
    Parse descriptor template text.

    A trailing "#checksum", if present, must match.

    Args:
        text: e.g. "wsh(multi(2,Alice,Bob,Carol))"

    Returns:
        PolicyTemplate

    Raises:
        TemplateParseError: malformed or unsupported template
    """
    text = text.strip()
    if "#" in text:
        body, _, checksum = text.partition("#")
        if checksum != descriptor_checksum(body):
            raise TemplateParseError(f"Invalid checksum {checksum!r} for {body!r}")
        text = body
    else:
        # rejects characters outside the descriptor charset early
        _expand(text)

    reader = _Reader(text)
    expr = reader.expr()
    if reader.pos != len(text):
        raise reader.error("Unexpected trailing input")
    template = PolicyTemplate(_top(expr))
    typecheck(template)
    return template
