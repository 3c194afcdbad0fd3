"""
Paper Wallet - Template Translator

Rebuilds a template with every key leaf substituted through a Resolver.
Plain positions go through Resolver.plain(), hashed positions (pk_h/pkh in
miniscript) through Resolver.hashed(). The translator does not cache: an
alias used twice is resolved twice, dedup is up to the resolver.
"""

from typing import Union

from .descriptor import Fragment, KeyLeaf, LeafKind, Literal, PolicyTemplate
from .key_store import AliasKeyStore
from .keys import hash160_hex


class Resolver:
    """Substitution strategy for the two classes of key position."""

    def plain(self, alias: str) -> str:
        raise NotImplementedError

    def hashed(self, alias: str) -> str:
        raise NotImplementedError


class KeyStoreResolver(Resolver):
    """
    Key generation pass: both positions consult the same store, so an alias
    seen as pk(Alice) and pk_h(Alice) maps to one key pair.
    """

    def __init__(self, store: AliasKeyStore):
        self.store = store

    def plain(self, alias: str) -> str:
        return self.store.get_or_create(alias)

    def hashed(self, alias: str) -> str:
        return hash160_hex(self.store.get_or_create(alias))


class PublicKeyResolver(Resolver):
    """Public key in both positions; for consumers that hash keys themselves."""

    def __init__(self, store: AliasKeyStore):
        self.store = store

    def plain(self, alias: str) -> str:
        return self.store.get(alias).public

    def hashed(self, alias: str) -> str:
        return self.store.get(alias).public


def _translate_node(node: Union[Fragment, KeyLeaf, Literal], resolver: Resolver):
    if isinstance(node, KeyLeaf):
        if node.kind == LeafKind.HASHED:
            return KeyLeaf(resolver.hashed(node.value), node.kind)
        return KeyLeaf(resolver.plain(node.value), node.kind)
    if isinstance(node, Fragment):
        return Fragment(
            node.name,
            tuple(_translate_node(arg, resolver) for arg in node.args),
            node.wrappers,
        )
    return node


def translate(template: PolicyTemplate, resolver: Resolver) -> PolicyTemplate:
    """
    Substitute every key leaf of `template` in document order.

    Args:
        template: parsed template, left untouched
        resolver: substitution strategy

    Returns:
        New PolicyTemplate with substituted leaves

    Raises:
        Whatever the resolver raises (e.g. MissingMappedKeyError); nothing
        partial is returned
    """
    return PolicyTemplate(_translate_node(template.root, resolver))
