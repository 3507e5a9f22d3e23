"""
Utilities to parse Miniscript from its string representation.

Keys are not interpreted by the parser itself: each key token is handed to a
resolver which returns the name to print it as and the DescriptorKey it stands for.
"""

from ..key import DescriptorKeyError, KeyDerivationError
from . import fragments
from .errors import MiniscriptMalformed


WRAPPERS = {
    "a": fragments.WrapA,
    "s": fragments.WrapS,
    "c": fragments.WrapC,
    "t": fragments.WrapT,
    "d": fragments.WrapD,
    "v": fragments.WrapV,
    "j": fragments.WrapJ,
    "n": fragments.WrapN,
    "l": fragments.WrapL,
    "u": fragments.WrapU,
}

HASHES = {
    "sha256": fragments.Sha256,
    "hash256": fragments.Hash256,
    "ripemd160": fragments.Ripemd160,
    "hash160": fragments.Hash160,
}

# Connectives and the number of subs they take.
CONNECTIVES = {
    "and_v": (fragments.AndV, 2),
    "and_b": (fragments.AndB, 2),
    "and_n": (fragments.AndN, 2),
    "or_b": (fragments.OrB, 2),
    "or_c": (fragments.OrC, 2),
    "or_d": (fragments.OrD, 2),
    "or_i": (fragments.OrI, 2),
    "andor": (fragments.AndOr, 3),
}

KEY_FRAGMENTS = ["pk", "pkh", "pk_k", "pk_h"]
MULTI_FRAGMENTS = {"multi": fragments.Multi, "sortedmulti": fragments.SortedMulti}


def split_params(string):
    """Read a list of values before the next ')'. Split the result by comma."""
    i = string.find(")")
    if i < 0:
        raise MiniscriptMalformed(f"Missing closing parenthesis in '{string}'")

    params, remaining = string[:i], string[i + 1:]
    return params.split(","), remaining


def parse_int(string, fragment):
    if not string.isascii() or not string.isdigit():
        raise MiniscriptMalformed(f"Invalid number '{string}' in '{fragment}'")
    return int(string)


class MiniscriptParser:
    """Parse a Miniscript string, resolving keys with {key_resolver}.

    :param key_resolver: a callable taking a key token and returning a tuple of
                         (name, DescriptorKey).
    """

    def __init__(self, key_resolver):
        self.key_resolver = key_resolver

    def resolve_key(self, token):
        if token == "":
            raise MiniscriptMalformed("Empty key")
        try:
            return self.key_resolver(token)
        except KeyDerivationError:
            raise
        except DescriptorKeyError as e:
            raise MiniscriptMalformed(f"Invalid key '{token}': {e.message}") from e

    def parse_many(self, string):
        """Read a list of nodes before the next ')'."""
        subs = []
        remaining = string
        while True:
            sub, remaining = self.parse_one(remaining)
            subs.append(sub)
            if remaining[:1] == ")":
                return subs, remaining[1:]
            if remaining[:1] != ",":
                raise MiniscriptMalformed(f"Expected ',' or ')' at '{remaining}'")
            remaining = remaining[1:]

    def parse_one(self, string):
        """Read a node and its subs recursively from a string.
        Returns the node and the part of the string not consumed.
        """
        if string == "":
            raise MiniscriptMalformed("Unexpected end of Miniscript")

        # We special case fragments.Just1 and fragments.Just0 since they are the only one
        # which don't have a function syntax.
        if string[0] == "0":
            return fragments.Just0(), string[1:]
        if string[0] == "1":
            return fragments.Just1(), string[1:]

        # Now, find the separator for all functions.
        i = next((i for i, char in enumerate(string) if char in "(:"), None)
        if i is None or i == 0:
            raise MiniscriptMalformed(f"Invalid fragment at '{string}'")
        char = string[i]

        # Wrappers, we may have many of them: 'vc:' is 'v:c:'.
        if char == ":":
            tag, remaining = string[0], (string[1:] if i > 1 else string[2:])
            if tag not in WRAPPERS:
                raise MiniscriptMalformed(f"Unknown wrapper '{tag}' at '{string}'")
            sub, remaining = self.parse_one(remaining)
            return WRAPPERS[tag](sub), remaining

        tag, remaining = string[:i], string[i + 1:]

        if tag in KEY_FRAGMENTS:
            params, remaining = split_params(remaining)
            if len(params) != 1:
                raise MiniscriptMalformed(f"'{tag}' takes a single key")
            name, key = self.resolve_key(params[0])
            if tag == "pk":
                return fragments.WrapC(fragments.Pk(key, name)), remaining
            if tag == "pk_k":
                return fragments.Pk(key, name), remaining
            if tag == "pkh":
                return fragments.WrapC(fragments.Pkh(key, name)), remaining
            return fragments.Pkh(key, name), remaining

        if tag in ["older", "after"]:
            params, remaining = split_params(remaining)
            if len(params) != 1:
                raise MiniscriptMalformed(f"'{tag}' takes a single value")
            value = parse_int(params[0], tag)
            if tag == "older":
                return fragments.Older(value), remaining
            return fragments.After(value), remaining

        if tag in HASHES:
            params, remaining = split_params(remaining)
            if len(params) != 1 or not is_hex(params[0]):
                raise MiniscriptMalformed(f"Invalid digest for '{tag}': '{params}'")
            return HASHES[tag](bytes.fromhex(params[0])), remaining

        if tag in MULTI_FRAGMENTS:
            params, remaining = split_params(remaining)
            if len(params) < 2:
                raise MiniscriptMalformed(f"'{tag}' takes a threshold and keys")
            k = parse_int(params[0], tag)
            resolved = [self.resolve_key(param) for param in params[1:]]
            names = [name for name, _ in resolved]
            keys = [key for _, key in resolved]
            return MULTI_FRAGMENTS[tag](k, keys, names), remaining

        # Non-terminal elements (connectives)
        # We special case fragments.Thresh, as its first sub is an integer.
        if tag == "thresh":
            comma = remaining.find(",")
            if comma < 0:
                raise MiniscriptMalformed(f"Missing threshold in 'thresh({remaining}'")
            k = parse_int(remaining[:comma], tag)
            subs, remaining = self.parse_many(remaining[comma + 1:])
            return fragments.Thresh(k, subs), remaining

        if tag in CONNECTIVES:
            node_cls, n_subs = CONNECTIVES[tag]
            subs, remaining = self.parse_many(remaining)
            if len(subs) != n_subs:
                raise MiniscriptMalformed(
                    f"'{tag}' takes {n_subs} arguments, got {len(subs)}"
                )
            return node_cls(*subs), remaining

        raise MiniscriptMalformed(f"Unknown fragment '{tag}'")

    def parse(self, ms_str):
        node, remaining = self.parse_one(ms_str)
        if remaining != "":
            raise MiniscriptMalformed(
                f"Unexpected trailing characters '{remaining}' in '{ms_str}'"
            )
        return node


def is_hex(s):
    try:
        bytes.fromhex(s)
    except ValueError:
        return False
    return s.isalnum()


def miniscript_from_str(ms_str, key_resolver):
    """Construct miniscript node from string representation"""
    return MiniscriptParser(key_resolver).parse(ms_str)


def miniscript_from_expanded(expanded_miniscript, expansion_map):
    """Construct miniscript node from its string representation with placeholders,
    as returned by the expander, and the map of each placeholder to its key."""

    def resolve(token):
        if token not in expansion_map:
            raise MiniscriptMalformed(f"Unknown key placeholder '{token}'")
        return token, expansion_map[token]

    return miniscript_from_str(expanded_miniscript, resolve)
