"""
Parsing of the Output Script Descriptors grammar.

The descriptor string is split into its script expressions, and dispatched to one of
the supported kinds. The arguments (keys, Miniscript, address) are interpreted by the
Descriptor itself.
"""

import logging

from collections import namedtuple
from enum import Enum, auto

from .checksum import descsum_check
from .errors import DescriptorParsingError


logger = logging.getLogger(__name__)


class DescriptorKind(Enum):
    ADDR = auto()
    PK = auto()
    PKH = auto()
    WPKH = auto()
    SH_WPKH = auto()
    WSH_MINISCRIPT = auto()
    SH_WSH_MINISCRIPT = auto()
    SH_MINISCRIPT = auto()


ParsedDescriptor = namedtuple("ParsedDescriptor", ["kind", "argument"])


def split_checksum(desc_str, strict=False):
    """Removes and check the provided checksum.
    If not told otherwise, this won't fail on a missing checksum.

    :param strict: whether to require the presence of the checksum.
    """
    desc_split = desc_str.split("#")
    if len(desc_split) > 2:
        raise DescriptorParsingError(f"Multiple '#' symbols in '{desc_str}'")
    if len(desc_split) != 2:
        if strict:
            raise DescriptorParsingError(f"Missing checksum in '{desc_str}'")
        return desc_split[0]

    descriptor, checksum = desc_split
    if not descsum_check(desc_str):
        raise DescriptorParsingError(
            f"Checksum '{checksum}' is invalid for '{descriptor}'"
        )

    return descriptor


def substitute_index(desc_str, index=None):
    """Replace every wildcard of the descriptor by the derivation {index}."""
    if "*" not in desc_str:
        return desc_str
    if index is None:
        raise DescriptorParsingError(f"Index is required for ranged descriptor '{desc_str}'")
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise DescriptorParsingError(f"Invalid index '{index}' for '{desc_str}'")
    return desc_str.replace("*", str(index))


def split_function(expr):
    """Split a 'name(argument)' script expression into ('name', 'argument').

    Returns None if {expr} is not a single script expression.
    """
    start = expr.find("(")
    if start <= 0 or not expr.endswith(")"):
        return None

    depth = 0
    for i, char in enumerate(expr[start:], start):
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            # The first opening parenthesis must be closed by the last character.
            if depth == 0 and i != len(expr) - 1:
                return None
            if depth < 0:
                return None
    if depth != 0:
        return None

    return expr[:start], expr[start + 1: -1]


def parse_key_argument(name, argument, expr):
    if argument == "" or any(c in argument for c in "(),"):
        raise DescriptorParsingError(f"Invalid key argument for '{name}()' in '{expr}'")
    return argument


def descriptor_from_str(desc_str):
    """Dispatch a Bitcoin Output Script Descriptor (without checksum) to its kind.

    :return: A ParsedDescriptor of the kind and the argument to interpret.
    """
    function = split_function(desc_str)
    if function is None:
        raise DescriptorParsingError(f"Invalid descriptor '{desc_str}'")
    name, inner = function

    if name == "addr":
        parsed = ParsedDescriptor(DescriptorKind.ADDR, inner)
    elif name == "pk":
        parsed = ParsedDescriptor(DescriptorKind.PK, parse_key_argument(name, inner, desc_str))
    elif name == "pkh":
        parsed = ParsedDescriptor(DescriptorKind.PKH, parse_key_argument(name, inner, desc_str))
    elif name == "wpkh":
        parsed = ParsedDescriptor(DescriptorKind.WPKH, parse_key_argument(name, inner, desc_str))
    elif name == "wsh":
        parsed = ParsedDescriptor(DescriptorKind.WSH_MINISCRIPT, inner)
    elif name == "sh":
        inner_function = split_function(inner)
        if inner_function is not None and inner_function[0] == "wpkh":
            key = parse_key_argument("wpkh", inner_function[1], desc_str)
            parsed = ParsedDescriptor(DescriptorKind.SH_WPKH, key)
        elif inner_function is not None and inner_function[0] == "wsh":
            parsed = ParsedDescriptor(DescriptorKind.SH_WSH_MINISCRIPT, inner_function[1])
        else:
            parsed = ParsedDescriptor(DescriptorKind.SH_MINISCRIPT, inner)
    else:
        raise DescriptorParsingError(f"Unknown descriptor fragment '{name}' in '{desc_str}'")

    if parsed.argument == "":
        raise DescriptorParsingError(f"Empty argument in '{desc_str}'")
    logger.debug("Dispatched '%s' as %s", desc_str, parsed.kind.name)
    return parsed
