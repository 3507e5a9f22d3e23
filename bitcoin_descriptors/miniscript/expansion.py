"""
Miniscript expansion: replace the key expressions of a Miniscript by placeholders.

The expanded Miniscript (eg 'and_v(v:pk(@0),pk(@1))') along with the map of each
placeholder to its key is what the compiler and the satisfier operate on.
"""

import logging

from collections import namedtuple

from ..chains import Chain
from ..ecc import get_backend
from ..key import DescriptorKey
from .parsing import miniscript_from_str


logger = logging.getLogger(__name__)


class ExpandedMiniscript(
    namedtuple("ExpandedMiniscript", ["node", "expanded_miniscript", "expansion_map"])
):
    """A Miniscript with its keys replaced by '@i' placeholders.

    :param node: The parsed Miniscript.
    :param expanded_miniscript: The Miniscript string, with placeholders.
    :param expansion_map: Mapping from each placeholder to its DescriptorKey, in
                          order of first occurrence.
    """


class KeyExpander:
    """Assign a placeholder to every new key token, reusing it for repeated tokens."""

    def __init__(self, is_segwit, chain, ecc):
        self.is_segwit = is_segwit
        self.chain = chain
        self.ecc = ecc
        self.expansion_map = {}
        self.placeholders = {}

    def __call__(self, token):
        if token not in self.placeholders:
            key = DescriptorKey(token, is_segwit=self.is_segwit, chain=self.chain, ecc=self.ecc)
            placeholder = f"@{len(self.expansion_map)}"
            self.placeholders[token] = placeholder
            self.expansion_map[placeholder] = key
        placeholder = self.placeholders[token]
        return placeholder, self.expansion_map[placeholder]


def expand_miniscript(miniscript, is_segwit=True, chain=Chain.MAIN, ecc=None):
    """Parse the {miniscript} string, and replace its keys by placeholders.

    The keys must not contain wildcards anymore: they are derived beforehand by the
    descriptor layer.
    """
    expander = KeyExpander(is_segwit, chain, get_backend(ecc))
    node = miniscript_from_str(miniscript, expander)
    expanded = str(node)
    logger.debug("Expanded '%s' to '%s'", miniscript, expanded)
    return ExpandedMiniscript(node, expanded, expander.expansion_map)
