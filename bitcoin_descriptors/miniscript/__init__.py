"""
Miniscript
==========

Miniscript is an extension to Bitcoin Output Script descriptors. It is a language for \
writing (a subset of) Bitcoin Scripts in a structured way, enabling analysis, composition, \
generic signing and more.

For more information about Miniscript, see https://bitcoin.sipa.be/miniscript.
"""

from .compiler import check_sane, compile_miniscript, compile_node
from .errors import (
    MiniscriptMalformed,
    MiniscriptPropertyError,
    MiniscriptTypeError,
    UnsatisfiableError,
)
from .expansion import ExpandedMiniscript, expand_miniscript
from .fragments import Node
from .parsing import miniscript_from_expanded, miniscript_from_str
from .satisfaction import SatisfactionMaterial, TimeConstraints
from .satisfier import (
    PartialSig,
    Preimage,
    SatisfactionResult,
    derive_time_constraints,
    satisfy_miniscript,
    satisfy_node,
)
