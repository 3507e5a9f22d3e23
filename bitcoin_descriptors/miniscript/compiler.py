"""
Miniscript compilation to Bitcoin Script.
"""

import logging

from .errors import MiniscriptTypeError
from .parsing import miniscript_from_expanded


logger = logging.getLogger(__name__)


def check_sane(node):
    """Raise a MiniscriptTypeError if this Miniscript can't be used as a top-level Script.

    It must be of type 'B', always be non-malleably satisfiable, always require a
    signature, not mix heights and times in its timelocks and not reuse keys.
    """
    if not node.p.B:
        raise MiniscriptTypeError(f"Top-level Miniscript is not of type 'B': '{node}'")
    if not node.is_nonmalleable:
        raise MiniscriptTypeError(f"Miniscript is malleable: '{node}'")
    if not node.needs_sig:
        raise MiniscriptTypeError(f"Miniscript does not always require a signature: '{node}'")
    if not node.no_timelock_mix:
        raise MiniscriptTypeError(f"Miniscript contains mixed timelock units: '{node}'")
    pubkeys = [key.bytes() for key in node.keys]
    if len(set(pubkeys)) != len(pubkeys):
        raise MiniscriptTypeError(f"Miniscript contains duplicate keys: '{node}'")


def compile_node(node):
    """Get the Script for this sane Miniscript node."""
    check_sane(node)
    script = node.script
    logger.debug("Compiled '%s' to a %d bytes Script", node, len(script))
    return bytes(script)


def compile_miniscript(expanded_miniscript, expansion_map):
    """Compile the {expanded_miniscript} (with '@i' placeholders) to Bitcoin Script.

    :param expansion_map: Mapping from each placeholder to its DescriptorKey.
    :return: The Script, as bytes. Resource limits are not checked here.
    """
    node = miniscript_from_expanded(expanded_miniscript, expansion_map)
    return compile_node(node)
