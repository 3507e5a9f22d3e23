"""
Satisfaction of a Miniscript: get a witness for it from signatures and preimages.

The satisfier also answers the question of which timelocks to commit to, before
any signature is available: see derive_time_constraints().
"""

import logging

from collections import namedtuple

from ..utils.hashes import DIGEST_SIZES, HASH_FUNCTIONS
from .errors import MiniscriptMalformed, UnsatisfiableError
from .parsing import is_hex, miniscript_from_expanded
from .satisfaction import SatisfactionMaterial, TimeConstraints


logger = logging.getLogger(__name__)


SatisfactionResult = namedtuple("SatisfactionResult", ["witness", "lock_time", "sequence"])
PartialSig = namedtuple("PartialSig", ["pubkey", "signature"])


class Preimage:
    """The preimage of a hash used in a Miniscript hash fragment.

    :param digest: The fragment as written in the Miniscript, eg 'sha256(<hex>)'.
    :param preimage: The 32 bytes preimage, as bytes or hex.
    """

    def __init__(self, digest, preimage):
        self.digest = digest
        algorithm, _, rest = digest.partition("(")
        if algorithm not in HASH_FUNCTIONS or not rest.endswith(")"):
            raise MiniscriptMalformed(f"Invalid hash fragment '{digest}'")
        digest_hex = rest[:-1]
        if not is_hex(digest_hex) or len(digest_hex) != 2 * DIGEST_SIZES[algorithm]:
            raise MiniscriptMalformed(f"Invalid digest in '{digest}'")

        if isinstance(preimage, str):
            if not is_hex(preimage):
                raise MiniscriptMalformed(f"Invalid preimage '{preimage}'")
            preimage = bytes.fromhex(preimage)
        if len(preimage) != 32:
            raise MiniscriptMalformed(f"Preimage for '{digest}' must be 32 bytes")
        if HASH_FUNCTIONS[algorithm](preimage) != bytes.fromhex(digest_hex):
            raise MiniscriptMalformed(f"Preimage does not match '{digest}'")

        self.algorithm = algorithm
        self.digest_bytes = bytes.fromhex(digest_hex)
        self.preimage = preimage

    def __repr__(self):
        return f"Preimage({self.digest}, {self.preimage.hex()})"


def preimages_map(preimages):
    return {(p.algorithm, p.digest_bytes): p.preimage for p in preimages}


def signatures_map(signatures):
    """Get a mapping from public key to signature out of a list of PartialSig or
    of a mapping."""
    if isinstance(signatures, dict):
        return dict(signatures)
    return {sig.pubkey: sig.signature for sig in signatures}


def satisfy_node(node, signatures, preimages=(), time_constraints=None):
    """Get the smallest non-malleable witness for {node}.

    :param signatures: List of PartialSig, or mapping from public key to signature.
    :param preimages: List of Preimage.
    :param time_constraints: The TimeConstraints committed in the transaction. If set,
                             only the timelocks it covers can be used.
    """
    if time_constraints is not None:
        try:
            time_constraints.check()
        except ValueError as e:
            raise UnsatisfiableError(str(e))

    material = SatisfactionMaterial(
        preimages=preimages_map(preimages),
        signatures=signatures_map(signatures),
        time_constraints=time_constraints,
    )
    sat = node.satisfaction(material)
    if sat.is_unavailable() or not sat.has_sig:
        raise UnsatisfiableError(f"Cannot produce a non-malleable witness for '{node}'")
    logger.debug(
        "Satisfied '%s' with %d stack elements (locktime: %s, sequence: %s)",
        node,
        len(sat.witness),
        sat.lock_time,
        sat.sequence,
    )
    return SatisfactionResult(sat.witness, sat.lock_time, sat.sequence)


def satisfy_miniscript(
    expanded_miniscript, expansion_map, signatures, preimages=(), time_constraints=None
):
    """Get the smallest non-malleable witness for the {expanded_miniscript}.

    :return: A SatisfactionResult with the witness stack (bottom first) and the
             timelocks the chosen spending path needs.
    """
    node = miniscript_from_expanded(expanded_miniscript, expansion_map)
    return satisfy_node(node, signatures, preimages, time_constraints)


def derive_time_constraints(node, signers, preimages=()):
    """Get the timelocks of the spending path the satisfier will pick once
    all {signers} have signed.

    :param signers: The public keys (as bytes) which will provide a signature.
    :param preimages: List of Preimage.
    """
    material = SatisfactionMaterial(preimages=preimages_map(preimages), signers=signers)
    sat = node.satisfaction(material)
    if sat.is_unavailable() or not sat.has_sig:
        raise UnsatisfiableError(
            f"'{node}' can't be satisfied by the given signers and preimages"
        )
    try:
        return TimeConstraints(sat.lock_time, sat.sequence).check()
    except ValueError as e:
        raise UnsatisfiableError(str(e))
