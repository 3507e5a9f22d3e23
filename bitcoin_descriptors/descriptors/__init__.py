"""
Output Script Descriptors.

See https://github.com/bitcoin/bips/blob/master/bip-0380.mediawiki.
"""

import logging

from collections import namedtuple

from ..chains import Chain
from ..ecc import get_backend
from ..errors import DescriptorError
from ..key import DescriptorKey, DescriptorKeyError, KeyDerivationError
from ..miniscript import fragments
from ..miniscript.compiler import compile_node
from ..miniscript.errors import (
    MiniscriptMalformed,
    MiniscriptPropertyError,
    MiniscriptTypeError,
)
from ..miniscript.expansion import expand_miniscript
from ..miniscript.satisfaction import TimeConstraints
from ..miniscript.satisfier import derive_time_constraints, satisfy_node
from ..utils.script import CScript
from . import checksum as descsum
from . import payments
from .errors import DescriptorParsingError, ResourceLimitError
from .parsing import DescriptorKind, descriptor_from_str, split_checksum, substitute_index


logger = logging.getLogger(__name__)

# The maximum size of a pushed element, and therefore of a P2SH redeem script.
MAX_SCRIPT_ELEMENT_SIZE = 520
# The maximum size of a P2WSH witness script standard transactions may spend.
MAX_STANDARD_P2WSH_SCRIPT_SIZE = 3600
# The maximum number of non-push opcodes in a Script.
MAX_OPS_PER_SCRIPT = 201

# The fragments a bare P2SH Miniscript may start with, unless told otherwise.
P2SH_ALLOWED_FRAGMENTS = (
    "pk(",
    "pkh(",
    "wpkh(",
    "combo(",
    "multi(",
    "sortedmulti(",
    "multi_a(",
    "sortedmulti_a(",
)

SEGWIT_KINDS = [
    DescriptorKind.WPKH,
    DescriptorKind.SH_WPKH,
    DescriptorKind.WSH_MINISCRIPT,
    DescriptorKind.SH_WSH_MINISCRIPT,
]

MINISCRIPT_ERRORS = (MiniscriptMalformed, MiniscriptTypeError, MiniscriptPropertyError)


Expansion = namedtuple(
    "Expansion",
    ["expanded_expression", "miniscript", "expanded_miniscript", "expansion_map"],
)


def check_script_limits(script, max_size, description):
    if len(script) > max_size:
        raise ResourceLimitError(
            f"{description} is too large: {len(script)} bytes (maximum {max_size})"
        )
    ops_count = CScript(script).count_non_push_ops()
    if ops_count > MAX_OPS_PER_SCRIPT:
        raise ResourceLimitError(
            f"{description} has too many operations: {ops_count} (maximum {MAX_OPS_PER_SCRIPT})"
        )


class Descriptor:
    """A Bitcoin Output Script Descriptor, evaluated at a given derivation index.

    :param expression: The descriptor string, with an optional checksum.
    :param index: The index to derive the ranged keys ('/*') at.
    :param checksum_required: Whether to fail if the checksum is missing.
    :param allow_miniscript_in_p2sh: Whether to accept any Miniscript in 'sh()'.
    :param chain: The Chain the descriptor is used on.
    :param preimages: The Preimage of the hash fragments that can be satisfied.
    :param signers_key_expressions: The key expressions which are going to sign, by
                                    default all of them. Used to find the timelocks
                                    a spending transaction needs.
    :param ecc: The EccBackend to use.
    """

    def __init__(
        self,
        expression,
        index=None,
        checksum_required=False,
        allow_miniscript_in_p2sh=False,
        chain=Chain.MAIN,
        preimages=(),
        signers_key_expressions=None,
        ecc=None,
    ):
        self.expression = expression
        self.index = index
        self.chain = chain
        self.preimages = list(preimages)
        self.signers_key_expressions = signers_key_expressions
        self.allow_miniscript_in_p2sh = allow_miniscript_in_p2sh
        self.ecc = get_backend(ecc)

        self._node = None
        self._miniscript = None
        self._expanded_miniscript = None
        self._expanded_expression = None
        self._expansion_map = {}

        body = split_checksum(expression, strict=checksum_required)
        parsed = descriptor_from_str(substitute_index(body, index))
        self.kind = parsed.kind

        builders = {
            DescriptorKind.ADDR: self._from_address,
            DescriptorKind.PK: self._from_pk,
            DescriptorKind.PKH: self._from_pkh,
            DescriptorKind.WPKH: self._from_wpkh,
            DescriptorKind.SH_WPKH: self._from_sh_wpkh,
            DescriptorKind.WSH_MINISCRIPT: self._from_wsh,
            DescriptorKind.SH_WSH_MINISCRIPT: self._from_sh_wsh,
            DescriptorKind.SH_MINISCRIPT: self._from_sh,
        }
        self.payment = builders[self.kind](parsed.argument)
        logger.debug("Parsed '%s' as a %s output", expression, self.payment.name)

    def __repr__(self):
        return f"Descriptor({self.expression})"

    def _parse_key(self, key_expression, is_segwit):
        try:
            return DescriptorKey(key_expression, is_segwit=is_segwit, chain=self.chain, ecc=self.ecc)
        except KeyDerivationError:
            raise
        except DescriptorKeyError as e:
            raise DescriptorParsingError(f"Invalid key in '{self.expression}': {e.message}") from e

    def _set_single_key(self, key_expression, is_segwit, template, hashed):
        key = self._parse_key(key_expression, is_segwit)
        self._expansion_map = {"@0": key}
        self._expanded_expression = template.format("@0")
        key_node = fragments.Pkh(key, "@0") if hashed else fragments.Pk(key, "@0")
        self._node = fragments.WrapC(key_node)
        return key.bytes()

    def _set_miniscript(self, miniscript, is_segwit, template):
        try:
            expanded = expand_miniscript(miniscript, is_segwit=is_segwit, chain=self.chain, ecc=self.ecc)
            script = compile_node(expanded.node)
        except MINISCRIPT_ERRORS as e:
            raise DescriptorParsingError(
                f"Invalid Miniscript '{miniscript}' in '{self.expression}': {e.message}"
            ) from e
        self._node = expanded.node
        self._miniscript = miniscript
        self._expanded_miniscript = expanded.expanded_miniscript
        self._expansion_map = expanded.expansion_map
        self._expanded_expression = template.format(expanded.expanded_miniscript)
        return script

    def _from_address(self, address):
        return payments.from_address(address, self.chain)

    def _from_pk(self, key_expression):
        pubkey = self._set_single_key(key_expression, False, "pk({})", hashed=False)
        return payments.p2pk(pubkey, self.chain)

    def _from_pkh(self, key_expression):
        pubkey = self._set_single_key(key_expression, False, "pkh({})", hashed=True)
        return payments.p2pkh(pubkey, self.chain)

    def _from_wpkh(self, key_expression):
        pubkey = self._set_single_key(key_expression, True, "wpkh({})", hashed=True)
        return payments.p2wpkh(pubkey, self.chain)

    def _from_sh_wpkh(self, key_expression):
        pubkey = self._set_single_key(key_expression, True, "sh(wpkh({}))", hashed=True)
        return payments.p2sh_p2wpkh(pubkey, self.chain)

    def _from_wsh(self, miniscript):
        script = self._set_miniscript(miniscript, True, "wsh({})")
        check_script_limits(script, MAX_STANDARD_P2WSH_SCRIPT_SIZE, "Witness script")
        return payments.p2wsh(script, self.chain)

    def _from_sh_wsh(self, miniscript):
        script = self._set_miniscript(miniscript, True, "sh(wsh({}))")
        check_script_limits(script, MAX_STANDARD_P2WSH_SCRIPT_SIZE, "Witness script")
        return payments.p2sh_p2wsh(script, self.chain)

    def _from_sh(self, miniscript):
        if not self.allow_miniscript_in_p2sh and not miniscript.startswith(P2SH_ALLOWED_FRAGMENTS):
            raise DescriptorParsingError(
                f"Miniscript in P2SH is not allowed: '{self.expression}'. Use "
                "allow_miniscript_in_p2sh if you know what you are doing."
            )
        script = self._set_miniscript(miniscript, False, "sh({})")
        check_script_limits(script, MAX_SCRIPT_ELEMENT_SIZE, "Redeem script")
        return payments.p2sh(script, self.chain)

    @property
    def script_pubkey(self):
        """Get the ScriptPubKey (output 'locking' Script) for this descriptor."""
        return self.payment.output

    @property
    def address(self):
        if self.payment.address is None:
            raise DescriptorError(f"There is no address for '{self.expression}'")
        return self.payment.address

    @property
    def redeem_script(self):
        return self.payment.redeem_script

    @property
    def witness_script(self):
        return self.payment.witness_script

    @property
    def is_segwit(self):
        if self.kind == DescriptorKind.ADDR:
            raise DescriptorError(f"Can't tell whether '{self.expression}' is segwit")
        return self.kind in SEGWIT_KINDS

    @property
    def miniscript(self):
        return self._miniscript

    @property
    def expanded_miniscript(self):
        return self._expanded_miniscript

    @property
    def expansion_map(self):
        return dict(self._expansion_map)

    def expand(self):
        """Get the descriptor with its keys replaced by '@i' placeholders."""
        return Expansion(
            self._expanded_expression,
            self._miniscript,
            self._expanded_miniscript,
            dict(self._expansion_map),
        )

    def _check_satisfiable(self):
        if self._node is None:
            raise DescriptorError(f"Can't satisfy '{self.expression}', the Script is unknown")

    def signers_pubkeys(self):
        """The public keys which are going to sign for this descriptor."""
        if self.signers_key_expressions is None:
            return [key.bytes() for key in self._expansion_map.values()]
        return [
            DescriptorKey(
                expr, is_segwit=self.is_segwit, chain=self.chain, index=self.index, ecc=self.ecc
            ).bytes()
            for expr in self.signers_key_expressions
        ]

    def time_constraints(self):
        """The nLockTime and nSequence the spending transaction needs to set, as
        a TimeConstraints."""
        self._check_satisfiable()
        if self._miniscript is None:
            return TimeConstraints()
        return derive_time_constraints(self._node, self.signers_pubkeys(), self.preimages)

    @property
    def lock_time(self):
        return self.time_constraints().lock_time

    @property
    def sequence(self):
        return self.time_constraints().sequence

    def script_satisfaction(self, signatures):
        """Get the witness stack (bottom first) to spend from this descriptor.

        The witness respects the timelocks computed for the signers. The witness
        script or redeem script is not part of it.

        :param signatures: List of PartialSig, or mapping from public key to signature.
        """
        self._check_satisfiable()
        constraints = self.time_constraints() if self._miniscript is not None else None
        return satisfy_node(self._node, signatures, self.preimages, constraints).witness

    @staticmethod
    def checksum(desc_str):
        """Get the checksum of a descriptor without one."""
        return descsum.checksum(desc_str)


class DescriptorsFactory:
    """Descriptors, keys and Miniscript bound to an elliptic curve backend."""

    def __init__(self, ecc=None):
        self.ecc = get_backend(ecc)

    def descriptor(self, expression, **kwargs):
        return Descriptor(expression, ecc=self.ecc, **kwargs)

    def parse_key_expression(self, key_expression, is_segwit=True, chain=Chain.MAIN, index=None):
        return DescriptorKey(
            key_expression, is_segwit=is_segwit, chain=chain, index=index, ecc=self.ecc
        )

    def expand_miniscript(self, miniscript, is_segwit=True, chain=Chain.MAIN):
        return expand_miniscript(miniscript, is_segwit=is_segwit, chain=chain, ecc=self.ecc)
