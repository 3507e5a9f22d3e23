"""
Miniscript fragments.

A fragment knows its Script, its type (see property.py), the malleability properties
of its (dis)satisfactions and how to build them out of a SatisfactionMaterial. The
typing rules are the segwit v0 ones from https://bitcoin.sipa.be/miniscript/.
"""

import itertools

from ..key import DescriptorKey
from ..utils.hashes import hash160
from ..utils.script import (
    CScript,
    OP_0,
    OP_0NOTEQUAL,
    OP_1,
    OP_ADD,
    OP_BOOLAND,
    OP_BOOLOR,
    OP_CHECKLOCKTIMEVERIFY,
    OP_CHECKMULTISIG,
    OP_CHECKMULTISIGVERIFY,
    OP_CHECKSEQUENCEVERIFY,
    OP_CHECKSIG,
    OP_CHECKSIGVERIFY,
    OP_DUP,
    OP_ELSE,
    OP_ENDIF,
    OP_EQUAL,
    OP_EQUALVERIFY,
    OP_FROMALTSTACK,
    OP_HASH160,
    OP_HASH256,
    OP_IF,
    OP_IFDUP,
    OP_NOTIF,
    OP_RIPEMD160,
    OP_SHA256,
    OP_SIZE,
    OP_SWAP,
    OP_TOALTSTACK,
    OP_VERIFY,
)

from .errors import MiniscriptMalformed, MiniscriptTypeError
from .property import Property
from .satisfaction import LOCKTIME_THRESHOLD, SEQUENCE_LOCKTIME_TYPE_FLAG, Satisfaction


# The maximum number of keys in a CHECKMULTISIG.
MAX_PUBKEYS_PER_MULTISIG = 20

# The opcodes a 'v:' wrapper is merged into, and their VERIFY version.
VERIFY_OPCODES = {
    OP_CHECKSIG: OP_CHECKSIGVERIFY,
    OP_CHECKMULTISIG: OP_CHECKMULTISIGVERIFY,
    OP_EQUAL: OP_EQUALVERIFY,
}

TIMELOCK_KINDS = ("abs_heightlocks", "abs_timelocks", "rel_heightlocks", "rel_timelocks")


def check_type(condition, fragment, subs):
    if not condition:
        raise MiniscriptTypeError(
            f"Invalid argument type(s) for '{fragment}': "
            + ", ".join(f"'{sub}' is '{sub.p}'" for sub in subs)
        )


def typed(base, **props):
    """The Property of type {base} with each of the {props} whose condition holds."""
    return Property(base + "".join(name for name, holds in props.items() if holds))


def inherited(sub, props):
    """The subset of {props} the {sub} has."""
    return "".join(c for c in props if getattr(sub.p, c))


def concat(*parts):
    """Concatenate lists of Script elements."""
    return [elem for part in parts for elem in part]


def mixes_units(nodes):
    """Whether satisfying all {nodes} at once could need both a height and a time
    for the same kind of timelock.

    Only distinct nodes are compared: a node with a height in a branch and a time in
    another one reports its own mix through no_timelock_mix.
    """
    for a, b in itertools.combinations(nodes, 2):
        if (a.abs_heightlocks and b.abs_timelocks) or (a.abs_timelocks and b.abs_heightlocks):
            return True
        if (a.rel_heightlocks and b.rel_timelocks) or (a.rel_timelocks and b.rel_heightlocks):
            return True
    return False


class Node:
    """A Miniscript fragment.

    On top of its type, each fragment carries the 's', 'f', 'e' and 'm' properties:
    - needs_sig: any satisfaction requires a signature.
    - is_forced: any dissatisfaction requires a signature.
    - is_expressive: there is a unique unconditional dissatisfaction, and all
      conditional ones require a signature.
    - is_nonmalleable: a non-malleable satisfaction exists for every way of
      satisfying it.
    """

    fragment_name = None
    p = None
    subs = []
    # The Script elements, turned into a CScript by the script property.
    _script = []

    needs_sig = None
    is_forced = None
    is_expressive = None
    is_nonmalleable = None

    # Which kinds of timelocks appear in this fragment, and whether one of its
    # spending paths mixes heights and times.
    abs_heightlocks = False
    abs_timelocks = False
    rel_heightlocks = False
    rel_timelocks = False
    no_timelock_mix = True

    def __init__(self, *args, **kwargs):
        raise NotImplementedError

    @property
    def script(self):
        return CScript(self._script)

    @property
    def keys(self):
        """All the keys of this fragment, in the order they are written."""
        return [key for sub in self.subs for key in sub.keys]

    def set_malleability(self, s, f, e, m):
        self.needs_sig = s
        self.is_forced = f
        self.is_expressive = e
        self.is_nonmalleable = m

    def track_timelocks(self, same_path=()):
        """Inherit the timelocks of the subs. The {same_path} subs are always
        satisfied together, so a height and a time among them conflict."""
        for kind in TIMELOCK_KINDS:
            setattr(self, kind, any(getattr(sub, kind) for sub in self.subs))
        self.no_timelock_mix = all(sub.no_timelock_mix for sub in self.subs) and not mixes_units(
            same_path
        )

    def satisfaction(self, sat_material):
        """The smallest non-malleable Satisfaction given the {sat_material}."""
        raise NotImplementedError

    def dissatisfaction(self):
        raise NotImplementedError

    def repr_args(self):
        return [str(sub) for sub in self.subs]

    def __repr__(self):
        return f"{self.fragment_name}({','.join(self.repr_args())})"


class Just0(Node):
    def __init__(self):
        self._script = [OP_0]
        self.p = Property("Bzud")
        # Can never be satisfied, so trivially any satisfaction has a signature.
        self.set_malleability(s=True, f=False, e=True, m=True)

    def satisfaction(self, sat_material):
        return Satisfaction.unavailable()

    def dissatisfaction(self):
        return Satisfaction(witness=[])

    def __repr__(self):
        return "0"


class Just1(Node):
    def __init__(self):
        self._script = [OP_1]
        self.p = Property("Bzu")
        self.set_malleability(s=False, f=True, e=False, m=True)

    def satisfaction(self, sat_material):
        return Satisfaction(witness=[])

    def dissatisfaction(self):
        return Satisfaction.unavailable()

    def __repr__(self):
        return "1"


class PkNode(Node):
    """Base for the fragments checking a signature against a single key."""

    def __init__(self, pubkey, name=None):
        if not isinstance(pubkey, DescriptorKey):
            raise MiniscriptTypeError(f"Invalid public key: '{pubkey}'")
        self.pubkey = pubkey
        # As written in the Miniscript, eg a placeholder.
        self.name = name if name is not None else str(pubkey)
        self.set_malleability(s=True, f=False, e=True, m=True)

    @property
    def keys(self):
        return [self.pubkey]

    def signature(self, sat_material):
        return Satisfaction.from_signature(sat_material, self.pubkey.bytes())

    def repr_args(self):
        return [self.name]


class Pk(PkNode):
    fragment_name = "pk_k"

    def __init__(self, pubkey, name=None):
        PkNode.__init__(self, pubkey, name)
        self.p = Property("Konud")

    @property
    def _script(self):
        return [self.pubkey.bytes()]

    def satisfaction(self, sat_material):
        return self.signature(sat_material)

    def dissatisfaction(self):
        return Satisfaction(witness=[b""])


class Pkh(PkNode):
    fragment_name = "pk_h"

    def __init__(self, pubkey, name=None):
        PkNode.__init__(self, pubkey, name)
        self.p = Property("Knud")

    @property
    def _script(self):
        return [OP_DUP, OP_HASH160, hash160(self.pubkey.bytes()), OP_EQUALVERIFY]

    def satisfaction(self, sat_material):
        return self.signature(sat_material) + Satisfaction(witness=[self.pubkey.bytes()])

    def dissatisfaction(self):
        return Satisfaction(witness=[b"", self.pubkey.bytes()])


class TimelockNode(Node):
    """Base for 'older' and 'after'."""

    opcode = None

    def __init__(self, value):
        if not 0 < value < 2 ** 31:
            raise MiniscriptMalformed(f"Invalid timelock: '{self.fragment_name}({value})'")
        self.value = value
        self._script = [value, self.opcode]
        self.p = Property("Bz")
        self.set_malleability(s=False, f=True, e=False, m=True)

    def dissatisfaction(self):
        return Satisfaction.unavailable()

    def repr_args(self):
        return [str(self.value)]


class Older(TimelockNode):
    fragment_name = "older"
    opcode = OP_CHECKSEQUENCEVERIFY

    def __init__(self, value):
        TimelockNode.__init__(self, value)
        self.rel_timelocks = bool(value & SEQUENCE_LOCKTIME_TYPE_FLAG)
        self.rel_heightlocks = not self.rel_timelocks

    def satisfaction(self, sat_material):
        if not sat_material.allows_sequence(self.value):
            return Satisfaction.unavailable()
        return Satisfaction(witness=[], sequence=self.value)


class After(TimelockNode):
    fragment_name = "after"
    opcode = OP_CHECKLOCKTIMEVERIFY

    def __init__(self, value):
        TimelockNode.__init__(self, value)
        self.abs_heightlocks = value < LOCKTIME_THRESHOLD
        self.abs_timelocks = not self.abs_heightlocks

    def satisfaction(self, sat_material):
        if not sat_material.allows_lock_time(self.value):
            return Satisfaction.unavailable()
        return Satisfaction(witness=[], lock_time=self.value)


class HashNode(Node):
    """Base for the hashlocks, satisfied by a 32 bytes preimage."""

    digest_size = None
    opcode = None

    def __init__(self, digest):
        if not isinstance(digest, bytes) or len(digest) != self.digest_size:
            raise MiniscriptMalformed(
                f"Invalid digest for '{self.fragment_name}': expected {self.digest_size} bytes"
            )
        self.digest = digest
        self._script = [OP_SIZE, 32, OP_EQUALVERIFY, self.opcode, digest, OP_EQUAL]
        self.p = Property("Bonud")
        self.set_malleability(s=False, f=False, e=False, m=True)

    def satisfaction(self, sat_material):
        preimage = sat_material.preimage(self.fragment_name, self.digest)
        if preimage is None:
            return Satisfaction.unavailable()
        return Satisfaction(witness=[preimage])

    def dissatisfaction(self):
        # Any 32 bytes but the preimage would do: malleable.
        return Satisfaction.unavailable()

    def repr_args(self):
        return [self.digest.hex()]


class Sha256(HashNode):
    fragment_name = "sha256"
    digest_size = 32
    opcode = OP_SHA256


class Hash256(HashNode):
    fragment_name = "hash256"
    digest_size = 32
    opcode = OP_HASH256


class Ripemd160(HashNode):
    fragment_name = "ripemd160"
    digest_size = 20
    opcode = OP_RIPEMD160


class Hash160(HashNode):
    fragment_name = "hash160"
    digest_size = 20
    opcode = OP_HASH160


class Multi(Node):
    fragment_name = "multi"

    def __init__(self, k, keys, names=None):
        if not 1 <= k <= len(keys) <= MAX_PUBKEYS_PER_MULTISIG:
            raise MiniscriptMalformed(
                f"Invalid threshold {k} for {len(keys)} keys in '{self.fragment_name}'"
            )
        if not all(isinstance(key, DescriptorKey) for key in keys):
            raise MiniscriptTypeError(f"Invalid public key in '{self.fragment_name}'")

        self.k = k
        self.pubkeys = keys
        self.names = names if names is not None else [str(key) for key in keys]
        self.p = Property("Bndu")
        self.set_malleability(s=True, f=False, e=True, m=True)

    @property
    def keys(self):
        return self.pubkeys

    def script_keys(self):
        """The keys in the order they appear in the Script."""
        return self.pubkeys

    @property
    def _script(self):
        return concat(
            [self.k],
            [key.bytes() for key in self.script_keys()],
            [len(self.pubkeys), OP_CHECKMULTISIG],
        )

    def satisfaction(self, sat_material):
        # The first k available signatures, in the order of the keys.
        sats = []
        for key in self.script_keys():
            sat = Satisfaction.from_signature(sat_material, key.bytes())
            if not sat.is_unavailable():
                sats.append(sat)
            if len(sats) == self.k:
                break
        if len(sats) < self.k:
            return Satisfaction.unavailable()
        # The dummy element CHECKMULTISIG pops.
        return sum(sats, start=Satisfaction(witness=[b""]))

    def dissatisfaction(self):
        return Satisfaction(witness=[b""] * (self.k + 1))

    def repr_args(self):
        return [str(self.k)] + self.names


class SortedMulti(Multi):
    """A multi() whose keys are sorted in the Script, as in BIP67."""

    fragment_name = "sortedmulti"

    def script_keys(self):
        return sorted(self.pubkeys, key=lambda key: key.bytes())


class AndV(Node):
    fragment_name = "and_v"

    def __init__(self, x, y):
        check_type(x.p.V and y.p.has_any("BKV"), self.fragment_name, [x, y])
        self.subs = [x, y]

        self.p = typed(
            y.p.type(),
            z=x.p.z and y.p.z,
            o=x.p.z and y.p.o or x.p.o and y.p.z,
            n=x.p.n or x.p.z and y.p.n,
            u=y.p.u,
        )
        self.set_malleability(
            s=x.needs_sig or y.needs_sig,
            f=x.needs_sig or y.is_forced,
            e=False,
            m=x.is_nonmalleable and y.is_nonmalleable,
        )
        self.track_timelocks(same_path=self.subs)

    @property
    def _script(self):
        return concat(*(sub._script for sub in self.subs))

    def satisfaction(self, sat_material):
        return Satisfaction.from_concat(sat_material, *self.subs)

    def dissatisfaction(self):
        return Satisfaction.unavailable()


class AndB(Node):
    fragment_name = "and_b"

    def __init__(self, x, y):
        check_type(x.p.B and y.p.W, self.fragment_name, [x, y])
        self.subs = [x, y]

        self.p = typed(
            "Bu",
            z=x.p.z and y.p.z,
            o=x.p.z and y.p.o or x.p.o and y.p.z,
            n=x.p.n or x.p.z and y.p.n,
            d=x.p.d and y.p.d,
        )
        self.set_malleability(
            s=x.needs_sig or y.needs_sig,
            f=(
                x.is_forced and y.is_forced
                or x.is_forced and x.needs_sig
                or y.is_forced and y.needs_sig
            ),
            e=x.is_expressive and y.is_expressive and x.needs_sig and y.needs_sig,
            m=x.is_nonmalleable and y.is_nonmalleable,
        )
        self.track_timelocks(same_path=self.subs)

    @property
    def _script(self):
        return concat(self.subs[0]._script, self.subs[1]._script, [OP_BOOLAND])

    def satisfaction(self, sat_material):
        return Satisfaction.from_concat(sat_material, *self.subs)

    def dissatisfaction(self):
        x, y = self.subs
        return y.dissatisfaction() + x.dissatisfaction()


class OrB(Node):
    fragment_name = "or_b"

    def __init__(self, x, z):
        check_type(x.p.has_all("Bd") and z.p.has_all("Wd"), self.fragment_name, [x, z])
        self.subs = [x, z]

        self.p = typed(
            "Bdu",
            z=x.p.z and z.p.z,
            o=x.p.z and z.p.o or x.p.o and z.p.z,
        )
        self.set_malleability(
            s=x.needs_sig and z.needs_sig,
            f=False,
            e=x.is_expressive and z.is_expressive,
            m=(
                x.is_nonmalleable
                and z.is_nonmalleable
                and x.is_expressive
                and z.is_expressive
                and (x.needs_sig or z.needs_sig)
            ),
        )
        self.track_timelocks()

    @property
    def _script(self):
        return concat(self.subs[0]._script, self.subs[1]._script, [OP_BOOLOR])

    def satisfaction(self, sat_material):
        return Satisfaction.from_concat(sat_material, *self.subs, disjunction=True)

    def dissatisfaction(self):
        x, z = self.subs
        return z.dissatisfaction() + x.dissatisfaction()


class OrC(Node):
    fragment_name = "or_c"

    def __init__(self, x, z):
        check_type(x.p.has_all("Bdu") and z.p.V, self.fragment_name, [x, z])
        self.subs = [x, z]

        self.p = typed("V", z=x.p.z and z.p.z, o=x.p.o and z.p.z)
        self.set_malleability(
            s=x.needs_sig and z.needs_sig,
            f=True,
            e=False,
            m=(
                x.is_nonmalleable
                and z.is_nonmalleable
                and x.is_expressive
                and (x.needs_sig or z.needs_sig)
            ),
        )
        self.track_timelocks()

    @property
    def _script(self):
        x, z = self.subs
        return concat(x._script, [OP_NOTIF], z._script, [OP_ENDIF])

    def satisfaction(self, sat_material):
        return Satisfaction.from_or_uneven(sat_material, *self.subs)

    def dissatisfaction(self):
        return Satisfaction.unavailable()


class OrD(Node):
    fragment_name = "or_d"

    def __init__(self, x, z):
        check_type(x.p.has_all("Bdu") and z.p.B, self.fragment_name, [x, z])
        self.subs = [x, z]

        self.p = typed(
            "B",
            z=x.p.z and z.p.z,
            o=x.p.o and z.p.z,
            d=z.p.d,
            u=z.p.u,
        )
        self.set_malleability(
            s=x.needs_sig and z.needs_sig,
            f=z.is_forced,
            e=x.is_expressive and z.is_expressive,
            m=(
                x.is_nonmalleable
                and z.is_nonmalleable
                and x.is_expressive
                and (x.needs_sig or z.needs_sig)
            ),
        )
        self.track_timelocks()

    @property
    def _script(self):
        x, z = self.subs
        return concat(x._script, [OP_IFDUP, OP_NOTIF], z._script, [OP_ENDIF])

    def satisfaction(self, sat_material):
        return Satisfaction.from_or_uneven(sat_material, *self.subs)

    def dissatisfaction(self):
        x, z = self.subs
        return z.dissatisfaction() + x.dissatisfaction()


class OrI(Node):
    fragment_name = "or_i"

    def __init__(self, x, z):
        check_type(
            x.p.type() == z.p.type() and x.p.has_any("BKV"), self.fragment_name, [x, z]
        )
        self.subs = [x, z]

        self.p = typed(
            x.p.type(),
            o=x.p.z and z.p.z,
            d=x.p.d or z.p.d,
            u=x.p.u and z.p.u,
        )
        self.set_malleability(
            s=x.needs_sig and z.needs_sig,
            f=x.is_forced and z.is_forced,
            e=x.is_expressive and z.is_forced or x.is_forced and z.is_expressive,
            m=x.is_nonmalleable and z.is_nonmalleable and (x.needs_sig or z.needs_sig),
        )
        self.track_timelocks()

    @property
    def _script(self):
        x, z = self.subs
        return concat([OP_IF], x._script, [OP_ELSE], z._script, [OP_ENDIF])

    def satisfaction(self, sat_material):
        x, z = self.subs
        return (x.satisfaction(sat_material) + Satisfaction(witness=[b"\x01"])) | (
            z.satisfaction(sat_material) + Satisfaction(witness=[b""])
        )

    def dissatisfaction(self):
        x, z = self.subs
        return (x.dissatisfaction() + Satisfaction(witness=[b"\x01"])) | (
            z.dissatisfaction() + Satisfaction(witness=[b""])
        )


class AndOr(Node):
    fragment_name = "andor"

    def __init__(self, x, y, z):
        check_type(
            x.p.has_all("Bdu") and y.p.type() == z.p.type() and y.p.has_any("BKV"),
            self.fragment_name,
            [x, y, z],
        )
        self.subs = [x, y, z]

        self.p = typed(
            y.p.type(),
            z=x.p.z and y.p.z and z.p.z,
            o=x.p.z and y.p.o and z.p.o or x.p.o and y.p.z and z.p.z,
            d=z.p.d,
            u=y.p.u and z.p.u,
        )
        self.set_malleability(
            s=z.needs_sig and (x.needs_sig or y.needs_sig),
            f=z.is_forced and (x.needs_sig or y.is_forced),
            e=x.is_expressive and z.is_expressive and (x.needs_sig or y.is_forced),
            m=(
                x.is_nonmalleable
                and y.is_nonmalleable
                and z.is_nonmalleable
                and x.is_expressive
                and (x.needs_sig or y.needs_sig or z.needs_sig)
            ),
        )
        # Either X and Y are satisfied together, or Z is.
        self.track_timelocks(same_path=[x, y])

    @property
    def _script(self):
        x, y, z = self.subs
        return concat(x._script, [OP_NOTIF], z._script, [OP_ELSE], y._script, [OP_ENDIF])

    def satisfaction(self, sat_material):
        x, y, z = self.subs
        return (y.satisfaction(sat_material) + x.satisfaction(sat_material)) | (
            z.satisfaction(sat_material) + x.dissatisfaction()
        )

    def dissatisfaction(self):
        x, _, z = self.subs
        return z.dissatisfaction() + x.dissatisfaction()


class AndN(AndOr):
    fragment_name = "and_n"

    def __init__(self, x, y):
        AndOr.__init__(self, x, y, Just0())

    def repr_args(self):
        return [str(sub) for sub in self.subs[:2]]


class Thresh(Node):
    fragment_name = "thresh"

    def __init__(self, k, subs):
        n = len(subs)
        if not 1 <= k <= n:
            raise MiniscriptMalformed(f"Invalid threshold {k} for {n} subs in 'thresh'")
        check_type(
            subs[0].p.has_all("Bdu") and all(sub.p.has_all("Wdu") for sub in subs[1:]),
            self.fragment_name,
            subs,
        )
        self.k = k
        self.subs = subs

        zero_arg = sum(1 for sub in subs if sub.p.z)
        one_arg = sum(1 for sub in subs if sub.p.o)
        signed = sum(1 for sub in subs if sub.needs_sig)
        all_e = all(sub.is_expressive for sub in subs)

        self.p = typed("Bdu", z=zero_arg == n, o=zero_arg == n - 1 and one_arg == 1)
        self.set_malleability(
            s=signed >= n - k + 1,
            f=False,
            e=all_e and signed == n,
            m=all_e and all(sub.is_nonmalleable for sub in subs) and signed >= n - k,
        )
        # With k > 1 several subs are satisfied in the same spending path.
        self.track_timelocks(same_path=subs if k > 1 else ())

    @property
    def _script(self):
        return concat(
            self.subs[0]._script,
            *(sub._script + [OP_ADD] for sub in self.subs[1:]),
            [self.k, OP_EQUAL],
        )

    def satisfaction(self, sat_material):
        return Satisfaction.from_thresh(sat_material, self.k, self.subs)

    def dissatisfaction(self):
        return sum(
            (sub.dissatisfaction() for sub in reversed(self.subs)),
            start=Satisfaction(witness=[]),
        )

    def repr_args(self):
        return [str(self.k)] + Node.repr_args(self)


class WrapperNode(Node):
    """Base for the single letter wrappers.

    Unless overriden, a wrapper inherits the malleability properties, the timelocks
    and the (dis)satisfaction of its sub.
    """

    tag = None

    def __init__(self, sub):
        self.subs = [sub]
        self.set_malleability(
            s=sub.needs_sig,
            f=sub.is_forced,
            e=sub.is_expressive,
            m=sub.is_nonmalleable,
        )
        self.track_timelocks()

    @property
    def sub(self):
        return self.subs[0]

    def wrapped(self):
        """The fragment written after the colon."""
        return self.subs[0]

    def satisfaction(self, sat_material):
        return self.sub.satisfaction(sat_material)

    def dissatisfaction(self):
        return self.sub.dissatisfaction()

    def __repr__(self):
        wrapped = self.wrapped()
        # Consecutive wrappers share a single colon. pk() and pkh() aren't wrappers.
        if isinstance(wrapped, WrapperNode) and not is_key_alias(wrapped):
            return f"{self.tag}{wrapped}"
        return f"{self.tag}:{wrapped}"


def is_key_alias(node):
    """Whether this node is written pk() or pkh()."""
    return isinstance(node, WrapC) and isinstance(node.sub, (Pk, Pkh))


class WrapA(WrapperNode):
    tag = "a"

    def __init__(self, sub):
        check_type(sub.p.B, "a:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("W" + inherited(sub, "ud"))

    @property
    def _script(self):
        return concat([OP_TOALTSTACK], self.sub._script, [OP_FROMALTSTACK])


class WrapS(WrapperNode):
    tag = "s"

    def __init__(self, sub):
        check_type(sub.p.has_all("Bo"), "s:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("W" + inherited(sub, "ud"))

    @property
    def _script(self):
        return concat([OP_SWAP], self.sub._script)


class WrapC(WrapperNode):
    tag = "c"

    def __init__(self, sub):
        check_type(sub.p.K, "c:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("Bu" + inherited(sub, "ond"))
        self.needs_sig = True

    @property
    def _script(self):
        return concat(self.sub._script, [OP_CHECKSIG])

    def __repr__(self):
        if isinstance(self.sub, Pk):
            return f"pk({self.sub.name})"
        if isinstance(self.sub, Pkh):
            return f"pkh({self.sub.name})"
        return WrapperNode.__repr__(self)


class WrapT(AndV, WrapperNode):
    """and_v(X,1)"""

    tag = "t"

    def __init__(self, sub):
        AndV.__init__(self, sub, Just1())

    __repr__ = WrapperNode.__repr__


class WrapD(WrapperNode):
    tag = "d"

    def __init__(self, sub):
        check_type(sub.p.has_all("Vz"), "d:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("Bond")
        self.is_forced = False
        self.is_expressive = True

    @property
    def _script(self):
        return concat([OP_DUP, OP_IF], self.sub._script, [OP_ENDIF])

    def satisfaction(self, sat_material):
        return self.sub.satisfaction(sat_material) + Satisfaction(witness=[b"\x01"])

    def dissatisfaction(self):
        return Satisfaction(witness=[b""])


class WrapV(WrapperNode):
    tag = "v"

    def __init__(self, sub):
        check_type(sub.p.B, "v:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("V" + inherited(sub, "zon"))
        self.is_forced = True
        self.is_expressive = False

    @property
    def _script(self):
        script = self.sub._script
        if script[-1] in VERIFY_OPCODES:
            return script[:-1] + [VERIFY_OPCODES[script[-1]]]
        return script + [OP_VERIFY]

    def dissatisfaction(self):
        return Satisfaction.unavailable()


class WrapJ(WrapperNode):
    tag = "j"

    def __init__(self, sub):
        check_type(sub.p.has_all("Bn"), "j:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("Bnd" + inherited(sub, "ou"))
        self.is_forced = False
        self.is_expressive = sub.is_forced

    @property
    def _script(self):
        return concat([OP_SIZE, OP_0NOTEQUAL, OP_IF], self.sub._script, [OP_ENDIF])

    def dissatisfaction(self):
        return Satisfaction(witness=[b""])


class WrapN(WrapperNode):
    tag = "n"

    def __init__(self, sub):
        check_type(sub.p.B, "n:", [sub])
        WrapperNode.__init__(self, sub)
        self.p = Property("Bu" + inherited(sub, "zond"))

    @property
    def _script(self):
        return concat(self.sub._script, [OP_0NOTEQUAL])


class WrapL(OrI, WrapperNode):
    """or_i(0,X)"""

    tag = "l"

    def __init__(self, sub):
        OrI.__init__(self, Just0(), sub)

    def wrapped(self):
        return self.subs[1]

    __repr__ = WrapperNode.__repr__


class WrapU(OrI, WrapperNode):
    """or_i(X,0)"""

    tag = "u"

    def __init__(self, sub):
        OrI.__init__(self, sub, Just0())

    __repr__ = WrapperNode.__repr__
