"""
Miniscript satisfaction.

This module contains logic for "signing for" a Miniscript (constructing a valid witness
that meets the conditions set by the Script).
This is focused on non-malleable satisfaction. We take shortcuts to not care about
non-canonical (dis)satisfactions.

A satisfaction also records the timelocks its path commits to. Choices between
alternatives never depend on the actual signatures: a signature is always accounted
for as its maximum size. This makes it possible to first run the exact same choice
logic with only the knowledge of who is going to sign, in order to know the timelocks
to commit to in the transaction before it is signed.
"""

from collections import namedtuple


# Threshold for nLockTime: below this value it is interpreted as block number,
# otherwise as UNIX timestamp.
LOCKTIME_THRESHOLD = 500000000  # Tue Nov  5 00:53:20 1985 UTC

# If CTxIn::nSequence encodes a relative lock-time and this flag
# is set, the relative lock-time has units of 512 seconds,
# otherwise it specifies blocks with a granularity of 1.
SEQUENCE_LOCKTIME_TYPE_FLAG = 1 << 22

# If this flag is set, CTxIn::nSequence is NOT interpreted as a relative lock-time.
SEQUENCE_LOCKTIME_DISABLE_FLAG = 1 << 31

SEQUENCE_LOCKTIME_MASK = 0x0000FFFF

# The sequence to use for an input of a transaction with a locktime but no relative
# timelock: nLockTime is not enforced if all the inputs have a final sequence.
SEQUENCE_FINAL_BUT_LOCKTIME = 0xFFFFFFFE

# A DER signature with its sighash byte is at most 73 bytes, plus the push.
SIGNATURE_SIZE = 1 + 73


class TimeConstraints(namedtuple("TimeConstraints", ["lock_time", "sequence"])):
    """The nLockTime and nSequence a spending transaction needs to set, None when
    unconstrained."""

    def __new__(cls, lock_time=None, sequence=None):
        return super().__new__(cls, lock_time, sequence)

    def check(self):
        if self.lock_time is not None and self.sequence is not None:
            if self.sequence > SEQUENCE_FINAL_BUT_LOCKTIME:
                raise ValueError(
                    f"Sequence {self.sequence} would disable the locktime {self.lock_time}"
                )
        return self


def is_height_lock_time(lock_time):
    return lock_time < LOCKTIME_THRESHOLD


def is_time_sequence(sequence):
    return bool(sequence & SEQUENCE_LOCKTIME_TYPE_FLAG)


def merge_lock_times(a, b):
    """Merge two absolute timelocks, returns (lock_time, compatible)."""
    if a is None or b is None:
        return (b if a is None else a), True
    if is_height_lock_time(a) != is_height_lock_time(b):
        return None, False
    return max(a, b), True


def merge_sequences(a, b):
    """Merge two relative timelocks, returns (sequence, compatible)."""
    if a is None or b is None:
        return (b if a is None else a), True
    if is_time_sequence(a) != is_time_sequence(b):
        return None, False
    return max(a, b, key=lambda s: s & SEQUENCE_LOCKTIME_MASK), True


def add_optional(a, b):
    """Add two numbers that may be None together."""
    if a is None or b is None:
        return None
    return a + b


class SatisfactionMaterial:
    """Data that may be needed in order to satisfy a Minsicript fragment."""

    def __init__(self, preimages=None, signatures=None, signers=None, time_constraints=None):
        """
        :param preimages: Mapping from a (hash function name, digest) tuple to its 32-bytes preimage.
        :param signatures: Mapping from a public key (as bytes), to a signature for this key.
        :param signers: The public keys that can provide a signature, if not given the keys
                        of {signatures}. A signer without signature leaves its slot empty.
        :param time_constraints: The TimeConstraints committed in the transaction, if any. If
                                 set, timelocks not covered by it can't be satisfied.
        """
        self.preimages = preimages if preimages is not None else {}
        self.signatures = signatures if signatures is not None else {}
        self.signers = set(signers) if signers is not None else set(self.signatures)
        self.time_constraints = time_constraints

    def can_sign(self, pubkey):
        return pubkey in self.signers

    def preimage(self, hash_name, digest):
        return self.preimages.get((hash_name, digest))

    def allows_lock_time(self, value):
        """Whether an 'after({value})' is covered by the committed nLockTime."""
        if self.time_constraints is None:
            return True
        lock_time = self.time_constraints.lock_time
        return (
            lock_time is not None
            and is_height_lock_time(lock_time) == is_height_lock_time(value)
            and value <= lock_time
        )

    def allows_sequence(self, value):
        """Whether an 'older({value})' is covered by the committed nSequence."""
        if self.time_constraints is None:
            return True
        sequence = self.time_constraints.sequence
        return (
            sequence is not None
            and not sequence & SEQUENCE_LOCKTIME_DISABLE_FLAG
            and is_time_sequence(sequence) == is_time_sequence(value)
            and value & SEQUENCE_LOCKTIME_MASK <= sequence & SEQUENCE_LOCKTIME_MASK
        )

    def __repr__(self):
        return (
            f"SatisfactionMaterial(preimages: {self.preimages}, signatures: "
            f"{self.signatures}, signers: {self.signers}, time_constraints: "
            f"{self.time_constraints})"
        )


class Satisfaction:
    """All information about a satisfaction."""

    def __init__(self, witness, has_sig=False, size=None, lock_time=None, sequence=None):
        assert isinstance(witness, list) or witness is None
        self.witness = witness
        self.has_sig = has_sig
        # The estimated size of the witness, in bytes.
        if size is None and witness is not None:
            size = sum(1 + len(elem) for elem in witness)
        self.size = size
        self.lock_time = lock_time
        self.sequence = sequence

    def __add__(self, other):
        """Concatenate two satisfactions together."""
        if self.is_unavailable() or other.is_unavailable():
            return Satisfaction.unavailable()

        lock_time, lock_times_compat = merge_lock_times(self.lock_time, other.lock_time)
        sequence, sequences_compat = merge_sequences(self.sequence, other.sequence)
        # Height and time locks can't both be satisfied in the same transaction.
        if not (lock_times_compat and sequences_compat):
            return Satisfaction.unavailable()

        return Satisfaction(
            self.witness + other.witness,
            self.has_sig or other.has_sig,
            self.size + other.size,
            lock_time,
            sequence,
        )

    def __or__(self, other):
        """Choose between two (dis)satisfactions."""
        assert isinstance(other, Satisfaction)

        # If one isn't available, return the other one.
        if self.is_unavailable():
            return other
        if other.is_unavailable():
            return self

        # > If among all valid solutions more than one does not have the HASSIG
        # > marker, return DONTUSE.
        # A third party could use either of them, so we can't use any.
        if not self.has_sig and not other.has_sig:
            return Satisfaction.unavailable()

        # > If instead exactly one does not have the HASSIG marker, return that solution.
        if self.has_sig and not other.has_sig:
            return other
        if not self.has_sig and other.has_sig:
            return self

        # > Otherwise, all not-DONTUSE options are valid, so return the smallest one (in
        # > terms of witness size).
        if self.size > other.size:
            return other
        return self

    @staticmethod
    def unavailable():
        return Satisfaction(witness=None)

    def is_unavailable(self):
        return self.witness is None

    @staticmethod
    def from_signature(sat_material, pubkey):
        """The satisfaction for a signature check against {pubkey}."""
        if not sat_material.can_sign(pubkey):
            return Satisfaction.unavailable()
        # The slot is left empty if we only know the key will sign.
        sig = sat_material.signatures.get(pubkey)
        return Satisfaction(witness=[sig], has_sig=True, size=SIGNATURE_SIZE)

    @staticmethod
    def from_concat(sat_material, sub_a, sub_b, disjunction=False):
        """Get the satisfaction for a Miniscript whose Script corresponds to a
        concatenation of two subscripts A and B.

        :param sub_a: The sub-fragment A.
        :param sub_b: The sub-fragment B.
        :param disjunction: Whether this fragment has an 'or()' semantic.
        """
        if disjunction:
            return (sub_b.dissatisfaction() + sub_a.satisfaction(sat_material)) | (
                sub_b.satisfaction(sat_material) + sub_a.dissatisfaction()
            )
        return sub_b.satisfaction(sat_material) + sub_a.satisfaction(sat_material)

    @staticmethod
    def from_or_uneven(sat_material, sub_a, sub_b):
        """Get the satisfaction for a Miniscript which unconditionally executes a first
        sub A and only executes B if A was dissatisfied.

        :param sub_a: The sub-fragment A.
        :param sub_b: The sub-fragment B.
        """
        return sub_a.satisfaction(sat_material) | (
            sub_b.satisfaction(sat_material) + sub_a.dissatisfaction()
        )

    @staticmethod
    def from_thresh(sat_material, k, subs):
        """Get the satisfaction for a Miniscript which satisfies k of the given subs,
        and dissatisfies all the others.

        :param sat_material: The material to satisfy the challenges.
        :param k: The number of subs that need to be satisfied.
        :param subs: The list of all subs of the threshold.
        """
        # Pick the k sub-fragments to satisfy, prefering (in order):
        # 1. Fragments that don't require a signature to be satisfied
        # 2. Fragments whose satisfaction's size is smaller
        # Record the unavailable (in either way) ones as we go.
        arbitrage, unsatisfiable, undissatisfiable = [], [], []
        for i, sub in enumerate(subs):
            sat, dissat = sub.satisfaction(sat_material), sub.dissatisfaction()
            if sat.is_unavailable():
                unsatisfiable.append(i)
            elif dissat.is_unavailable():
                undissatisfiable.append(i)
            else:
                arbitrage.append((int(sat.has_sig), sat.size - dissat.size, i))

        # If not enough (dis)satisfactions are available, fail.
        if len(unsatisfiable) > len(subs) - k or len(undissatisfiable) > k:
            return Satisfaction.unavailable()

        # Otherwise, satisfy the k most optimal ones. Sorting is stable, ties keep the
        # order of the subs.
        arbitrage = sorted(arbitrage, key=lambda x: x[:2])
        optimal_sat = undissatisfiable + [a[2] for a in arbitrage] + unsatisfiable
        to_satisfy = set(optimal_sat[:k])
        return sum(
            [
                sub.satisfaction(sat_material)
                if i in to_satisfy
                else sub.dissatisfaction()
                for i, sub in reversed(list(enumerate(subs)))
            ],
            start=Satisfaction(witness=[]),
        )
