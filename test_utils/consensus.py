"""Spend a P2WSH output with real signatures, checked by libbitcoinconsensus through
python-bitcointx."""

import coincurve
import pytest

from bitcointx.core import CMutableTransaction, CMutableTxIn, CMutableTxOut, COutPoint
from bitcointx.core.bitcoinconsensus import (
    BITCOINCONSENSUS_ACCEPTED_FLAGS,
    ConsensusVerifyScript,
    load_bitcoinconsensus_library,
)
from bitcointx.core.script import (
    CScript,
    CScriptWitness,
    RawBitcoinSignatureHash,
    SIGVERSION_WITNESS_V0,
)

from . import sha256

AMOUNT = 10_000
FUNDING_TXID = bytes.fromhex(
    "652c60ec08280356e8c78be9bf4d44276acef3189ba8223e426b757aeabd66ad"
)
SEQUENCE_FINAL = 0xFFFFFFFF
SIGHASH_ALL = 1


def has_consensus_library():
    try:
        load_bitcoinconsensus_library()
    except (ImportError, OSError):
        return False
    return True


requires_consensus = pytest.mark.skipif(
    not has_consensus_library(), reason="libbitcoinconsensus is not available"
)


class WshSpend:
    """A transaction spending a P2WSH output locked by {witness_script}, committing
    to {lock_time} and {sequence}."""

    def __init__(self, witness_script, lock_time=None, sequence=None):
        if sequence is None:
            # A final sequence disables the locktime.
            sequence = SEQUENCE_FINAL - 1 if lock_time is not None else SEQUENCE_FINAL
        self.witness_script = CScript(bytes(witness_script))
        self.script_pubkey = CScript([0, sha256(bytes(witness_script))])

        txin = CMutableTxIn(COutPoint(FUNDING_TXID, 0), nSequence=sequence)
        txout = CMutableTxOut(AMOUNT - 1_000, self.script_pubkey)
        # Relative timelocks need a version 2 transaction.
        self.tx = CMutableTransaction(
            [txin], [txout], nLockTime=lock_time or 0, nVersion=2
        )

    def sign(self, secrets):
        """SIGHASH_ALL signatures of the input by the private keys {secrets}, by
        compressed public key."""
        sighash = RawBitcoinSignatureHash(
            script=self.witness_script,
            txTo=self.tx,
            inIdx=0,
            hashtype=SIGHASH_ALL,
            amount=AMOUNT,
            sigversion=SIGVERSION_WITNESS_V0,
        )[0]
        signatures = {}
        for secret in secrets:
            key = coincurve.PrivateKey(secret)
            signatures[key.public_key.format()] = key.sign(sighash, hasher=None) + bytes(
                [SIGHASH_ALL]
            )
        return signatures

    def verify(self, witness):
        """Raises a bitcointx ValidationError unless {witness} spends the output."""
        ConsensusVerifyScript(
            scriptSig=CScript(),
            scriptPubKey=self.script_pubkey,
            txTo=self.tx,
            inIdx=0,
            amount=AMOUNT,
            witness=CScriptWitness(list(witness) + [bytes(self.witness_script)]),
            flags=BITCOINCONSENSUS_ACCEPTED_FLAGS,
        )
