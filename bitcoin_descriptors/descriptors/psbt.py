"""
Use descriptors to fill and finalize the inputs of a PSBT (BIP174).
"""

import logging

from embit import ec
from embit.psbt import DerivationPath, InputScope
from embit.script import Script, Witness
from embit.transaction import Transaction

from ..errors import DescriptorError
from ..miniscript.errors import UnsatisfiableError
from ..miniscript.satisfaction import SEQUENCE_FINAL_BUT_LOCKTIME
from ..miniscript.satisfier import PartialSig
from ..utils.script import CScript
from .parsing import DescriptorKind


logger = logging.getLogger(__name__)


def update_psbt(descriptor, tx_hex, vout, psbt):
    """Add an input spending the output {vout} of the transaction {tx_hex} to the
    {psbt}, with all the information from the {descriptor} the signers need.

    :return: The index of the new input.
    """
    tx = Transaction.from_string(tx_hex)
    if not 0 <= vout < len(tx.vout):
        raise DescriptorError(f"Output {vout} does not exist in transaction {tx.txid().hex()}")
    utxo = tx.vout[vout]
    if utxo.script_pubkey.data != descriptor.script_pubkey:
        raise DescriptorError(
            f"Output {vout} of transaction {tx.txid().hex()} is not locked by {descriptor}"
        )

    lock_time = descriptor.lock_time
    sequence = descriptor.sequence
    if lock_time is not None:
        if psbt.locktime not in (None, 0) and psbt.locktime != lock_time:
            raise DescriptorError(
                f"The transaction locktime is already set to {psbt.locktime}, "
                f"{descriptor} needs {lock_time}"
            )
        psbt.locktime = lock_time
        # The locktime is ignored if the sequence is final.
        if sequence is None:
            sequence = SEQUENCE_FINAL_BUT_LOCKTIME
        if sequence > SEQUENCE_FINAL_BUT_LOCKTIME:
            raise DescriptorError(f"Sequence {sequence} would disable the locktime {lock_time}")

    inp = InputScope(unknown={})
    inp.txid = tx.txid()
    inp.vout = vout
    inp.sequence = sequence
    inp.non_witness_utxo = tx
    if descriptor.is_segwit:
        inp.witness_utxo = utxo
    if descriptor.redeem_script is not None:
        inp.redeem_script = Script(descriptor.redeem_script)
    if descriptor.witness_script is not None:
        inp.witness_script = Script(descriptor.witness_script)
    for key in descriptor.expansion_map.values():
        if key.master_fingerprint is not None:
            inp.bip32_derivations[ec.PublicKey.parse(key.bytes())] = DerivationPath(
                key.master_fingerprint, key.full_path
            )
            logger.debug(
                "Key %s derived at [%s]%s",
                key.bytes().hex(),
                key.master_fingerprint.hex(),
                key.full_path_str,
            )

    psbt.inputs.append(inp)
    logger.debug(
        "Added input %d spending %s:%d (locktime: %s, sequence: %s)",
        len(psbt.inputs) - 1,
        tx.txid().hex(),
        vout,
        lock_time,
        sequence,
    )
    return len(psbt.inputs) - 1


def script_sig(stack):
    """Build a scriptSig pushing the {stack} elements, with minimal pushes."""
    return Script(bytes(CScript([1 if elem == b"\x01" else elem for elem in stack])))


def finalize_psbt_input(descriptor, index, psbt):
    """Set the final scriptSig and witness of the input {index} of the {psbt}, out of
    the partial signatures it contains."""
    inp = psbt.inputs[index]
    signatures = [PartialSig(pubkey.sec(), sig) for pubkey, sig in inp.partial_sigs.items()]
    if len(signatures) == 0:
        raise UnsatisfiableError(f"No signature to finalize input {index}")
    stack = descriptor.script_satisfaction(signatures)

    kind = descriptor.kind
    if kind in (DescriptorKind.WSH_MINISCRIPT, DescriptorKind.SH_WSH_MINISCRIPT):
        inp.final_scriptwitness = Witness(stack + [descriptor.witness_script])
        if kind == DescriptorKind.SH_WSH_MINISCRIPT:
            inp.final_scriptsig = script_sig([descriptor.redeem_script])
    elif kind in (DescriptorKind.WPKH, DescriptorKind.SH_WPKH):
        inp.final_scriptwitness = Witness(stack)
        if kind == DescriptorKind.SH_WPKH:
            inp.final_scriptsig = script_sig([descriptor.redeem_script])
    elif kind == DescriptorKind.SH_MINISCRIPT:
        inp.final_scriptsig = script_sig(stack + [descriptor.redeem_script])
    elif kind in (DescriptorKind.PKH, DescriptorKind.PK):
        inp.final_scriptsig = script_sig(stack)
    else:
        raise DescriptorError(f"Can't finalize an input for {descriptor}")
    logger.debug("Finalized input %d with %d stack elements", index, len(stack))
