import logging

import pytest

from bip32 import HARDENED_INDEX
from embit import ec
from embit.psbt import PSBT
from embit.script import Script
from embit.transaction import Transaction, TransactionInput, TransactionOutput

from bitcoin_descriptors import (
    Chain,
    Descriptor,
    DescriptorError,
    UnsatisfiableError,
    finalize_psbt_input,
    update_psbt,
)

from test_utils import TestWallet, dummy_sig, pubkey


H = HARDENED_INDEX
A, B = pubkey(1).hex(), pubkey(2).hex()


def funding_tx(script_pubkey, value=100_000):
    """A transaction paying {value} to {script_pubkey} in its second output."""
    tx = Transaction(
        vin=[TransactionInput(b"\x11" * 32, 0)],
        vout=[
            TransactionOutput(50_000, Script(b"\x51")),
            TransactionOutput(value, Script(script_pubkey)),
        ],
    )
    return tx.serialize().hex()


def add_signatures(psbt, index, keys):
    for key in keys:
        psbt.inputs[index].partial_sigs[ec.PublicKey.parse(key)] = dummy_sig(key)


@pytest.fixture
def wallet_descriptor():
    key = TestWallet().key_info("m/48'/1'/0'/2'")
    return f"wsh(or_d(pk({key}/0/*),and_v(v:pk({B}),older(144))))"


def test_update_psbt(wallet_descriptor, caplog):
    caplog.set_level(logging.DEBUG, logger="bitcoin_descriptors.descriptors.psbt")
    desc = Descriptor(wallet_descriptor, index=3, chain=Chain.TEST)
    tx_hex = funding_tx(desc.script_pubkey)
    psbt = PSBT()

    assert update_psbt(desc, tx_hex, 1, psbt) == 0
    inp = psbt.inputs[0]
    assert inp.txid == Transaction.from_string(tx_hex).txid()
    assert inp.vout == 1
    assert inp.witness_utxo.value == 100_000
    assert inp.witness_utxo.script_pubkey.data == desc.script_pubkey
    assert inp.witness_script.data == desc.witness_script
    assert inp.redeem_script is None
    # Everyone signs: no timelock
    assert inp.sequence is None
    assert psbt.locktime is None

    # Only the keys with an origin
    assert len(inp.bip32_derivations) == 1
    pub, der = list(inp.bip32_derivations.items())[0]
    assert pub.sec() == desc.expansion_map["@0"].bytes()
    assert der.fingerprint == bytes.fromhex("f5acc2fd")
    assert der.derivation == [48 + H, 1 + H, H, 2 + H, 0, 3]
    assert "derived at [f5acc2fd]m/48'/1'/0'/2'/0/3" in caplog.text

    # A second input
    assert update_psbt(desc, tx_hex, 1, psbt) == 1


def test_update_psbt_timelocks(wallet_descriptor):
    desc = Descriptor(wallet_descriptor, index=3, chain=Chain.TEST, signers_key_expressions=[B])
    psbt = PSBT()
    update_psbt(desc, funding_tx(desc.script_pubkey), 1, psbt)
    assert psbt.inputs[0].sequence == 144
    assert psbt.locktime is None

    desc = Descriptor(f"wsh(and_v(v:pk({A}),after(1000)))")
    tx_hex = funding_tx(desc.script_pubkey)
    psbt = PSBT()
    update_psbt(desc, tx_hex, 1, psbt)
    assert psbt.locktime == 1000
    # A final sequence would disable the locktime
    assert psbt.inputs[0].sequence == 0xFFFFFFFE

    psbt = PSBT()
    psbt.locktime = 500
    with pytest.raises(DescriptorError, match="already set"):
        update_psbt(desc, tx_hex, 1, psbt)


def test_update_psbt_wrong_output():
    desc = Descriptor(f"wpkh({A})")
    tx_hex = funding_tx(Descriptor(f"wpkh({B})").script_pubkey)
    psbt = PSBT()
    with pytest.raises(DescriptorError, match="is not locked by"):
        update_psbt(desc, tx_hex, 1, psbt)
    with pytest.raises(DescriptorError, match="does not exist"):
        update_psbt(desc, tx_hex, 2, psbt)
    assert len(psbt.inputs) == 0


def test_finalize_wsh(wallet_descriptor):
    desc = Descriptor(wallet_descriptor, index=3, chain=Chain.TEST)
    psbt = PSBT()
    update_psbt(desc, funding_tx(desc.script_pubkey), 1, psbt)

    with pytest.raises(UnsatisfiableError):
        finalize_psbt_input(desc, 0, psbt)

    key = desc.expansion_map["@0"].bytes()
    add_signatures(psbt, 0, [key])
    finalize_psbt_input(desc, 0, psbt)
    assert psbt.inputs[0].final_scriptwitness.items == [dummy_sig(key), desc.witness_script]
    assert psbt.inputs[0].final_scriptsig is None


def test_finalize_timelocked_path(wallet_descriptor):
    desc = Descriptor(wallet_descriptor, index=3, chain=Chain.TEST, signers_key_expressions=[B])
    psbt = PSBT()
    update_psbt(desc, funding_tx(desc.script_pubkey), 1, psbt)
    add_signatures(psbt, 0, [pubkey(2)])
    finalize_psbt_input(desc, 0, psbt)
    assert psbt.inputs[0].final_scriptwitness.items == [
        dummy_sig(pubkey(2)),
        b"",
        desc.witness_script,
    ]


def test_finalize_single_key():
    desc = Descriptor(f"wpkh({A})")
    psbt = PSBT()
    update_psbt(desc, funding_tx(desc.script_pubkey), 1, psbt)
    add_signatures(psbt, 0, [pubkey(1)])
    finalize_psbt_input(desc, 0, psbt)
    assert psbt.inputs[0].final_scriptwitness.items == [dummy_sig(pubkey(1)), pubkey(1)]

    desc = Descriptor(f"sh(wpkh({A}))")
    psbt = PSBT()
    update_psbt(desc, funding_tx(desc.script_pubkey), 1, psbt)
    assert psbt.inputs[0].redeem_script.data == desc.redeem_script
    add_signatures(psbt, 0, [pubkey(1)])
    finalize_psbt_input(desc, 0, psbt)
    assert psbt.inputs[0].final_scriptwitness.items == [dummy_sig(pubkey(1)), pubkey(1)]
    assert psbt.inputs[0].final_scriptsig.data == b"\x16" + desc.redeem_script

    desc = Descriptor(f"pkh({A})")
    psbt = PSBT()
    update_psbt(desc, funding_tx(desc.script_pubkey), 1, psbt)
    assert psbt.inputs[0].witness_utxo is None
    add_signatures(psbt, 0, [pubkey(1)])
    finalize_psbt_input(desc, 0, psbt)
    sig = dummy_sig(pubkey(1))
    assert psbt.inputs[0].final_scriptsig.data == bytes([len(sig)]) + sig + b"\x21" + pubkey(1)
    assert psbt.inputs[0].final_scriptwitness is None
