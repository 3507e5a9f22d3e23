"""
Output scripts and addresses for each kind of descriptor.
"""

from collections import namedtuple

from embit import ec, script as embit_script
from embit.base import EmbitError
from embit.script import Script

from ..utils.script import CScript, OP_CHECKSIG
from .errors import DescriptorParsingError


class Payment(
    namedtuple(
        "Payment", ["name", "output", "address", "redeem_script", "witness_script"]
    )
):
    """The artifacts of a descriptor.

    :param name: The template of the output ('p2wsh', 'p2sh-p2wpkh', ...).
    :param output: The scriptPubKey, as bytes.
    :param address: The address of the output, None for a bare pubkey.
    :param redeem_script: The P2SH redeem script, if any.
    :param witness_script: The P2WSH witness script, if any.
    """

    def __new__(cls, name, output, address=None, redeem_script=None, witness_script=None):
        return super().__new__(cls, name, output, address, redeem_script, witness_script)


def script_address(output, chain):
    return Script(output).address(chain.network)


def p2pk(pubkey, chain):
    return Payment("p2pk", bytes(CScript([pubkey, OP_CHECKSIG])))


def p2pkh(pubkey, chain):
    output = embit_script.p2pkh(ec.PublicKey.parse(pubkey)).data
    return Payment("p2pkh", output, script_address(output, chain))


def p2wpkh(pubkey, chain):
    output = embit_script.p2wpkh(ec.PublicKey.parse(pubkey)).data
    return Payment("p2wpkh", output, script_address(output, chain))


def p2sh_p2wpkh(pubkey, chain):
    redeem_script = p2wpkh(pubkey, chain).output
    output = embit_script.p2sh(Script(redeem_script)).data
    return Payment(
        "p2sh-p2wpkh", output, script_address(output, chain), redeem_script=redeem_script
    )


def p2wsh(witness_script, chain):
    output = embit_script.p2wsh(Script(witness_script)).data
    return Payment(
        "p2wsh", output, script_address(output, chain), witness_script=witness_script
    )


def p2sh_p2wsh(witness_script, chain):
    redeem_script = p2wsh(witness_script, chain).output
    output = embit_script.p2sh(Script(redeem_script)).data
    return Payment(
        "p2sh-p2wsh",
        output,
        script_address(output, chain),
        redeem_script=redeem_script,
        witness_script=witness_script,
    )


def p2sh(redeem_script, chain):
    output = embit_script.p2sh(Script(redeem_script)).data
    return Payment("p2sh", output, script_address(output, chain), redeem_script=redeem_script)


# The output templates an address may correspond to, in the order they are tried.
OUTPUT_TEMPLATES = [
    ("p2pkh", lambda d: len(d) == 25 and d[:3] == b"\x76\xa9\x14" and d[-2:] == b"\x88\xac"),
    ("p2sh", lambda d: len(d) == 23 and d[:2] == b"\xa9\x14" and d[-1] == 0x87),
    ("p2wpkh", lambda d: len(d) == 22 and d[:2] == b"\x00\x14"),
    ("p2wsh", lambda d: len(d) == 34 and d[:2] == b"\x00\x20"),
    ("p2tr", lambda d: len(d) == 34 and d[:2] == b"\x51\x20"),
]


def from_address(address, chain):
    """Get the Payment for an address, which must belong to {chain}."""
    try:
        output = embit_script.address_to_scriptpubkey(address)
    except (EmbitError, ValueError) as e:
        raise DescriptorParsingError(f"Invalid address '{address}': {e}")
    if output is None:
        raise DescriptorParsingError(f"Invalid address '{address}'")
    output = output.data

    name = next((name for name, matches in OUTPUT_TEMPLATES if matches(output)), None)
    if name is None:
        raise DescriptorParsingError(f"Unsupported address type '{address}'")

    # Addresses are re-encoded for the chain, they must match the one we were given.
    if script_address(output, chain).lower() != address.lower():
        raise DescriptorParsingError(f"Address '{address}' does not belong to {chain}")

    return Payment(name, output, address)
