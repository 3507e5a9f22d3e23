# Copyright (c) 2015-2020 The Bitcoin Core developers
# Copyright (c) 2021 Antoine Poinsot
# Distributed under the MIT software license, see the accompanying
# file LICENSE or http://www.opensource.org/licenses/mit-license.php.
"""Script utilities

The opcodes a segwit v0 Miniscript compiles to, and a CScript to serialize them.
"""
import struct


OPCODE_NAMES = {}


def bn2vch(v):
    """Convert number to bitcoin-specific little endian format."""
    # We need v.bit_length() bits, plus a sign bit for every nonzero number.
    n_bits = v.bit_length() + (v != 0)
    n_bytes = (n_bits + 7) // 8
    # Absolute value, with the sign in the top bit.
    encoded_v = 0 if v == 0 else abs(v) | ((v < 0) << (n_bytes * 8 - 1))
    return encoded_v.to_bytes(n_bytes, "little")


def push_data(data):
    """The smallest push of {data}."""
    size = len(data)
    if size < 0x4C:
        return bytes([size]) + data
    for opcode, fmt in ((OP_PUSHDATA1, "<B"), (OP_PUSHDATA2, "<H"), (OP_PUSHDATA4, "<I")):
        try:
            return bytes([opcode]) + struct.pack(fmt, size) + data
        except struct.error:
            continue
    raise ValueError("Data too long to encode in a PUSHDATA op")


class CScriptOp(int):
    """A single script opcode"""

    __slots__ = ()

    def __repr__(self):
        return OPCODE_NAMES.get(self, f"CScriptOp(0x{self:x})")


# push value
OP_0 = CScriptOp(0x00)
OP_PUSHDATA1 = CScriptOp(0x4C)
OP_PUSHDATA2 = CScriptOp(0x4D)
OP_PUSHDATA4 = CScriptOp(0x4E)
OP_1NEGATE = CScriptOp(0x4F)
OP_1 = CScriptOp(0x51)
OP_16 = CScriptOp(0x60)

# control
OP_IF = CScriptOp(0x63)
OP_NOTIF = CScriptOp(0x64)
OP_ELSE = CScriptOp(0x67)
OP_ENDIF = CScriptOp(0x68)
OP_VERIFY = CScriptOp(0x69)

# stack ops
OP_TOALTSTACK = CScriptOp(0x6B)
OP_FROMALTSTACK = CScriptOp(0x6C)
OP_IFDUP = CScriptOp(0x73)
OP_DUP = CScriptOp(0x76)
OP_SWAP = CScriptOp(0x7C)
OP_SIZE = CScriptOp(0x82)

# bit logic
OP_EQUAL = CScriptOp(0x87)
OP_EQUALVERIFY = CScriptOp(0x88)

# numeric
OP_0NOTEQUAL = CScriptOp(0x92)
OP_ADD = CScriptOp(0x93)
OP_BOOLAND = CScriptOp(0x9A)
OP_BOOLOR = CScriptOp(0x9B)

# crypto
OP_RIPEMD160 = CScriptOp(0xA6)
OP_SHA256 = CScriptOp(0xA8)
OP_HASH160 = CScriptOp(0xA9)
OP_HASH256 = CScriptOp(0xAA)
OP_CHECKSIG = CScriptOp(0xAC)
OP_CHECKSIGVERIFY = CScriptOp(0xAD)
OP_CHECKMULTISIG = CScriptOp(0xAE)
OP_CHECKMULTISIGVERIFY = CScriptOp(0xAF)

# locktimes
OP_CHECKLOCKTIMEVERIFY = CScriptOp(0xB1)
OP_CHECKSEQUENCEVERIFY = CScriptOp(0xB2)

OPCODE_NAMES.update(
    {op: name for name, op in list(globals().items()) if name.startswith("OP_")}
)

PUSHDATA_LENGTH_SIZES = {OP_PUSHDATA1: 1, OP_PUSHDATA2: 2, OP_PUSHDATA4: 4}


class CScriptInvalidError(Exception):
    """The Script can't be decoded"""


def script_element(elem):
    """Serialize an opcode, a number or a data push."""
    if isinstance(elem, CScriptOp):
        return bytes([elem])
    if isinstance(elem, int):
        if elem == 0:
            return bytes([OP_0])
        if 1 <= elem <= 16:
            return bytes([OP_1 + elem - 1])
        if elem == -1:
            return bytes([OP_1NEGATE])
        return push_data(bn2vch(elem))
    if isinstance(elem, (bytes, bytearray)):
        return push_data(bytes(elem))
    raise TypeError(f"Can not serialize a {type(elem).__name__} in a Script")


class CScript(bytes):
    """Serialized script

    Either raw bytes, or built from a list of opcodes, numbers and data pushes.
    """

    __slots__ = ()

    def __new__(cls, value=b""):
        if isinstance(value, (bytes, bytearray)):
            return super().__new__(cls, value)
        return super().__new__(cls, b"".join(script_element(elem) for elem in value))

    def raw_iter(self):
        """Yields tuples of (opcode, data) where data is None for non-push opcodes."""
        i = 0
        while i < len(self):
            opcode = self[i]
            i += 1

            if opcode > OP_PUSHDATA4:
                yield (opcode, None)
                continue

            datasize = opcode
            if opcode in PUSHDATA_LENGTH_SIZES:
                length_size = PUSHDATA_LENGTH_SIZES[opcode]
                if i + length_size > len(self):
                    raise CScriptInvalidError(f"{OPCODE_NAMES[opcode]}: missing data length")
                datasize = int.from_bytes(self[i: i + length_size], "little")
                i += length_size

            if i + datasize > len(self):
                raise CScriptInvalidError(f"Push of {datasize} bytes is truncated")
            yield (opcode, bytes(self[i: i + datasize]))
            i += datasize

    def __repr__(self):
        try:
            ops = [
                data.hex() if data is not None else repr(CScriptOp(opcode))
                for opcode, data in self.raw_iter()
            ]
        except CScriptInvalidError as err:
            ops = [f"<ERROR: {err}>"]
        return f"CScript([{', '.join(ops)}])"

    def count_non_push_ops(self):
        """The number of opcodes counting towards the 201 ops limit, that is all
        the opcodes above OP_16. Counted statically, without executing the Script."""
        return sum(1 for (opcode, _) in self.raw_iter() if opcode > OP_16)
