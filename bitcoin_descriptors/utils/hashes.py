"""
Common Bitcoin hashes.
"""

import hashlib

from embit import hashes as embit_hashes


def sha256(data):
    """{data} must be bytes, returns sha256(data)"""
    assert isinstance(data, bytes)
    return hashlib.sha256(data).digest()


def hash256(data):
    """{data} must be bytes, returns sha256(sha256(data))"""
    return sha256(sha256(data))


def ripemd160(data):
    """{data} must be bytes, returns ripemd160(data)"""
    assert isinstance(data, bytes)
    # Not every OpenSSL build ships ripemd160 anymore, embit has a pure Python one.
    return embit_hashes.ripemd160(data)


def hash160(data):
    """{data} must be bytes, returns ripemd160(sha256(data))"""
    return ripemd160(sha256(data))


HASH_FUNCTIONS = {
    "sha256": sha256,
    "hash256": hash256,
    "ripemd160": ripemd160,
    "hash160": hash160,
}

# The size of the digest for each of the functions above.
DIGEST_SIZES = {
    "sha256": 32,
    "hash256": 32,
    "ripemd160": 20,
    "hash160": 20,
}
