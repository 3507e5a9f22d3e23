import hashlib

from mnemonic import Mnemonic
from bip32 import BIP32
from coincurve import PrivateKey
from embit import hashes

mnemo = Mnemonic("english")

DEFAULT_TEST_MNEMONIC = "glory promote mansion idle axis finger extra february uncover one trip resource lawn turtle enact monster seven myth punch hobby comfort wild raise skin"


def ripemd160(x: bytes) -> bytes:
    return hashes.ripemd160(x)


def sha256(s: bytes) -> bytes:
    return hashlib.new('sha256', s).digest()


def hash160(s: bytes) -> bytes:
    return ripemd160(sha256(s))


def hash256(s: bytes) -> bytes:
    return sha256(sha256(s))


def privkey(i: int) -> bytes:
    """A deterministic, not secret, private key."""
    return PrivateKey.from_int(i).secret


def pubkey(i: int) -> bytes:
    """The compressed public key for privkey(i)."""
    return PrivateKey.from_int(i).public_key.format(compressed=True)


def dummy_sig(pubkey: bytes) -> bytes:
    """A fake signature, unique to each key, for tests that only look at witness layouts."""
    return b"\x30" + sha256(b"sig" + pubkey) + sha256(pubkey) + b"\x01"


class TestWallet:
    """The keys of a BIP39 seed, as a hardware signer would have them."""

    __test__ = False

    def __init__(self, mnemonic: str = DEFAULT_TEST_MNEMONIC, network: str = "test"):
        if network not in ["main", "test"]:
            raise ValueError(f"Invalid network: {network}")

        self.mnemonic = mnemonic
        self.seed = mnemo.to_seed(mnemonic)
        self.bip32 = BIP32.from_seed(self.seed, network)
        self.master_extended_privkey = self.bip32.get_xpriv()
        self.master_extended_pubkey = self.bip32.get_xpub()
        self.master_key_fingerprint = hash160(self.bip32.pubkey)[0:4]

    def xpub(self, path: str) -> str:
        return self.bip32.get_xpub_from_path(path)

    def key_info(self, path: str) -> str:
        """The key expression '[fingerprint/path]xpub' for the account at {path}."""
        origin = path[1:] if path.startswith("m") else path
        return f"[{self.master_key_fingerprint.hex()}{origin}]{self.xpub(path)}"
