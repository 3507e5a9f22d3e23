"""
Key expressions, as used in Output Script Descriptors and Miniscript.

See https://github.com/bitcoin/bips/blob/master/bip-0380.mediawiki#key-expressions.
"""
import logging

from bip32 import BIP32, HARDENED_INDEX
from embit import base58
from embit.base import EmbitError
from enum import Enum, auto

from .chains import Chain
from .ecc import get_backend
from .errors import DescriptorError
from .utils.hashes import hash160


logger = logging.getLogger(__name__)

EXTENDED_KEY_PREFIXES = ("xpub", "tpub", "xprv", "tprv")


class DescriptorKeyError(DescriptorError):
    """A key expression could not be parsed."""


class KeyDerivationError(DescriptorKeyError):
    """A key expression is well formed but its leaf key can't be derived."""


def is_hex(s):
    try:
        bytes.fromhex(s)
    except ValueError:
        return False
    return len(s) % 2 == 0


def parse_index(index_str):
    """Parse a derivation index, as contained in a derivation path."""
    assert isinstance(index_str, str)

    hardened = index_str[-1:] in ["'", "h", "H"]
    if hardened:
        index_str = index_str[:-1]
    if not index_str.isascii() or not index_str.isdigit():
        raise DescriptorKeyError(f"Invalid derivation index '{index_str}'")
    index = int(index_str)
    if index >= HARDENED_INDEX:
        raise DescriptorKeyError(f"Derivation index out of range: '{index_str}'")
    return index + HARDENED_INDEX if hardened else index


def ser_path(path):
    """Serialize a list of derivation indexes as '/0'/1/2', without the 'm'."""
    return "".join(
        f"/{i - HARDENED_INDEX}'" if i >= HARDENED_INDEX else f"/{i}" for i in path
    )


class DescriptorKeyOrigin:
    """The origin of a key in a descriptor: the fingerprint of the master key and
    the path from it to the key.
    """

    def __init__(self, fingerprint, path):
        assert isinstance(fingerprint, bytes) and isinstance(path, list)

        self.fingerprint = fingerprint
        self.path = path

    @staticmethod
    def from_str(origin_str):
        # Origin starts and ends with brackets
        if not origin_str.startswith("[") or not origin_str.endswith("]"):
            raise DescriptorKeyError(f"Insane origin: '{origin_str}'")
        # At least 8 hex characters + brackets
        if len(origin_str) < 10:
            raise DescriptorKeyError(f"Insane origin: '{origin_str}'")

        # For the fingerprint, just read the 4 bytes.
        if not is_hex(origin_str[1:9]):
            raise DescriptorKeyError(f"Insane fingerprint in origin: '{origin_str}'")
        fingerprint = bytes.fromhex(origin_str[1:9])

        path = []
        if len(origin_str) > 10:
            if origin_str[9] != "/":
                raise DescriptorKeyError(f"Insane path in origin: '{origin_str}'")
            path = [parse_index(i) for i in origin_str[10:-1].split("/")]

        return DescriptorKeyOrigin(fingerprint, path)

    def __repr__(self):
        return f"[{self.fingerprint.hex()}{ser_path(self.path)}]"


class KeyPathKind(Enum):
    FINAL = auto()
    WILDCARD_UNHARDENED = auto()
    WILDCARD_HARDENED = auto()

    def is_wildcard(self):
        return self in [KeyPathKind.WILDCARD_HARDENED, KeyPathKind.WILDCARD_UNHARDENED]


class DescriptorKeyPath:
    """The derivation path following an extended key in a descriptor."""

    def __init__(self, path, kind):
        assert isinstance(path, list) and isinstance(kind, KeyPathKind)

        self.path = path
        self.kind = kind

    @staticmethod
    def from_str(path_str):
        if len(path_str) < 2 or path_str[0] != "/":
            raise DescriptorKeyError(f"Insane key path: '{path_str}'")

        # Determine whether this key may be derived.
        kind = KeyPathKind.FINAL
        if path_str[-3:] in ["/*'", "/*h", "/*H"]:
            kind = KeyPathKind.WILDCARD_HARDENED
            path_str = path_str[:-3]
        elif path_str[-2:] == "/*":
            kind = KeyPathKind.WILDCARD_UNHARDENED
            path_str = path_str[:-2]

        if len(path_str) == 0:
            return DescriptorKeyPath([], kind)
        return DescriptorKeyPath([parse_index(i) for i in path_str[1:].split("/")], kind)

    def derivation(self, index=None):
        """The list of indexes to derive, the wildcard being replaced by {index}."""
        if not self.kind.is_wildcard():
            return self.path
        if index is None:
            raise KeyDerivationError("A wildcard key path requires a derivation index")
        if not isinstance(index, int) or not 0 <= index < HARDENED_INDEX:
            raise KeyDerivationError(f"Invalid derivation index: '{index}'")
        if self.kind == KeyPathKind.WILDCARD_HARDENED:
            index += HARDENED_INDEX
        return self.path + [index]


class DescriptorKey:
    """A Bitcoin key to be used in Output Script Descriptors.

    May be a raw public key, a WIF private key or an extended (public or private)
    key, optionally prefixed with its origin. The leaf public key is always
    resolved at construction: a key can't be changed once parsed.
    """

    def __init__(self, key_expression, is_segwit=True, chain=Chain.MAIN, index=None, ecc=None):
        assert isinstance(key_expression, str)
        ecc = get_backend(ecc)

        self.key_expression = key_expression
        # Information about the origin of this key.
        self.origin = None
        # If it is an extended key, the path toward a child key of it.
        self.path = None
        # The extended key, if any.
        self.bip32 = None
        # The full derivation path (from the extended key) to the leaf key.
        self.derivation = None
        # The 32 bytes secret, for WIF keys and extended private keys.
        self.private_key = None
        # The serialized leaf public key.
        self.pubkey = None

        # Try parsing an optional origin prepended to the key
        key = key_expression
        if key.startswith("["):
            splitted_key = key.split("]", maxsplit=1)
            if len(splitted_key) != 2:
                raise DescriptorKeyError(f"Insane origin in key: '{key_expression}'")
            origin, key = splitted_key
            self.origin = DescriptorKeyOrigin.from_str(origin + "]")

        if is_hex(key) and len(key) in (66, 130):
            self._parse_raw_pubkey(bytes.fromhex(key), is_segwit, ecc)
        else:
            # There may be an optional path appended to an extended key.
            splitted_key = key.split("/", maxsplit=1)
            if len(splitted_key) == 2:
                key, path = splitted_key
                self.path = DescriptorKeyPath.from_str("/" + path)

            if key[:4] in EXTENDED_KEY_PREFIXES:
                self._parse_extended_key(key, chain, index)
            elif self.path is not None:
                raise DescriptorKeyError(
                    f"Derivation path on a non-extended key: '{key_expression}'"
                )
            else:
                self._parse_wif(key, is_segwit, chain, ecc)

        logger.debug("Parsed key '%s' to %s", key_expression, self.pubkey.hex())

    def _parse_raw_pubkey(self, data, is_segwit, ecc):
        if not ecc.is_point(data):
            raise DescriptorKeyError(f"Invalid public key: '{self.key_expression}'")
        if len(data) == 65 and is_segwit:
            raise DescriptorKeyError(
                f"Uncompressed keys are not allowed in segwit: '{self.key_expression}'"
            )
        self.pubkey = data

    def _parse_wif(self, wif, is_segwit, chain, ecc):
        try:
            data = base58.decode_check(wif)
        except (EmbitError, ValueError) as e:
            raise DescriptorKeyError(f"Key parsing error for '{self.key_expression}': {e}")

        if len(data) == 34 and data[-1] == 0x01:
            compressed = True
        elif len(data) == 33:
            compressed = False
        else:
            raise DescriptorKeyError(f"Invalid WIF key: '{self.key_expression}'")
        if data[:1] != chain.network["wif"]:
            raise DescriptorKeyError(
                f"Key '{self.key_expression}' does not belong to network {chain}"
            )
        if not compressed and is_segwit:
            raise DescriptorKeyError(
                f"Uncompressed keys are not allowed in segwit: '{self.key_expression}'"
            )

        secret = data[1:33]
        if not ecc.is_private(secret):
            raise DescriptorKeyError(f"Invalid private key: '{self.key_expression}'")
        self.private_key = secret
        self.pubkey = ecc.pubkey_from_secret(secret, compressed=compressed)

    def _parse_extended_key(self, key, chain, index):
        try:
            payload = base58.decode_check(key)
        except (EmbitError, ValueError) as e:
            raise DescriptorKeyError(f"Key parsing error for '{self.key_expression}': {e}")
        if len(payload) != 78:
            raise DescriptorKeyError(f"Invalid extended key: '{self.key_expression}'")

        try:
            if key[1:4] == "prv":
                self.bip32 = BIP32.from_xpriv(key)
            else:
                self.bip32 = BIP32.from_xpub(key)
        except ValueError as e:
            raise DescriptorKeyError(
                f"Extended key parsing error for '{self.key_expression}': '{e}'"
            )
        if self.bip32.network != chain.bip32_network:
            raise DescriptorKeyError(
                f"Key '{self.key_expression}' does not belong to network {chain}"
            )

        try:
            path = [] if self.path is None else self.path.derivation(index)
        except KeyDerivationError as e:
            raise KeyDerivationError(f"{e.message} for key '{self.key_expression}'")
        if self.bip32.privkey is None and any(i >= HARDENED_INDEX for i in path):
            raise KeyDerivationError(
                f"Cannot derive a hardened child of public key '{self.key_expression}'"
            )

        self.derivation = path
        if len(path) == 0:
            self.pubkey = self.bip32.pubkey
            self.private_key = self.bip32.privkey
        else:
            self.pubkey = self.bip32.get_pubkey_from_path(path)
            if self.bip32.privkey is not None:
                self.private_key = self.bip32.get_privkey_from_path(path)

    def __repr__(self):
        return self.key_expression

    def __eq__(self, other):
        return isinstance(other, DescriptorKey) and self.pubkey == other.pubkey

    def __hash__(self):
        return hash(self.pubkey)

    def bytes(self):
        """Get the serialized leaf public key."""
        return self.pubkey

    @property
    def is_extended(self):
        return self.bip32 is not None

    @property
    def wildcard(self):
        """Whether the key path ended with a wildcard, derived at the given index."""
        return self.path is not None and self.path.kind.is_wildcard()

    @property
    def master_fingerprint(self):
        """The fingerprint of the master key, if known."""
        if self.origin is not None:
            return self.origin.fingerprint
        if self.bip32 is not None and self.bip32.depth == 0:
            return hash160(self.bip32.pubkey)[:4]
        return None

    @property
    def full_path(self):
        """The list of indexes from the master key to this key, if known."""
        if self.master_fingerprint is None:
            return None
        origin_path = self.origin.path if self.origin is not None else []
        return origin_path + (self.derivation or [])

    @property
    def full_path_str(self):
        path = self.full_path
        if path is None:
            return None
        return "m" + ser_path(path)


def parse_key_expression(key_expression, is_segwit=True, chain=Chain.MAIN, index=None, ecc=None):
    """Parse the key expression {key_expression}, deriving ranged keys at {index}."""
    return DescriptorKey(key_expression, is_segwit=is_segwit, chain=chain, index=index, ecc=ecc)
