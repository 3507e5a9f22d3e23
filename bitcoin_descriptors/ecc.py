"""
Elliptic curve operations needed to resolve key expressions.

The curve implementation is a parameter of the library: anything implementing
the EccBackend interface can be passed where an `ecc` argument is accepted.
"""

import coincurve


class EccBackend:
    """The secp256k1 operations the key expression parser relies on."""

    def is_point(self, data):
        """Whether {data} is a valid serialized (compressed or not) public key."""
        raise NotImplementedError

    def point_compress(self, data, compressed=True):
        """Re-serialize the public key {data} in compressed or uncompressed form."""
        raise NotImplementedError

    def is_private(self, secret):
        """Whether {secret} is a valid 32-bytes private key."""
        raise NotImplementedError

    def pubkey_from_secret(self, secret, compressed=True):
        """Get the serialized public key for the private key {secret}."""
        raise NotImplementedError


class CoincurveBackend(EccBackend):
    """Backend using libsecp256k1 through coincurve."""

    def is_point(self, data):
        if len(data) not in (33, 65):
            return False
        try:
            coincurve.PublicKey(data)
        except ValueError:
            return False
        return True

    def point_compress(self, data, compressed=True):
        return coincurve.PublicKey(data).format(compressed=compressed)

    def is_private(self, secret):
        if len(secret) != 32:
            return False
        try:
            coincurve.PrivateKey(secret)
        except ValueError:
            return False
        return True

    def pubkey_from_secret(self, secret, compressed=True):
        return coincurve.PrivateKey(secret).public_key.format(compressed=compressed)


DEFAULT_BACKEND = CoincurveBackend()


def get_backend(ecc=None):
    """Get the backend to use, the coincurve one if none was given."""
    if ecc is None:
        return DEFAULT_BACKEND
    if not isinstance(ecc, EccBackend):
        raise TypeError(f"Invalid elliptic curve backend: '{ecc}'")
    return ecc
