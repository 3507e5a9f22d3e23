"""
Output Script Descriptors checksum.

See https://github.com/bitcoin/bips/blob/master/bip-0380.mediawiki#checksum.
"""

from embit.descriptor.checksum import checksum as embit_checksum
from embit.descriptor.errors import DescriptorError as EmbitDescriptorError

from .errors import DescriptorParsingError


CHECKSUM_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
CHECKSUM_LENGTH = 8


def checksum(s):
    """Compute the 8 characters checksum of the descriptor {s} (without '#')."""
    try:
        return embit_checksum(s)
    except EmbitDescriptorError as e:
        raise DescriptorParsingError(f"Invalid descriptor '{s}': {e}") from e


def descsum_create(s):
    """Add a checksum to a descriptor without one."""
    return s + "#" + checksum(s)


def descsum_check(s, require=True):
    """Verify that the checksum is correct in a descriptor.

    Returns False on a missing checksum unless {require} is unset.
    """
    if "#" not in s:
        return not require
    desc, _, chk = s.rpartition("#")
    if len(chk) != CHECKSUM_LENGTH or any(c not in CHECKSUM_CHARSET for c in chk):
        return False
    try:
        return checksum(desc) == chk
    except DescriptorParsingError:
        return False
