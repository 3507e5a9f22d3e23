"""
All the exceptions raised when dealing with Miniscript.
"""

from ..errors import DescriptorError


class MiniscriptMalformed(DescriptorError):
    """The Miniscript string does not follow the grammar."""


class MiniscriptTypeError(DescriptorError):
    """A fragment was given arguments of the wrong type, or the Miniscript is not sane."""


class MiniscriptPropertyError(DescriptorError):
    """Conflicting type properties."""


class UnsatisfiableError(DescriptorError):
    """No non-malleable witness can be produced with the given material."""
