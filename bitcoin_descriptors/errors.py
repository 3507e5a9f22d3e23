"""
Base class of the exceptions raised when dealing with descriptors.
"""


class DescriptorError(ValueError):
    """Base class for all the errors raised by this library. The offending input
    is always part of the message."""

    def __init__(self, message):
        super().__init__(message)
        self.message = message
