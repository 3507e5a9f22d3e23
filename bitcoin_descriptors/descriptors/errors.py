from ..errors import DescriptorError


class DescriptorParsingError(DescriptorError):
    """Error while parsing a Bitcoin Output Descriptor from its string representation"""


class ResourceLimitError(DescriptorError):
    """A Script exceeds the size or operations count a standard transaction allows"""
