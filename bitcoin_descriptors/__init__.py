"""Bitcoin Output Script Descriptors and Miniscript"""

from .chains import Chain
from .descriptors import Descriptor, DescriptorsFactory
from .descriptors.checksum import checksum, descsum_check, descsum_create
from .descriptors.errors import DescriptorParsingError, ResourceLimitError
from .descriptors.psbt import finalize_psbt_input, update_psbt
from .ecc import CoincurveBackend, EccBackend
from .errors import DescriptorError
from .key import DescriptorKey, DescriptorKeyError, KeyDerivationError, parse_key_expression
from .miniscript import (
    PartialSig,
    Preimage,
    SatisfactionResult,
    TimeConstraints,
    UnsatisfiableError,
    compile_miniscript,
    expand_miniscript,
    satisfy_miniscript,
)

__version__ = '0.1.0'

__all__ = [
    "Chain",
    "Descriptor",
    "DescriptorsFactory",
    "checksum",
    "descsum_check",
    "descsum_create",
    "DescriptorError",
    "DescriptorParsingError",
    "ResourceLimitError",
    "DescriptorKeyError",
    "KeyDerivationError",
    "UnsatisfiableError",
    "update_psbt",
    "finalize_psbt_input",
    "EccBackend",
    "CoincurveBackend",
    "DescriptorKey",
    "parse_key_expression",
    "expand_miniscript",
    "compile_miniscript",
    "satisfy_miniscript",
    "PartialSig",
    "Preimage",
    "SatisfactionResult",
    "TimeConstraints",
]
