"""
rulec Config - Compiler settings.

Settings can be passed explicitly or read from the environment:

    RULEC_STRICT_LITERALS   "0", "false" or "no" to only warn about
                            unquoted literals in raw data (default strict)
"""

import os
from dataclasses import dataclass
from typing import Optional

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass(frozen=True)
class CompilerConfig:
    """
    Attributes:
        strict_literals: Reject bare identifiers that fell through lowering
            as literals when the raw-data table is built
    """
    strict_literals: bool = True

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "CompilerConfig":
        environ = os.environ if environ is None else environ
        value = environ.get("RULEC_STRICT_LITERALS", "true")
        return cls(strict_literals=value.strip().lower() not in _FALSE_VALUES)
