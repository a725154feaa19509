"""betwixt package root."""

__version__ = "0.1.0"

from betwixt.exceptions import (
    BetwixtError,
    DestinationOutsideRoot,
    DirectiveSyntaxError,
    DocumentReadError,
    EmptyDeclaredDestination,
    NeverRaise,
    NeverThrown,
    TangleFailed,
    UnresolvedDestination,
    WriteFailure,
)
from betwixt.invariants import never
from betwixt.tangle import TangleOptions, TangleReport, tangle_file, tangle_text

__all__ = [
    "__version__",
    "BetwixtError",
    "DestinationOutsideRoot",
    "DirectiveSyntaxError",
    "DocumentReadError",
    "EmptyDeclaredDestination",
    "NeverRaise",
    "NeverThrown",
    "TangleFailed",
    "UnresolvedDestination",
    "WriteFailure",
    "never",
    "TangleOptions",
    "TangleReport",
    "tangle_file",
    "tangle_text",
]
