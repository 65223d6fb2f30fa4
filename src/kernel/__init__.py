"""Kernel package for CAD document processing.

This package defines the contract between the conversion pipeline and a CAD
kernel, the shared data model, and the Open CASCADE adapter that reads
STEP/IGES documents, meshes them and writes GLB/glTF/OBJ output.
"""

from .errors import (
    CadBridgeError,
    ConversionError,
    DocumentReadError,
    ExportError,
    OCCTNotAvailableError,
    UnsupportedContentError,
    ValidationError,
)
from .interface import CadKernel
from .occt_io import OcctKernel, get_occt_info
from .types import (
    AssemblyNode,
    BomExport,
    BomItem,
    BomOccurrence,
    ConvertBufferResult,
    LengthUnitInfo,
    NodeMap,
    ReadOptions,
    TriangulateOptions,
    WriteOptions,
)
from .units import unit_name_from_scale

__version__ = "0.1.0"
__all__ = [
    "CadBridgeError", "ConversionError", "DocumentReadError", "ExportError",
    "OCCTNotAvailableError", "UnsupportedContentError", "ValidationError",
    "CadKernel", "OcctKernel", "get_occt_info",
    "AssemblyNode", "BomExport", "BomItem", "BomOccurrence", "ConvertBufferResult",
    "LengthUnitInfo", "NodeMap", "ReadOptions", "TriangulateOptions", "WriteOptions",
    "unit_name_from_scale",
]
