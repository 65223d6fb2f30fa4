"""Contract between the conversion pipeline and a CAD kernel.

The pipeline never inspects kernel state; it only calls these methods and
consumes their documented return shapes. Any binding-specific overload
resolution happens inside the implementing class.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .types import (
    BomExport,
    ConvertBufferResult,
    InputFormat,
    LengthUnitInfo,
    NodeMap,
    OutputFormat,
    ReadOptions,
    TriangulateOptions,
    WriteOptions,
)

# Opaque document handle owned by the kernel
DocumentHandle = Any

NameOverrideMap = Dict[str, str]


@runtime_checkable
class CadKernel(Protocol):
    """Operations a CAD kernel must expose to the converter."""

    def read_document(
        self, data: bytes, fmt: InputFormat, read_options: Optional[ReadOptions] = None
    ) -> DocumentHandle:
        ...

    def triangulate(self, doc: DocumentHandle, options: Optional[TriangulateOptions] = None) -> None:
        ...

    def write_buffer(
        self, doc: DocumentHandle, fmt: OutputFormat, write_options: Optional[WriteOptions] = None
    ) -> ConvertBufferResult:
        ...

    def build_raw_node_map(
        self, doc: DocumentHandle, name_overrides: Optional[NameOverrideMap] = None
    ) -> NodeMap:
        ...

    def build_raw_bom(
        self, doc: DocumentHandle, name_overrides: Optional[NameOverrideMap] = None
    ) -> BomExport:
        ...

    def read_length_unit(self, doc: DocumentHandle) -> LengthUnitInfo:
        ...
