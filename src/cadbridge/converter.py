"""Converter facade over a CAD kernel."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Optional

import structlog

from glbcore.names import build_pretty_names
from kernel.errors import ExportError
from kernel.interface import CadKernel, DocumentHandle
from kernel.types import (
    BomExport,
    ConvertBufferResult,
    InputFormat,
    NameFormat,
    NodeMap,
    OutputFormat,
    ReadOptions,
    TriangulateOptions,
    WriteOptions,
)

from .conversion import (
    CONVERSION_NAME_FORMAT,
    ConvertCadBufferOptions,
    ConvertCadBufferResult,
    GlbConversionOptions,
    GlbConversionResult,
    convert_cad_buffer_to_glb_with_metadata,
    convert_document_to_glb_with_retries,
)
from .logging_setup import configure_logging_from_settings
from .settings import Settings, load_settings

logger = structlog.get_logger(__name__)


@dataclass
class DocumentMetadata:
    node_map: NodeMap
    bom: BomExport


class CadConverter:
    """Converts CAD documents through an injected ``CadKernel``.

    Document operations delegate straight to the kernel. The conversion
    methods fill unset attempt counts and explosion thresholds from
    ``settings``.
    """

    def __init__(self, kernel: CadKernel, settings: Optional[Settings] = None):
        """Initialize the converter.

        Args:
            kernel: CAD kernel implementation
            settings: Runtime settings; defaults when omitted
        """
        self.kernel = kernel
        self.settings = settings or Settings()

    def read_buffer(
        self, data: bytes, fmt: InputFormat, options: Optional[ReadOptions] = None
    ) -> DocumentHandle:
        """Read STEP/IGES bytes into a kernel document.

        Raises:
            DocumentReadError: If the kernel reader fails
        """
        return self.kernel.read_document(data, fmt, options)

    def triangulate(self, doc: DocumentHandle, options: Optional[TriangulateOptions] = None) -> None:
        self.kernel.triangulate(doc, options)

    def write_buffer(
        self, doc: DocumentHandle, fmt: OutputFormat, options: Optional[WriteOptions] = None
    ) -> ConvertBufferResult:
        return self.kernel.write_buffer(doc, fmt, options)

    def create_node_map(self, doc: DocumentHandle, name_overrides: Optional[Dict[str, str]] = None) -> NodeMap:
        return self.kernel.build_raw_node_map(doc, name_overrides)

    def create_bom(self, doc: DocumentHandle, name_overrides: Optional[Dict[str, str]] = None) -> BomExport:
        return self.kernel.build_raw_bom(doc, name_overrides)

    def create_metadata_from_glb(
        self, doc: DocumentHandle, name_format: Optional[NameFormat] = None
    ) -> DocumentMetadata:
        """Write a GLB and use its cleaned node names as name overrides.

        Names that clean down to the bare label entry are not overrides, so
        those nodes keep the kernel's stored name.

        Args:
            doc: Triangulated kernel document
            name_format: Writer name format; must keep the OCAF entry in names

        Returns:
            Node map and BOM built with the GLB-derived names

        Raises:
            ExportError: If the kernel does not produce GLB output
        """
        result = self.kernel.write_buffer(
            doc, "glb", WriteOptions(name_format=name_format or CONVERSION_NAME_FORMAT)
        )
        if result.output_format != "glb" or result.glb is None:
            raise ExportError("Expected GLB buffer when extracting metadata.")

        overrides = build_pretty_names(result.glb)
        logger.debug("Name overrides from GLB", overrides=len(overrides))
        return DocumentMetadata(
            node_map=self.kernel.build_raw_node_map(doc, overrides),
            bom=self.kernel.build_raw_bom(doc, overrides),
        )

    def convert_document_to_glb(
        self, doc: DocumentHandle, options: Optional[GlbConversionOptions] = None
    ) -> GlbConversionResult:
        """Mesh and write ``doc`` as GLB under the retry policy."""
        options = options or GlbConversionOptions()
        options = replace(
            options,
            attempts=options.attempts if options.attempts is not None else self.settings.attempts,
            thresholds=options.thresholds or self.settings.thresholds,
        )
        return convert_document_to_glb_with_retries(self.kernel, doc, options)

    def convert_cad_buffer(self, data: bytes, options: ConvertCadBufferOptions) -> ConvertCadBufferResult:
        """Run the full CAD bytes to GLB plus metadata pipeline."""
        options = replace(
            options,
            attempts=options.attempts if options.attempts is not None else self.settings.attempts,
            thresholds=options.thresholds or self.settings.thresholds,
        )
        logger.info("Converting CAD buffer", input_format=options.input_format, size=len(data))
        return convert_cad_buffer_to_glb_with_metadata(self.kernel, data, options)


def create_converter(settings: Optional[Settings] = None, **kernel_kwargs: Any) -> CadConverter:
    """Create a converter backed by Open CASCADE.

    When ``settings`` is omitted they are read from the environment and
    logging is configured from them as well.

    Args:
        settings: Runtime settings; read from the environment when omitted
        **kernel_kwargs: Extra arguments for ``OcctKernel``

    Raises:
        OCCTNotAvailableError: If the OCP binding is missing
    """
    from kernel.occt_io import OcctKernel

    if settings is None:
        settings = load_settings()
        configure_logging_from_settings(settings)
    kernel_kwargs.setdefault("debug", settings.debug_triangulation)
    return CadConverter(OcctKernel(**kernel_kwargs), settings)
