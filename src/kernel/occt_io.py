"""STEP/IGES import and the Open CASCADE kernel adapter.

This module detects the available OCCT Python binding, reads CAD payloads
into XCAF documents and exposes ``OcctKernel``, the ``CadKernel``
implementation used by the converter. Only the OCP binding is driven; any
overload probing stays inside this module.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

import structlog

from . import export, triangulation, xcaf
from .errors import DocumentReadError, OCCTNotAvailableError
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
from .units import is_valid_scale, scale_from_unit_name

logger = structlog.get_logger(__name__)

# Reader setter names per option; bindings may suffix overloads
READER_SETTERS = {
    "preserve_names": ("SetNameMode", "SetNameMode_1", "SetNameMode_2"),
    "preserve_colors": ("SetColorMode", "SetColorMode_1", "SetColorMode_2"),
    "preserve_layers": ("SetLayerMode", "SetLayerMode_1", "SetLayerMode_2"),
    "preserve_materials": ("SetMatMode", "SetMatMode_1", "SetMatMode_2"),
}

INPUT_SUFFIXES = {"step": ".stp", "iges": ".igs"}


def get_occt_info() -> Dict[str, Any]:
    """Get information about available OCCT bindings.

    Returns:
        Dictionary with binding availability and version info
    """
    info: Dict[str, Any] = {
        "ocp_available": False,
        "pythonocc_available": False,
        "recommended_binding": None,
        "occt_version": None,
    }

    try:
        import OCP

        info["ocp_available"] = True
        info["recommended_binding"] = "OCP"
        info["occt_version"] = getattr(OCP, "__version__", None)
        logger.info("OCP binding detected")
    except ImportError:
        logger.debug("OCP not available")

    try:
        import OCC.Core  # noqa: F401

        info["pythonocc_available"] = True
        logger.info("pythonocc-core binding detected")
    except ImportError:
        logger.debug("OCC.Core not available")

    return info


def _require_ocp() -> None:
    try:
        import OCP  # noqa: F401
    except ImportError as e:
        raise OCCTNotAvailableError(
            "No supported OCCT Python binding available. "
            "Install the OCP binding:\n"
            "  pip install cadquery-ocp"
        ) from e


def call_first_setter(target: Any, candidates: Iterable[str], value: Any) -> bool:
    """Call the first setter from ``candidates`` that the binding accepts.

    Returns:
        True if a setter was called successfully
    """
    if target is None:
        return False
    for name in candidates:
        setter = getattr(target, name, None)
        if not callable(setter):
            continue
        try:
            setter(value)
            return True
        except (TypeError, RuntimeError):
            continue
    return False


def apply_reader_settings(reader: Any, options: ReadOptions) -> None:
    """Enable the requested preserve modes on a CAF reader."""
    for option_name, setters in READER_SETTERS.items():
        if getattr(options, option_name) and not call_first_setter(reader, setters, True):
            logger.debug("Reader does not support option", option=option_name)


def _new_document() -> Any:
    from OCP.TCollection import TCollection_ExtendedString
    from OCP.TDocStd import TDocStd_Document

    return TDocStd_Document(TCollection_ExtendedString("XmlXCAF"))


def _new_reader(fmt: InputFormat) -> Any:
    if fmt == "step":
        from OCP.STEPCAFControl import STEPCAFControl_Reader

        return STEPCAFControl_Reader()
    if fmt == "iges":
        from OCP.IGESCAFControl import IGESCAFControl_Reader

        return IGESCAFControl_Reader()
    raise DocumentReadError(f"Unsupported input format: {fmt}")


def _transfer(reader: Any, doc: Any) -> None:
    from OCP.Message import Message_ProgressRange

    try:
        ok = reader.Transfer(doc, Message_ProgressRange())
    except TypeError:
        ok = reader.Transfer(doc)
    if ok is False:
        raise DocumentReadError("Could not transfer CAD data into the document")


def read_cad_buffer(data: bytes, fmt: InputFormat, options: Optional[ReadOptions] = None) -> Any:
    """Read a STEP/IGES payload into a new XCAF document.

    Args:
        data: Raw file bytes
        fmt: Input format ("step" or "iges")
        options: Reader options; all preserve modes default to on

    Returns:
        TDocStd_Document holding the transferred assembly

    Raises:
        DocumentReadError: If the payload is empty or the reader fails
        OCCTNotAvailableError: If the OCP binding is missing
    """
    if not data:
        raise DocumentReadError("CAD payload is empty")

    _require_ocp()
    from OCP.IFSelect import IFSelect_RetDone

    options = options or ReadOptions()
    reader = _new_reader(fmt)
    apply_reader_settings(reader, options)

    file_name = f"input{INPUT_SUFFIXES[fmt]}"
    logger.info("Reading CAD payload", format=fmt, size_bytes=len(data))

    with tempfile.TemporaryDirectory(prefix="cadbridge-") as tmpdir:
        path = Path(tmpdir) / file_name
        path.write_bytes(data)
        status = reader.ReadFile(str(path))

    if status != IFSelect_RetDone:
        raise DocumentReadError(f"Could not read {file_name} file (status: {status})")

    doc = _new_document()
    _transfer(reader, doc)
    return doc


def _unpack_scale(value: Any) -> Optional[float]:
    if isinstance(value, tuple):
        for item in value:
            if is_valid_scale(item):
                return float(item)
        return None
    return float(value) if is_valid_scale(value) else None


def read_length_unit(doc: Any) -> LengthUnitInfo:
    """Read the document length unit as a scale to meters.

    Falls back to the reader's cascade unit, then to meters with source
    ``unknown``.
    """
    try:
        from OCP.XCAFDoc import XCAFDoc_DocumentTool

        getter = getattr(XCAFDoc_DocumentTool, "GetLengthUnit_s", None)
        if getter is not None:
            for args in ((doc,), (doc, 0.0)):
                try:
                    scale = _unpack_scale(getter(*args))
                except (TypeError, RuntimeError):
                    continue
                if scale is not None:
                    return LengthUnitInfo(scale_to_meters=scale, source="XCAFDoc_DocumentTool.GetLengthUnit")
    except ImportError:
        logger.debug("XCAFDoc length unit not available")

    try:
        from OCP.Interface import Interface_Static

        unit = Interface_Static.CVal_s("xstep.cascade.unit")
        if unit:
            scale = scale_from_unit_name(unit.decode() if isinstance(unit, bytes) else str(unit))
            if scale is not None:
                return LengthUnitInfo(scale_to_meters=scale, source="Interface_Static.xstep.cascade.unit")
    except ImportError:
        logger.debug("Interface_Static not available")

    return LengthUnitInfo()


class OcctKernel:
    """``CadKernel`` backed by Open CASCADE through the OCP binding."""

    def __init__(self, debug: bool = False):
        """Initialize the kernel.

        Args:
            debug: Log triangulation parameters at info level

        Raises:
            OCCTNotAvailableError: If the OCP binding is missing
        """
        _require_ocp()
        self._debug = debug
        logger.info("OCCT kernel initialized", binding="OCP")

    def read_document(self, data: bytes, fmt: InputFormat, read_options: Optional[ReadOptions] = None) -> Any:
        return read_cad_buffer(data, fmt, read_options)

    def triangulate(self, doc: Any, options: Optional[TriangulateOptions] = None) -> None:
        triangulation.triangulate_document(doc, options, debug=self._debug)

    def write_buffer(
        self, doc: Any, fmt: OutputFormat, write_options: Optional[WriteOptions] = None
    ) -> ConvertBufferResult:
        return export.write_document_to_buffer(doc, fmt, write_options)

    def build_raw_node_map(self, doc: Any, name_overrides: Optional[Dict[str, str]] = None) -> NodeMap:
        return xcaf.build_node_map(xcaf.OcpLabelTool(doc), name_overrides)

    def build_raw_bom(self, doc: Any, name_overrides: Optional[Dict[str, str]] = None) -> BomExport:
        return xcaf.build_bom(xcaf.OcpLabelTool(doc), name_overrides)

    def read_length_unit(self, doc: Any) -> LengthUnitInfo:
        return read_length_unit(doc)
