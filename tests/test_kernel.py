"""Tests for the Open CASCADE adapter helpers."""

from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from kernel.errors import DocumentReadError, ExportError, OCCTNotAvailableError
from kernel.export import (
    DEFAULT_NAME_FORMAT,
    NAME_FORMAT_KEYS,
    apply_length_unit_conversion,
    apply_name_format,
    resolve_name_format_key,
    write_document_to_buffer,
)
from kernel.interface import CadKernel
from kernel.occt_io import (
    READER_SETTERS,
    OcctKernel,
    apply_reader_settings,
    call_first_setter,
    get_occt_info,
    read_cad_buffer,
)
from kernel.triangulation import DEFAULT_TRIANGULATE_OPTIONS, resolve_triangulate_options
from kernel.types import BomItem, BomOccurrence, ReadOptions, TriangulateOptions
from kernel.units import is_valid_scale, normalize_unit_name, scale_from_unit_name, unit_name_from_scale


class TestOCCTInfo:
    """Test cases for OCCT binding detection."""

    def test_get_occt_info_structure(self):
        """Test that get_occt_info returns expected structure."""
        info = get_occt_info()

        required_keys = {"ocp_available", "pythonocc_available", "recommended_binding", "occt_version"}

        assert isinstance(info, dict)
        assert required_keys.issubset(info.keys())
        assert isinstance(info["ocp_available"], bool)
        assert isinstance(info["pythonocc_available"], bool)

    @patch('kernel.occt_io.logger')
    def test_occt_info_logging(self, mock_logger):
        """Test that OCCT detection logs appropriately."""
        get_occt_info()
        assert mock_logger.info.called or mock_logger.debug.called

    def test_kernel_requires_ocp(self):
        """Test that OcctKernel fails cleanly without the OCP binding."""
        if get_occt_info()["ocp_available"]:
            pytest.skip("OCP is installed")
        with pytest.raises(OCCTNotAvailableError, match="cadquery-ocp"):
            OcctKernel()

    def test_kernel_satisfies_protocol(self, skip_if_no_occt):
        """Test that OcctKernel implements the kernel contract."""
        assert isinstance(OcctKernel(), CadKernel)


class TestReader:
    """Test cases for reader configuration and input validation."""

    def test_empty_payload(self):
        """Test that an empty buffer is rejected before touching OCCT."""
        with pytest.raises(DocumentReadError, match="empty"):
            read_cad_buffer(b"", "step")

    def test_first_accepted_setter_wins(self):
        """Test fallback across overloaded setter names."""
        reader = Mock(spec=["SetNameMode_1", "SetNameMode_2"])
        reader.SetNameMode_1.side_effect = TypeError("wrong overload")

        assert call_first_setter(reader, READER_SETTERS["preserve_names"], True) is True
        reader.SetNameMode_2.assert_called_once_with(True)

    def test_no_setter_available(self):
        """Test that a reader without setters is left alone."""
        assert call_first_setter(Mock(spec=[]), ("SetNameMode",), True) is False
        assert call_first_setter(None, ("SetNameMode",), True) is False

    def test_apply_reader_settings(self):
        """Test that only enabled preserve modes are applied."""
        reader = Mock(spec=["SetNameMode", "SetColorMode", "SetLayerMode", "SetMatMode"])

        apply_reader_settings(reader, ReadOptions(preserve_layers=False))

        reader.SetNameMode.assert_called_once_with(True)
        reader.SetColorMode.assert_called_once_with(True)
        reader.SetMatMode.assert_called_once_with(True)
        reader.SetLayerMode.assert_not_called()


class TestExport:
    """Test cases for writer configuration."""

    @pytest.mark.parametrize(
        "name_format, expected",
        [
            (None, "RWMesh_NameFormat_ProductOrInstance"),
            ("product", "RWMesh_NameFormat_Product"),
            ("productAndInstanceAndOcaf", "RWMesh_NameFormat_ProductAndInstanceAndOcaf"),
            ("bogus", "RWMesh_NameFormat_ProductOrInstance"),
        ],
    )
    def test_resolve_name_format_key(self, name_format, expected):
        """Test name format lookup with the default fallback."""
        assert resolve_name_format_key(name_format) == expected

    def test_all_name_formats_mapped(self):
        """Test that every name format has an enum key."""
        assert DEFAULT_NAME_FORMAT in NAME_FORMAT_KEYS
        assert len(NAME_FORMAT_KEYS) == 7

    def test_name_format_skipped_without_support(self):
        """Test that writers without naming support are untouched."""
        writer = Mock(spec=["Perform"])
        apply_name_format(writer, "product")
        writer.Perform.assert_not_called()

    def test_length_unit_conversion(self):
        """Test that a valid scale configures the coordinate converter."""
        writer = Mock()
        converter = writer.ChangeCoordinateSystemConverter.return_value

        apply_length_unit_conversion(writer, 0.001)

        converter.SetInputLengthUnit.assert_called_once_with(0.001)
        converter.SetOutputLengthUnit.assert_called_once_with(1.0)
        writer.SetCoordinateSystemConverter.assert_called_once_with(converter)

    @pytest.mark.parametrize("scale", [None, 0, -1.0, float("nan"), float("inf"), True])
    def test_invalid_scale_ignored(self, scale):
        """Test that invalid scales leave the writer untouched."""
        writer = Mock()
        apply_length_unit_conversion(writer, scale)
        writer.ChangeCoordinateSystemConverter.assert_not_called()

    def test_unsupported_format(self):
        """Test that unknown output formats raise ExportError."""
        with pytest.raises(ExportError, match="Unsupported export format"):
            write_document_to_buffer(object(), "stl")


class TestTriangulationOptions:
    """Test cases for meshing defaults."""

    def test_defaults(self):
        """Test the kernel meshing defaults."""
        assert resolve_triangulate_options() == DEFAULT_TRIANGULATE_OPTIONS
        assert DEFAULT_TRIANGULATE_OPTIONS == TriangulateOptions(1.0, 0.5, False, True)

    def test_explicit_values_kept(self):
        """Test that set fields, including falsy ones, win over defaults."""
        resolved = resolve_triangulate_options(TriangulateOptions(linear_deflection=0.1, parallel=False))

        assert resolved == TriangulateOptions(0.1, 0.5, False, False)


class TestUnits:
    """Test cases for length unit naming."""

    @pytest.mark.parametrize(
        "scale, expected",
        [(1.0, "m"), (0.001, "mm"), (0.01, "cm"), (0.0254, "in"), (0.3048, "ft"), (0.5, "unknown"), (float("nan"), "unknown")],
    )
    def test_unit_name_from_scale(self, scale, expected):
        """Test well-known scales and unknown values."""
        assert unit_name_from_scale(scale) == expected

    def test_scale_from_unit_name(self):
        """Test reader unit names mapped to scales."""
        assert scale_from_unit_name("MILLIMETRE") == 0.001
        assert scale_from_unit_name(" Inch ") == 0.0254
        assert scale_from_unit_name("furlong") is None
        assert normalize_unit_name("Metre") == "m"

    def test_is_valid_scale(self):
        """Test that bools and non-positive numbers are rejected."""
        assert is_valid_scale(0.001)
        assert not is_valid_scale(False)
        assert not is_valid_scale(0.0)


class TestBomItem:
    """Test cases for the BOM item model."""

    def test_quantity_tracks_instances(self):
        """Test that quantity always equals the instance count."""
        item = BomItem(product_id="p", product_name="P", kind="part", quantity=9)
        assert item.quantity == 0

        item.add_occurrence(BomOccurrence(node_id="a", instance_id="0:1", name="A"))

        assert item.quantity == 1
