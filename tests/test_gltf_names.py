"""Tests for label entry extraction and glTF node name mapping."""

from __future__ import annotations

import pytest

from glbcore.names import (
    GltfNodeIndex,
    build_node_index,
    build_pretty_names,
    clean_display_name,
    extract_identifier,
)


class TestExtractIdentifier:
    """Test cases for extract_identifier."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Gear Box [0:1]", "0:1"),
            ("Part [0:1:1:3] [NAUO12]", "0:1:1:3"),
            ("0:1:2", "0:1:2"),
            ("A 0:1 then 0:1:4:7", "0:1:4:7"),
            ("No entry", None),
            ("Version 12", None),
            ("", None),
        ],
    )
    def test_extract(self, name, expected):
        """Test that the last entry-looking token is returned."""
        assert extract_identifier(name) == expected

    def test_ascii_digits_only(self):
        """Test that non-ASCII digits are not read as an entry."""
        assert extract_identifier("Part [\u0661:\u0662]") is None
        assert extract_identifier("Part [\u0661:\u0662] [0:1:5]") == "0:1:5"


class TestCleanDisplayName:
    """Test cases for clean_display_name."""

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("Bolt [0:1:2] [NAUO123]", "Bolt"),
            ("Part [0:1:3] [Custom]", "Part [Custom]"),
            ("  Plate  ", "Plate"),
            ("Nut [nauo7]", "Nut"),
            ("Spacer [] [0:1:9]", "Spacer"),
            ("Shaft  [ Keyed ]", "Shaft [Keyed]"),
            ("", ""),
            ("   ", ""),
        ],
    )
    def test_clean(self, name, expected):
        """Test removal of entries and instance tags."""
        assert clean_display_name(name) == expected

    def test_nothing_survives_returns_trimmed_original(self):
        """Test that a name made only of noise is returned trimmed."""
        assert clean_display_name(" [0:1:2] [NAUO1] ") == "[0:1:2] [NAUO1]"

    def test_idempotent(self):
        """Test that cleaning twice equals cleaning once."""
        for name in ("Bolt [0:1:2] [NAUO123]", "Part [0:1:3] [Custom]", "Plain"):
            once = clean_display_name(name)
            assert clean_display_name(once) == once


class TestNodeIndex:
    """Test cases for build_node_index and build_pretty_names."""

    def test_index_by_entry(self, bracket_glb):
        """Test that every named node is indexed by its entry."""
        index = build_node_index(bracket_glb)

        assert index == {
            "0:1:1:1": GltfNodeIndex(gltf_node_index=0, gltf_mesh_index=0),
            "0:1:1:2": GltfNodeIndex(gltf_node_index=1, gltf_mesh_index=1),
            "0:1:1:3": GltfNodeIndex(gltf_node_index=2, gltf_mesh_index=2),
        }

    def test_first_occurrence_wins(self, make_glb):
        """Test that later nodes with a known entry are ignored."""
        glb = make_glb(
            {
                "asset": {},
                "nodes": [
                    {"name": "A [0:1:5]"},
                    {"name": "B [0:1:5]", "mesh": 3},
                ],
            }
        )

        assert build_node_index(glb) == {"0:1:5": GltfNodeIndex(gltf_node_index=0, gltf_mesh_index=None)}
        assert build_pretty_names(glb) == {"0:1:5": "A"}

    def test_nodes_without_names_skipped(self, make_glb):
        """Test that unnamed or non-string names are skipped."""
        glb = make_glb(
            {
                "asset": {},
                "nodes": [{}, {"name": 5}, {"name": "Widget"}, {"name": "Widget [0:1:8]", "mesh": 0}],
            }
        )

        assert build_node_index(glb) == {"0:1:8": GltfNodeIndex(gltf_node_index=3, gltf_mesh_index=0)}

    def test_pretty_names(self, bracket_glb):
        """Test cleaned names keyed by entry."""
        assert build_pretty_names(bracket_glb) == {
            "0:1:1:1": "Bracket",
            "0:1:1:2": "Bolt M6",
            "0:1:1:3": "Bolt M6",
        }

    def test_pretty_name_equal_to_entry_skipped(self, make_glb):
        """Test that a name that is only the entry gives no override."""
        glb = make_glb({"asset": {}, "nodes": [{"name": "0:1:4"}]})

        assert build_pretty_names(glb) == {}
        assert build_node_index(glb) == {"0:1:4": GltfNodeIndex(gltf_node_index=0)}

    def test_invalid_glb_yields_empty_maps(self):
        """Test that unreadable input never raises."""
        assert build_node_index(b"broken") == {}
        assert build_pretty_names(b"broken") == {}

    def test_missing_nodes(self, minimal_glb):
        """Test that a GLB without nodes yields empty maps."""
        assert build_node_index(minimal_glb) == {}
