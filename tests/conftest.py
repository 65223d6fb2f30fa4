"""Pytest configuration and shared fixtures.

Provides GLB builders, a scripted CAD kernel and logging configuration for
the CadBridge test suite.
"""

from __future__ import annotations

import struct
from typing import Any, Callable, Dict, List, Optional

import orjson
import pytest
import structlog

from glbcore.container import BIN_PAD_BYTE, CHUNK_TYPE_BIN, CHUNK_TYPE_JSON, JSON_PAD_BYTE, GlbChunk, build_glb, pad_chunk_data
from kernel.occt_io import get_occt_info
from kernel.types import (
    AssemblyNode,
    BomExport,
    BomItem,
    BomOccurrence,
    ConvertBufferResult,
    LengthUnitInfo,
    NodeMap,
)


# Configure test logging
structlog.configure(
    processors=[
        structlog.testing.LogCapture(),
    ],
    logger_factory=structlog.testing.CapturingLoggerFactory(),
    cache_logger_on_first_use=True,
)


def encode_glb(document: Dict[str, Any], bin_data: Optional[bytes] = None, version: int = 2) -> bytes:
    chunks = [GlbChunk(type=CHUNK_TYPE_JSON, data=pad_chunk_data(orjson.dumps(document), JSON_PAD_BYTE))]
    if bin_data is not None:
        chunks.append(GlbChunk(type=CHUNK_TYPE_BIN, data=pad_chunk_data(bin_data, BIN_PAD_BYTE)))
    return build_glb(version, chunks)


def assembly_document(
    node_names: List[str],
    triangles_per_mesh: int = 1,
    primitives_per_mesh: int = 1,
) -> Dict[str, Any]:
    """glTF document with one node and one mesh per name.

    Every mesh has ``primitives_per_mesh`` indexed triangle primitives
    sharing one POSITION accessor spanning (0,0,0)..(1,2,3).
    """
    accessors = [
        {"componentType": 5126, "type": "VEC3", "count": 3, "min": [0, 0, 0], "max": [1, 2, 3]},
        {"componentType": 5125, "type": "SCALAR", "count": triangles_per_mesh * 3},
    ]
    primitive = {"attributes": {"POSITION": 0}, "indices": 1}
    meshes = [{"primitives": [dict(primitive) for _ in range(primitives_per_mesh)]} for _ in node_names]
    nodes = [{"name": name, "mesh": index} for index, name in enumerate(node_names)]
    return {
        "asset": {"version": "2.0", "generator": "test"},
        "nodes": nodes,
        "meshes": meshes,
        "accessors": accessors,
    }


def vec3_bytes(points: List[tuple]) -> bytes:
    return b"".join(struct.pack("<3f", *point) for point in points)


@pytest.fixture
def make_glb() -> Callable[..., bytes]:
    """Provide a GLB encoder: ``make_glb(document, bin_data=None, version=2)``."""
    return encode_glb


@pytest.fixture
def make_assembly_glb() -> Callable[..., bytes]:
    """Provide a GLB builder for assemblies of named nodes."""

    def build(node_names: List[str], triangles_per_mesh: int = 1, primitives_per_mesh: int = 1) -> bytes:
        return encode_glb(assembly_document(node_names, triangles_per_mesh, primitives_per_mesh))

    return build


@pytest.fixture
def minimal_glb() -> bytes:
    """Provide a JSON-only GLB with an asset block."""
    return encode_glb({"asset": {"version": "2.0"}})


def make_node(
    node_id: str,
    label_entry: str,
    name: str,
    product_id: str,
    kind: str = "part",
    parent_id: Optional[str] = None,
    children: Optional[List[str]] = None,
) -> AssemblyNode:
    return AssemblyNode(
        id=node_id,
        label_entry=label_entry,
        name=name,
        kind=kind,
        product_id=product_id,
        product_name=name,
        parent_id=parent_id,
        children=children or [],
        path=node_id.split("/"),
    )


@pytest.fixture
def bracket_node_map() -> NodeMap:
    """Provide an assembly with two instances of one bolt product.

    Tree: 0:1:1:1 (assembly) -> 0:1:1:1/0:1:1:2, 0:1:1:1/0:1:1:3
    """
    root = make_node("0:1:1:1", "0:1:1:1", "Bracket", "0:1:1:1", kind="assembly",
                     children=["0:1:1:1/0:1:1:2", "0:1:1:1/0:1:1:3"])
    first = make_node("0:1:1:1/0:1:1:2", "0:1:1:2", "BOLT-1", "0:1:1:5", parent_id="0:1:1:1")
    second = make_node("0:1:1:1/0:1:1:3", "0:1:1:3", "BOLT-2", "0:1:1:5", parent_id="0:1:1:1")
    return NodeMap(roots=["0:1:1:1"], nodes={node.id: node for node in (root, first, second)})


@pytest.fixture
def bracket_bom(bracket_node_map: NodeMap) -> BomExport:
    """Provide the BOM matching ``bracket_node_map``."""
    nodes = bracket_node_map.nodes
    occurrences = [
        BomOccurrence(node_id=node.id, instance_id=node.label_entry, name=node.name, path=node.path)
        for node in nodes.values()
    ]
    return BomExport(
        roots=["0:1:1:1"],
        items=[
            BomItem(product_id="0:1:1:1", product_name="Bracket", kind="assembly", instances=occurrences[:1]),
            BomItem(product_id="0:1:1:5", product_name="BOLT", kind="part", instances=occurrences[1:]),
        ],
    )


BRACKET_GLB_NAMES = [
    "Bracket [0:1:1:1]",
    "Bolt M6 [0:1:1:2] [NAUO1]",
    "Bolt M6 [0:1:1:3] [NAUO2]",
]


@pytest.fixture
def bracket_glb(make_assembly_glb) -> bytes:
    """Provide a GLB whose node names carry the bracket label entries."""
    return make_assembly_glb(BRACKET_GLB_NAMES)


class FakeKernel:
    """Scripted ``CadKernel`` returning queued GLB buffers.

    Each ``write_buffer`` call pops the next GLB; the last one repeats once
    the queue is exhausted.
    """

    def __init__(
        self,
        glbs: List[bytes],
        node_map: Optional[NodeMap] = None,
        bom: Optional[BomExport] = None,
        unit: Optional[LengthUnitInfo] = None,
        output_format: str = "glb",
    ):
        self.glbs = list(glbs)
        self.node_map = node_map or NodeMap()
        self.bom = bom or BomExport()
        self.unit = unit or LengthUnitInfo(scale_to_meters=0.001, source="test")
        self.output_format = output_format
        self.calls: List[tuple] = []
        self.triangulations: List[Any] = []
        self.write_options: List[Any] = []
        self.overrides: List[Any] = []

    def read_document(self, data, fmt, read_options=None):
        self.calls.append(("read_document", fmt, read_options))
        return {"doc": data}

    def triangulate(self, doc, options=None):
        self.calls.append(("triangulate",))
        self.triangulations.append(options)

    def write_buffer(self, doc, fmt, write_options=None):
        self.calls.append(("write_buffer", fmt))
        self.write_options.append(write_options)
        glb = self.glbs.pop(0) if len(self.glbs) > 1 else self.glbs[0]
        if self.output_format != "glb":
            return ConvertBufferResult(output_format=self.output_format, obj=b"o")
        return ConvertBufferResult(output_format="glb", glb=glb)

    def build_raw_node_map(self, doc, name_overrides=None):
        self.calls.append(("build_raw_node_map",))
        self.overrides.append(name_overrides)
        return self.node_map

    def build_raw_bom(self, doc, name_overrides=None):
        self.calls.append(("build_raw_bom",))
        self.overrides.append(name_overrides)
        return self.bom

    def read_length_unit(self, doc):
        self.calls.append(("read_length_unit",))
        return self.unit


@pytest.fixture
def fake_kernel_factory() -> Callable[..., FakeKernel]:
    """Provide the ``FakeKernel`` constructor."""
    return FakeKernel


@pytest.fixture
def skip_if_no_occt():
    """Skip test if the OCP binding is not available."""
    occt_info = get_occt_info()
    if not occt_info["ocp_available"]:
        pytest.skip("No OCCT binding available (OCP required)")
