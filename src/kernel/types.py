"""Data model shared between the CAD kernel and the conversion pipeline.

Assembly structures are arenas keyed by node id: children and parents are
referenced by id, never by object, so the graph has no ownership cycles.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

InputFormat = Literal["step", "iges"]

OutputFormat = Literal["glb", "gltf", "obj"]

AssemblyNodeKind = Literal["assembly", "part"]

# glTF node naming formats supported by the OCCT writer
NameFormat = Literal[
    "empty",
    "product",
    "instance",
    "instanceOrProduct",
    "productOrInstance",
    "productAndInstance",
    "productAndInstanceAndOcaf",
]


@dataclass
class ReadOptions:
    """Reader switches for STEP/IGES import."""

    preserve_names: bool = True
    preserve_colors: bool = True
    preserve_layers: bool = True
    preserve_materials: bool = True


@dataclass
class TriangulateOptions:
    """Meshing parameters; unset fields fall back to kernel defaults."""

    linear_deflection: Optional[float] = None
    angular_deflection: Optional[float] = None
    relative: Optional[bool] = None
    parallel: Optional[bool] = None


@dataclass
class WriteOptions:
    """Writer options for glTF/GLB/OBJ export."""

    metadata: Optional[Dict[str, str]] = None
    name_format: Optional[NameFormat] = None
    unit_scale_to_meters: Optional[float] = None


@dataclass
class ConvertBufferResult:
    """Output of a kernel write; only the fields for ``output_format`` are set."""

    output_format: OutputFormat
    glb: Optional[bytes] = None
    gltf: Optional[bytes] = None
    gltf_bin: Optional[bytes] = None
    obj: Optional[bytes] = None


@dataclass
class LengthUnitInfo:
    """Input length unit expressed as a scale to meters."""

    scale_to_meters: float = 1.0
    source: str = "unknown"


@dataclass
class AssemblyNode:
    """One occurrence in a CAD assembly tree."""

    id: str
    label_entry: str
    name: str
    kind: AssemblyNodeKind
    product_id: str
    product_name: str
    parent_id: Optional[str] = None
    children: List[str] = field(default_factory=list)
    path: List[str] = field(default_factory=list)


@dataclass
class NodeMap:
    """Root ids plus every node reachable from them, keyed by id."""

    roots: List[str] = field(default_factory=list)
    nodes: Dict[str, AssemblyNode] = field(default_factory=dict)


@dataclass
class BomOccurrence:
    """A single placed instance of a product."""

    node_id: str
    instance_id: str
    name: str
    path: List[str] = field(default_factory=list)


@dataclass
class BomItem:
    """All occurrences sharing a product id."""

    product_id: str
    product_name: str
    kind: AssemblyNodeKind
    quantity: int = 0
    instances: List[BomOccurrence] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.quantity = len(self.instances)

    def add_occurrence(self, occurrence: BomOccurrence) -> None:
        self.instances.append(occurrence)
        self.quantity = len(self.instances)


@dataclass
class BomExport:
    """Aggregated bill of materials."""

    roots: List[str] = field(default_factory=list)
    items: List[BomItem] = field(default_factory=list)
