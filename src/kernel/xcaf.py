"""XCAF assembly traversal and bill-of-materials aggregation.

The traversal walks the label tree of an XCAF document and records one
``AssemblyNode`` per occurrence. Label access goes through a small
``LabelTool`` adapter so the walk itself does not depend on a particular
OCCT binding.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, Tuple

import structlog

from .types import AssemblyNode, AssemblyNodeKind, BomExport, BomItem, BomOccurrence, NodeMap

logger = structlog.get_logger(__name__)


class LabelTool(Protocol):
    """Binding-specific access to XCAF labels."""

    def free_shapes(self) -> List[Any]:
        ...

    def entry(self, label: Any) -> str:
        ...

    def name(self, label: Any) -> str:
        ...

    def referred_product(self, label: Any) -> Any:
        ...

    def is_assembly(self, label: Any) -> bool:
        ...

    def components(self, label: Any) -> List[Any]:
        ...


@dataclass
class AssemblyGraph:
    """Result of a full label-tree walk."""

    roots: List[str] = field(default_factory=list)
    nodes: Dict[str, AssemblyNode] = field(default_factory=dict)
    occurrences: List[BomOccurrence] = field(default_factory=list)


def walk_assembly(tool: LabelTool, name_overrides: Optional[Dict[str, str]] = None) -> AssemblyGraph:
    """Walk every free shape and its components depth-first.

    Args:
        tool: Label accessor for the document
        name_overrides: Optional label entry -> display name overrides

    Returns:
        AssemblyGraph with root ids, nodes keyed by path id and occurrences
        in traversal order
    """
    graph = AssemblyGraph()
    overrides = name_overrides or {}

    for label in tool.free_shapes():
        node_id = _visit(tool, label, [], graph, overrides)
        if node_id:
            graph.roots.append(node_id)

    logger.debug(
        "Walked assembly labels",
        roots=len(graph.roots),
        nodes=len(graph.nodes),
        occurrences=len(graph.occurrences),
    )
    return graph


def _resolve_product(tool: LabelTool, label: Any) -> Tuple[Any, str, str, AssemblyNodeKind]:
    product_label = tool.referred_product(label)
    product_entry = tool.entry(product_label)
    product_name = tool.name(product_label)
    kind: AssemblyNodeKind = "assembly" if tool.is_assembly(product_label) else "part"
    return product_label, product_entry, product_name, kind


def _visit(
    tool: LabelTool,
    label: Any,
    parent_path: List[str],
    graph: AssemblyGraph,
    overrides: Dict[str, str],
) -> Optional[str]:
    label_entry = tool.entry(label)
    instance_name = tool.name(label)
    product_label, product_entry, product_name, kind = _resolve_product(tool, label)

    instance_entry = label_entry or product_entry
    if not instance_entry:
        return None

    path = [segment for segment in [*parent_path, instance_entry] if segment]
    node_id = "/".join(path)
    parent_id = "/".join(parent_path) if parent_path else None

    instance_override = overrides.get(instance_entry)
    product_override = overrides.get(product_entry) if product_entry else None

    if node_id not in graph.nodes:
        graph.nodes[node_id] = AssemblyNode(
            id=node_id,
            label_entry=instance_entry,
            name=(
                instance_override
                or instance_name
                or product_override
                or product_name
                or instance_entry
            ),
            kind=kind,
            product_id=product_entry or instance_entry,
            product_name=(
                product_override
                or product_name
                or instance_override
                or instance_name
                or instance_entry
            ),
            parent_id=parent_id,
            children=[],
            path=path,
        )

    if parent_id and parent_id in graph.nodes:
        graph.nodes[parent_id].children.append(node_id)

    graph.occurrences.append(
        BomOccurrence(
            node_id=node_id,
            instance_id=instance_entry,
            name=graph.nodes[node_id].name,
            path=list(path),
        )
    )

    if kind == "assembly":
        for component in tool.components(product_label):
            _visit(tool, component, path, graph, overrides)

    return node_id


def aggregate_bom(
    roots: List[str],
    nodes: Dict[str, AssemblyNode],
    occurrences: List[BomOccurrence],
) -> BomExport:
    """Group occurrences by product id, keeping first-seen product order.

    Occurrences pointing at unknown node ids are ignored.
    """
    items: Dict[str, BomItem] = {}

    for occurrence in occurrences:
        node = nodes.get(occurrence.node_id)
        if node is None:
            continue
        item = items.get(node.product_id)
        if item is None:
            item = BomItem(
                product_id=node.product_id,
                product_name=node.product_name,
                kind=node.kind,
            )
            items[node.product_id] = item
        item.add_occurrence(occurrence)

    return BomExport(roots=list(roots), items=list(items.values()))


def build_node_map(tool: LabelTool, name_overrides: Optional[Dict[str, str]] = None) -> NodeMap:
    graph = walk_assembly(tool, name_overrides)
    return NodeMap(roots=graph.roots, nodes=graph.nodes)


def build_bom(tool: LabelTool, name_overrides: Optional[Dict[str, str]] = None) -> BomExport:
    graph = walk_assembly(tool, name_overrides)
    return aggregate_bom(graph.roots, graph.nodes, graph.occurrences)


class OcpLabelTool:
    """LabelTool backed by the OCP binding."""

    def __init__(self, doc: Any):
        from OCP.XCAFDoc import XCAFDoc_DocumentTool

        self._doc = doc
        self._shape_tool = XCAFDoc_DocumentTool.ShapeTool_s(doc.Main())

    def free_shapes(self) -> List[Any]:
        from OCP.TDF import TDF_LabelSequence

        sequence = TDF_LabelSequence()
        self._shape_tool.GetFreeShapes(sequence)
        return [sequence.Value(index) for index in range(1, sequence.Length() + 1)]

    def entry(self, label: Any) -> str:
        from OCP.TCollection import TCollection_AsciiString
        from OCP.TDF import TDF_Tool

        entry = TCollection_AsciiString()
        TDF_Tool.Entry_s(label, entry)
        return str(entry.ToCString() or "")

    def name(self, label: Any) -> str:
        from OCP.TDataStd import TDataStd_Name

        attribute = TDataStd_Name()
        try:
            if label.FindAttribute(TDataStd_Name.GetID_s(), attribute):
                return str(attribute.Get().ToExtString() or "")
        except Exception as e:
            logger.debug("Could not read label name", error=str(e))
        return ""

    def referred_product(self, label: Any) -> Any:
        from OCP.TDF import TDF_Label
        from OCP.XCAFDoc import XCAFDoc_ShapeTool

        if XCAFDoc_ShapeTool.IsComponent_s(label) or XCAFDoc_ShapeTool.IsReference_s(label):
            referred = TDF_Label()
            if XCAFDoc_ShapeTool.GetReferredShape_s(label, referred):
                return referred
        return label

    def is_assembly(self, label: Any) -> bool:
        from OCP.XCAFDoc import XCAFDoc_ShapeTool

        return bool(XCAFDoc_ShapeTool.IsAssembly_s(label))

    def components(self, label: Any) -> List[Any]:
        from OCP.TDF import TDF_LabelSequence
        from OCP.XCAFDoc import XCAFDoc_ShapeTool

        sequence = TDF_LabelSequence()
        XCAFDoc_ShapeTool.GetComponents_s(label, sequence, False)
        return [sequence.Value(index) for index in range(1, sequence.Length() + 1)]
