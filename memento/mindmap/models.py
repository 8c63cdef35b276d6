"""
マインドマップのデータモデル

sessions.mind_map_data に保存する React Flow 互換の形式
（{"nodes": [...], "edges": [...], "actionItems": [...]}) と相互変換する。
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

ROOT_NODE_ID = "1"
NODE_TYPE = "mindMap"
ROOT_NODE_TYPE = "input"
NEW_TOPIC_LABEL = "New Topic"


def root_label(theme: Optional[str]) -> str:
    return f"1on1 Theme: {theme or ''}"


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Position":
        data = data or {}
        return cls(x=float(data.get("x") or 0), y=float(data.get("y") or 0))


@dataclass(frozen=True)
class MindMapNode:
    """マインドマップのノード"""
    id: str
    label: str
    type: str = NODE_TYPE
    expanded: bool = True
    parent_id: Optional[str] = None
    position: Position = field(default_factory=Position)
    selected: bool = False
    hidden: bool = False
    has_children: bool = False

    def to_dict(self) -> Dict[str, Any]:
        node: Dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "position": self.position.to_dict(),
            "data": {
                "label": self.label,
                "expanded": self.expanded,
                "hasChildren": self.has_children,
            },
            "selected": self.selected,
            "hidden": self.hidden,
        }
        if self.parent_id is not None:
            node["parentId"] = self.parent_id
        return node

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MindMapNode":
        node_data = data.get("data") or {}
        expanded = node_data.get("expanded")
        return cls(
            id=str(data["id"]),
            label=str(node_data.get("label") or ""),
            type=data.get("type") or NODE_TYPE,
            expanded=True if expanded is None else bool(expanded),
            parent_id=data.get("parentId"),
            position=Position.from_dict(data.get("position")),
            selected=bool(data.get("selected")),
            hidden=bool(data.get("hidden")),
            has_children=bool(node_data.get("hasChildren")),
        )


@dataclass(frozen=True)
class MindMapEdge:
    """親→子のエッジ"""
    source: str
    target: str
    id: str = ""

    def __post_init__(self):
        if not self.id:
            object.__setattr__(self, "id", edge_id(self.source, self.target))

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "source": self.source, "target": self.target}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MindMapEdge":
        return cls(
            id=str(data.get("id") or ""),
            source=str(data["source"]),
            target=str(data["target"]),
        )


def edge_id(source: str, target: str) -> str:
    return f"e{source}-{target}"


@dataclass(frozen=True)
class MindMap:
    """ノード・エッジ・アクションアイテムの組"""
    nodes: List[MindMapNode] = field(default_factory=list)
    edges: List[MindMapEdge] = field(default_factory=list)
    action_items: List[str] = field(default_factory=list)

    def node(self, node_id: str) -> Optional[MindMapNode]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def selected_nodes(self) -> List[MindMapNode]:
        return [node for node in self.nodes if node.selected]

    def parent_of(self, node_id: str) -> Optional[str]:
        for edge in self.edges:
            if edge.target == node_id:
                return edge.source
        return None

    def children_of(self, node_id: str) -> List[str]:
        return [edge.target for edge in self.edges if edge.source == node_id]

    def with_nodes(self, nodes: List[MindMapNode], edges: Optional[List[MindMapEdge]] = None) -> "MindMap":
        return replace(self, nodes=list(nodes), edges=list(self.edges if edges is None else edges))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [node.to_dict() for node in self.nodes],
            "edges": [edge.to_dict() for edge in self.edges],
            "actionItems": list(self.action_items),
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "MindMap":
        data = data or {}
        return cls(
            nodes=[MindMapNode.from_dict(n) for n in data.get("nodes") or []],
            edges=[MindMapEdge.from_dict(e) for e in data.get("edges") or []],
            action_items=list(data.get("actionItems") or []),
        )


def initial_mind_map(theme: Optional[str]) -> MindMap:
    """ルートノードのみの初期マインドマップ（ルートを選択状態にする）"""
    root = MindMapNode(
        id=ROOT_NODE_ID,
        label=root_label(theme),
        type=ROOT_NODE_TYPE,
        selected=True,
    )
    return MindMap(nodes=[root])
