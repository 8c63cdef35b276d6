"""
マインドマップの自動レイアウト

左→右の階層レイアウト。折りたたまれたノードの子孫は非表示とし、
表示ノードだけで配置を計算する（非表示ノードは元の位置を保持）。

配置は grandalf の SugiyamaLayout（階層型グラフレイアウト）で計算する。
SugiyamaLayout は上→下に階層を並べるため、ノードの縦横を入れ替えて渡し、
得られた座標の x と y を入れ替えて左→右にする。

座標はノード左上基準（中心座標からノードサイズの半分を引く）。
"""

from dataclasses import replace
from typing import Dict, List, Set

from grandalf.graphs import Edge, Graph, Vertex
from grandalf.layouts import SugiyamaLayout

from memento.mindmap.models import NODE_TYPE, MindMap, MindMapEdge, MindMapNode, Position

NODE_WIDTH = 172
NODE_HEIGHT = 36
RANK_SEP = 50
NODE_SEP = 50


def hidden_node_ids(mind_map: MindMap) -> Set[str]:
    """祖先のいずれかが折りたたまれている（expanded=False）ノードのID"""
    parents = {edge.target: edge.source for edge in mind_map.edges}
    nodes = {node.id: node for node in mind_map.nodes}

    hidden: Set[str] = set()
    for node in mind_map.nodes:
        seen = {node.id}
        current = node.id
        while current in parents:
            parent_id = parents[current]
            if parent_id in seen:
                break
            seen.add(parent_id)
            parent = nodes.get(parent_id)
            if parent is not None and parent.expanded is False:
                hidden.add(node.id)
                break
            current = parent_id
    return hidden


class _NodeView:
    """grandalf に渡すノードの大きさ（階層方向が h）"""

    def __init__(self):
        self.w = NODE_HEIGHT
        self.h = NODE_WIDTH
        self.xy = (0.0, 0.0)


def _build_graph(nodes: List[MindMapNode], edges: List[MindMapEdge]) -> Graph:
    vertices: Dict[str, Vertex] = {}
    for node in nodes:
        vertex = Vertex(node.id)
        vertex.view = _NodeView()
        vertices[node.id] = vertex

    links = []
    seen = set()
    for edge in edges:
        key = (edge.source, edge.target)
        if edge.source == edge.target or key in seen:
            continue
        if edge.source in vertices and edge.target in vertices:
            seen.add(key)
            links.append(Edge(vertices[edge.source], vertices[edge.target]))
    return Graph(list(vertices.values()), links)


def _layout_component(component) -> None:
    """連結成分1つを配置（view.xy に中心座標が入る）"""
    vertices = list(component.sV)
    if len(vertices) == 1:
        vertices[0].view.xy = (NODE_HEIGHT / 2, NODE_WIDTH / 2)
        return

    layout = SugiyamaLayout(component)
    layout.xspace = NODE_SEP
    layout.yspace = RANK_SEP
    roots = [vertex for vertex in vertices if not vertex.e_in()]
    layout.init_all(roots=roots or None)
    layout.draw()


def _centers(nodes: List[MindMapNode], edges: List[MindMapEdge]) -> Dict[str, Position]:
    """
    表示ノードの中心座標を計算

    連結成分ごとに配置し、ノードの並び順で上から積む。
    """
    if not nodes:
        return {}
    order = {node.id: index for index, node in enumerate(nodes)}
    graph = _build_graph(nodes, edges)
    components = sorted(graph.C, key=lambda c: min(order[v.data] for v in c.sV))

    centers: Dict[str, Position] = {}
    offset = 0.0
    for component in components:
        _layout_component(component)
        vertices = list(component.sV)
        top = min(v.view.xy[0] - v.view.w / 2 for v in vertices)
        bottom = max(v.view.xy[0] + v.view.w / 2 for v in vertices)
        for vertex in vertices:
            across, along = vertex.view.xy
            centers[vertex.data] = Position(x=float(along), y=float(across - top + offset))
        offset += bottom - top + NODE_SEP
    return centers


def apply_layout(mind_map: MindMap) -> MindMap:
    """
    表示状態・子の有無・座標を更新したマインドマップを返す

    全ノードの type は mindMap に揃える。
    """
    hidden = hidden_node_ids(mind_map)
    sources = {edge.source for edge in mind_map.edges}

    nodes = [
        replace(
            node,
            type=NODE_TYPE,
            hidden=node.id in hidden,
            has_children=node.id in sources,
        )
        for node in mind_map.nodes
    ]
    visible_nodes = [node for node in nodes if not node.hidden]
    visible_edges = [
        edge for edge in mind_map.edges
        if edge.source not in hidden and edge.target not in hidden
    ]

    centers = _centers(visible_nodes, visible_edges)
    laid_out = []
    for node in nodes:
        center = centers.get(node.id)
        if center is None:
            laid_out.append(node)
            continue
        laid_out.append(replace(
            node,
            position=Position(x=center.x - NODE_WIDTH / 2, y=center.y - NODE_HEIGHT / 2),
        ))
    return mind_map.with_nodes(laid_out)
