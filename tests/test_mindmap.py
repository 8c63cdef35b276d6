"""
memento/mindmap のテスト

ノード操作・折りたたみ・自動レイアウト・Undo/Redo
"""

import itertools

import pytest

from memento.mindmap import (
    HISTORY_LIMIT,
    MindMap,
    MindMapEditor,
    MindMapHistory,
    apply_layout,
    hidden_node_ids,
    initial_mind_map,
    structurally_equal,
)
from memento.mindmap.models import MindMapEdge, MindMapNode, Position


def _editor(theme="health"):
    counter = itertools.count(100)
    return MindMapEditor(initial_mind_map(theme), id_factory=lambda: str(next(counter)))


class TestModels:
    """データモデルのテスト"""

    def test_initial_mind_map(self):
        mind_map = initial_mind_map("キャリア")
        root = mind_map.node("1")
        assert root.label == "1on1 Theme: キャリア"
        assert root.selected is True
        assert mind_map.edges == []

    def test_edge_id_generated(self):
        assert MindMapEdge(source="1", target="2").id == "e1-2"

    def test_dict_roundtrip_keeps_react_flow_shape(self):
        data = {
            "nodes": [{
                "id": "1",
                "type": "mindMap",
                "position": {"x": 10, "y": 20},
                "data": {"label": "root", "expanded": False, "hasChildren": True},
                "selected": True,
            }],
            "edges": [{"id": "e1-2", "source": "1", "target": "2"}],
            "actionItems": ["宿題"],
        }
        result = MindMap.from_dict(data).to_dict()

        node = result["nodes"][0]
        assert node["data"] == {"label": "root", "expanded": False, "hasChildren": True}
        assert node["position"] == {"x": 10.0, "y": 20.0}
        assert result["edges"] == [{"id": "e1-2", "source": "1", "target": "2"}]
        assert result["actionItems"] == ["宿題"]

    def test_expanded_defaults_to_true(self):
        node = MindMapNode.from_dict({"id": "2", "data": {"label": "x"}})
        assert node.expanded is True


class TestEditor:
    """MindMapEditor のテスト"""

    def test_add_child_selects_new_node(self):
        editor = _editor()
        new_id = editor.add_child()

        assert new_id == "100"
        assert editor.focus_id == "100"
        new_node = editor.mind_map.node("100")
        assert new_node.label == "New Topic"
        assert new_node.selected is True
        assert editor.mind_map.node("1").selected is False
        assert editor.mind_map.edges[0].id == "e1-100"

    def test_add_child_without_selection(self):
        editor = MindMapEditor(MindMap(nodes=[MindMapNode(id="1", label="root")]))
        assert editor.add_child() is None

    def test_add_sibling_needs_parent(self):
        editor = _editor()
        assert editor.add_sibling() is None

        editor.add_child()
        sibling = editor.add_sibling()
        assert sibling == "101"
        assert editor.mind_map.parent_of("101") == "1"

    def test_rename(self):
        editor = _editor()
        child = editor.add_child()
        assert editor.rename(child, "体調") is True
        assert editor.mind_map.node(child).label == "体調"
        assert editor.rename("missing", "x") is False

    def test_delete_removes_descendants_and_selects_parent(self):
        editor = _editor()
        child = editor.add_child()
        grandchild = editor.add_child()
        editor.select(child)

        deleted = editor.delete_selected()

        assert deleted == {child, grandchild}
        assert [node.id for node in editor.mind_map.nodes] == ["1"]
        assert editor.mind_map.edges == []
        assert editor.mind_map.node("1").selected is True
        assert editor.focus_id == "1"

    def test_root_never_deleted(self):
        editor = _editor()
        assert editor.delete_selected() == set()
        assert editor.mind_map.node("1") is not None

    def test_toggle_hides_descendants(self):
        editor = _editor()
        child = editor.add_child()
        editor.add_child()

        editor.toggle_expansion(child)

        assert editor.mind_map.node(child).expanded is False
        hidden = [node.id for node in editor.mind_map.nodes if node.hidden]
        assert hidden == ["101"]

        editor.toggle_expansion(child, expand=True)
        assert not any(node.hidden for node in editor.mind_map.nodes)

    def test_apply_operations(self):
        editor = _editor()
        assert editor.apply({"op": "add_child"}) == "100"
        assert editor.apply({"op": "rename", "nodeId": "100", "label": "仕事"}) is True
        assert editor.apply({"op": "undo"}) is True
        assert editor.mind_map.node("100").label == "New Topic"
        assert editor.apply({"op": "redo"}) is True
        assert editor.mind_map.node("100").label == "仕事"

    def test_apply_unknown(self):
        with pytest.raises(ValueError):
            _editor().apply({"op": "explode"})


class TestNavigation:
    """キーボード操作による選択移動のテスト"""

    def _editor(self, selected="1", collapsed=(), hidden=()):
        ys = {"1": 86, "2": 0, "3": 86, "4": 172, "5": 0}
        nodes = [
            MindMapNode(
                id=node_id,
                label=node_id,
                position=Position(0 if node_id == "1" else 222, y),
                selected=node_id == selected,
                expanded=node_id not in collapsed,
                hidden=node_id in hidden,
            )
            for node_id, y in ys.items()
        ]
        edges = [MindMapEdge("1", "3"), MindMapEdge("1", "2"), MindMapEdge("1", "4"), MindMapEdge("2", "5")]
        return MindMapEditor(MindMap(nodes=nodes, edges=edges))

    def test_child_picks_middle_by_position(self):
        editor = self._editor()
        assert editor.navigate("child") == "3"
        assert editor.focus_id == "3"
        assert [node.id for node in editor.mind_map.selected_nodes()] == ["3"]

    def test_child_of_collapsed_node(self):
        editor = self._editor(selected="2", collapsed={"2"})
        assert editor.navigate("child") is None
        assert editor.mind_map.selected_nodes()[0].id == "2"

    def test_hidden_children_skipped(self):
        editor = self._editor(hidden={"3", "4"})
        assert editor.navigate("child") == "2"

    def test_siblings_ordered_by_position(self):
        editor = self._editor(selected="3")
        assert editor.navigate("prev") == "2"
        assert editor.navigate("prev") is None
        assert editor.navigate("next") == "3"
        assert editor.navigate("next") == "4"
        assert editor.navigate("next") is None

    def test_parent(self):
        editor = self._editor(selected="5")
        assert editor.navigate("parent") == "2"
        assert editor.navigate("parent") == "1"
        assert editor.navigate("parent") is None

    def test_top_level_nodes_are_siblings(self):
        mind_map = MindMap(
            nodes=[
                MindMapNode(id="1", label="root", position=Position(0, 0), selected=True),
                MindMapNode(id="9", label="floating", position=Position(0, 200)),
            ],
            edges=[],
        )
        editor = MindMapEditor(mind_map)
        assert editor.navigate("next") == "9"
        assert editor.navigate("prev") == "1"

    def test_without_selection(self):
        assert self._editor(selected=None).navigate("child") is None

    def test_apply_navigate(self):
        editor = self._editor()
        assert editor.apply({"op": "navigate", "direction": "child"}) == "3"

    def test_unknown_direction(self):
        with pytest.raises(ValueError):
            self._editor().apply({"op": "navigate", "direction": "up"})


class TestLayout:
    """自動レイアウトのテスト"""

    def _tree(self):
        return MindMap(
            nodes=[
                MindMapNode(id="1", label="root"),
                MindMapNode(id="2", label="a"),
                MindMapNode(id="3", label="b"),
            ],
            edges=[MindMapEdge("1", "2"), MindMapEdge("1", "3")],
        )

    def test_left_to_right_top_left_anchor(self):
        laid_out = apply_layout(self._tree())
        root, a, b = (laid_out.node(node_id).position for node_id in ("1", "2", "3"))

        # 階層ごとに 172 + 50 ずつ右へ
        assert root.x == pytest.approx(0.0)
        assert a.x == pytest.approx(222.0)
        assert b.x == pytest.approx(222.0)
        # 兄弟は 36 + 50 間隔で、一番上のノードの上端が 0
        assert sorted([a.y, b.y]) == [pytest.approx(0.0), pytest.approx(86.0)]
        assert min(a.y, b.y) <= root.y <= max(a.y, b.y)
        assert laid_out.node("1").has_children is True
        assert laid_out.node("2").has_children is False

    def test_deeper_levels_move_right(self):
        mind_map = MindMap(
            nodes=[MindMapNode(id=str(i), label=str(i)) for i in range(1, 5)],
            edges=[MindMapEdge("1", "2"), MindMapEdge("2", "3"), MindMapEdge("1", "4")],
        )

        laid_out = apply_layout(mind_map)

        assert laid_out.node("3").position.x == pytest.approx(444.0)
        ys = [node.position.y for node in laid_out.nodes]
        assert min(ys) == pytest.approx(0.0)

    def test_disconnected_nodes_stacked(self):
        """つながっていないノードは重ならないよう下に積む"""
        mind_map = MindMap(
            nodes=[MindMapNode(id="1", label="root"), MindMapNode(id="9", label="floating")],
            edges=[],
        )

        laid_out = apply_layout(mind_map)

        assert laid_out.node("1").position == Position(x=0.0, y=0.0)
        assert laid_out.node("9").position == Position(x=0.0, y=86.0)

    def test_hidden_nodes_keep_position(self):
        tree = self._tree()
        nodes = [
            MindMapNode(id="1", label="root", expanded=False),
            MindMapNode(id="2", label="a", position=Position(500, 500)),
            tree.nodes[2],
        ]
        laid_out = apply_layout(tree.with_nodes(nodes))

        assert laid_out.node("2").hidden is True
        assert laid_out.node("2").position == Position(500, 500)
        assert laid_out.node("1").position == Position(x=0.0, y=0.0)

    def test_hidden_node_ids_any_ancestor(self):
        mind_map = MindMap(
            nodes=[
                MindMapNode(id="1", label="root"),
                MindMapNode(id="2", label="a", expanded=False),
                MindMapNode(id="3", label="b"),
                MindMapNode(id="4", label="c"),
            ],
            edges=[MindMapEdge("1", "2"), MindMapEdge("2", "3"), MindMapEdge("3", "4")],
        )
        assert hidden_node_ids(mind_map) == {"3", "4"}


class TestHistory:
    """Undo/Redo 履歴のテスト"""

    def test_move_or_select_not_recorded(self):
        base = initial_mind_map("x")
        history = MindMapHistory(base)
        moved = base.with_nodes([MindMapNode(id="1", label=base.nodes[0].label, type="input",
                                             position=Position(10, 10), selected=False)])

        assert structurally_equal(base, moved) is True
        assert history.set(moved) is False
        assert history.can_undo is False

    def test_limit(self):
        history = MindMapHistory(MindMap(), limit=HISTORY_LIMIT)
        for i in range(HISTORY_LIMIT + 5):
            history.set(MindMap(nodes=[MindMapNode(id="1", label=str(i))]))

        undo_count = 0
        while history.undo() is not None:
            undo_count += 1
        assert undo_count == HISTORY_LIMIT

    def test_new_change_clears_redo(self):
        history = MindMapHistory(MindMap())
        history.set(MindMap(nodes=[MindMapNode(id="1", label="a")]))
        history.undo()
        assert history.can_redo is True

        history.set(MindMap(nodes=[MindMapNode(id="1", label="b")]))
        assert history.can_redo is False
