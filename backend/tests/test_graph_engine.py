import math

import pytest

from amberlear import graph_engine
from amberlear.errors import TopicNotFound, ValidationError
from amberlear.graph_engine import Edge, ProgressGraphDoc, TopicNode


def make_graph(*nodes, edges=()):
    return ProgressGraphDoc(user_id="u1", nodes=list(nodes), edges=list(edges))


def topic(topic_id, mastery=0.0, status="locked", prerequisites=()):
    return TopicNode(id=topic_id, name=topic_id, subject="Math", mastery=mastery, status=status, prerequisites=list(prerequisites))


@pytest.mark.parametrize(
    "old, performance",
    [(0.0, 0.0), (0.0, 1.0), (0.5, 1.0), (0.9, 0.2), (1.0, 1.0), (0.33, 0.61)],
)
def test_smooth_mastery_is_weighted_average(old, performance):
    expected = min(1.0, max(0.0, old * 0.7 + performance * 0.3))
    assert graph_engine.smooth_mastery(old, performance) == pytest.approx(expected)


def test_out_of_range_performance_is_clamped_on_the_result():
    assert graph_engine.smooth_mastery(1.0, 1.5) == 1.0
    assert graph_engine.smooth_mastery(0.1, -2.0) == 0.0
    # In-range results are not clamped away
    assert graph_engine.smooth_mastery(0.5, 1.2) == pytest.approx(0.71)


def test_non_finite_performance_is_rejected():
    with pytest.raises(ValidationError):
        graph_engine.smooth_mastery(0.5, math.nan)
    with pytest.raises(ValidationError):
        graph_engine.smooth_mastery(0.5, math.inf)


def test_three_perfect_sessions_master_a_topic_and_unlock_its_dependent():
    graph = make_graph(
        topic("algebra-1", mastery=0.5, status="learning"),
        topic("algebra-2", prerequisites=["algebra-1"]),
        edges=[Edge(source="algebra-1", target="algebra-2")],
    )

    node = graph_engine.apply_mastery(graph, "algebra-1", 1.0)
    assert node.mastery == pytest.approx(0.65)
    assert node.status == "learning"
    assert node.last_studied is not None
    assert graph_engine.unlock_dependents(graph, "algebra-1") == []

    node = graph_engine.apply_mastery(graph, "algebra-1", 1.0)
    assert node.mastery == pytest.approx(0.755)
    assert node.status == "learning"

    node = graph_engine.apply_mastery(graph, "algebra-1", 1.0)
    assert node.mastery == pytest.approx(0.8285)
    assert node.status == "mastered"

    assert graph_engine.unlock_dependents(graph, "algebra-1") == ["algebra-2"]
    dependent = graph.node("algebra-2")
    assert dependent.status == "learning"
    assert dependent.mastery == 0.0


def test_status_below_learning_band_is_left_alone():
    graph = make_graph(topic("t", mastery=0.35, status="learning"))
    node = graph_engine.apply_mastery(graph, "t", 0.0)
    assert node.mastery == pytest.approx(0.245)
    assert node.status == "learning"


def test_unlocked_topics_never_return_to_locked():
    graph = make_graph(topic("m", mastery=0.9, status="mastered"), topic("l", mastery=0.4, status="learning"))
    for _ in range(10):
        graph_engine.apply_mastery(graph, "m", 0.0)
        graph_engine.apply_mastery(graph, "l", 0.0)
    assert graph.node("m").status == "learning"
    assert graph.node("l").status == "learning"
    assert graph.node("m").mastery < 0.3


def test_locked_topic_without_prerequisites_unlocks_on_progress():
    graph = make_graph(topic("intro", mastery=0.5))
    node = graph_engine.apply_mastery(graph, "intro", 1.0)
    assert node.status == "learning"


def test_status_follows_mastery_even_with_unmet_prerequisites():
    graph = make_graph(
        topic("x", mastery=0.5, status="learning"),
        topic("d", mastery=0.9, prerequisites=["x"]),
    )
    node = graph_engine.apply_mastery(graph, "d", 1.0)
    assert node.mastery == pytest.approx(0.93)
    assert node.status == "mastered"


def test_imported_concept_with_free_text_prerequisite_becomes_recommendable():
    graph = make_graph()
    graph_engine.add_concept_nodes(graph, ["limits"], ["basic algebra"], "Calculus")
    node = graph_engine.apply_mastery(graph, "limits", 1.0)
    assert node.mastery == pytest.approx(0.3)
    assert node.status == "learning"
    assert [n.id for n in graph_engine.recommend(graph)] == ["limits"]

    for _ in range(9):
        graph_engine.apply_mastery(graph, "limits", 1.0)
    assert graph.node("limits").status == "mastered"
    assert graph_engine.recommend(graph) == []


def test_mastered_topic_pushed_below_learning_band_is_no_longer_mastered():
    graph = make_graph(topic("m", mastery=0.85, status="mastered"))
    node = graph_engine.apply_mastery(graph, "m", -2.0)
    assert node.mastery == 0.0
    assert node.status == "learning"


def test_time_spent_accumulates_and_rejects_negative_values():
    graph = make_graph(topic("t", status="learning"))
    graph_engine.apply_mastery(graph, "t", 0.5, time_spent=12.5)
    graph_engine.apply_mastery(graph, "t", 0.5, time_spent=7.5)
    assert graph.node("t").time_spent == pytest.approx(20.0)
    with pytest.raises(ValidationError):
        graph_engine.apply_mastery(graph, "t", 0.5, time_spent=-1)
    assert graph.node("t").time_spent == pytest.approx(20.0)


def test_missing_topic_raises_not_found():
    graph = make_graph(topic("t"))
    with pytest.raises(TopicNotFound):
        graph_engine.apply_mastery(graph, "nope", 1.0)
    with pytest.raises(TopicNotFound):
        graph_engine.unlock_dependents(graph, "nope")


def test_unlock_requires_every_prerequisite():
    graph = make_graph(
        topic("x", mastery=0.9, status="mastered"),
        topic("y", mastery=0.75, status="learning"),
        topic("d", prerequisites=["x", "y"]),
        edges=[Edge(source="x", target="d"), Edge(source="y", target="d")],
    )
    assert graph_engine.unlock_dependents(graph, "x") == []
    assert graph.node("d").status == "locked"

    graph_engine.apply_mastery(graph, "y", 1.0)
    assert graph.node("y").status == "mastered"
    assert graph_engine.unlock_dependents(graph, "y") == ["d"]
    assert graph.node("d").status == "learning"


def test_unresolvable_prerequisite_counts_as_unmet():
    graph = make_graph(
        topic("x", mastery=0.9, status="mastered"),
        topic("d", prerequisites=["x", "ghost"]),
        edges=[Edge(source="x", target="d")],
    )
    assert graph_engine.unlock_dependents(graph, "x") == []
    assert graph.node("d").status == "locked"


def test_unlock_is_a_no_op_unless_source_is_mastered():
    graph = make_graph(
        topic("x", mastery=0.6, status="learning"),
        topic("d", prerequisites=[]),
        edges=[Edge(source="x", target="d")],
    )
    assert graph_engine.unlock_dependents(graph, "x") == []
    assert graph.node("d").status == "locked"


def test_unlock_is_idempotent():
    graph = make_graph(
        topic("x", mastery=0.9, status="mastered"),
        topic("d", prerequisites=["x"]),
        edges=[Edge(source="x", target="d")],
    )
    assert graph_engine.unlock_dependents(graph, "x") == ["d"]
    before = graph.model_dump()
    assert graph_engine.unlock_dependents(graph, "x") == []
    assert graph.model_dump() == before


def test_unlock_only_follows_one_hop():
    graph = make_graph(
        topic("a", mastery=0.9, status="mastered"),
        topic("b", prerequisites=["a"]),
        topic("c", prerequisites=[]),
        edges=[Edge(source="a", target="b"), Edge(source="b", target="c")],
    )
    assert graph_engine.unlock_dependents(graph, "a") == ["b"]
    assert graph.node("c").status == "locked"


def test_recommendations_are_weakest_learning_topics_first():
    graph = make_graph(
        topic("A", mastery=0.5, status="learning"),
        topic("B", mastery=0.2, status="learning"),
        topic("C", mastery=0.9, status="mastered"),
    )
    assert [n.id for n in graph_engine.recommend(graph)] == ["B", "A"]


def test_recommendations_are_capped_and_skip_near_mastery_and_locked():
    graph = make_graph(
        topic("a", mastery=0.6, status="learning"),
        topic("b", mastery=0.1, status="learning"),
        topic("c", mastery=0.7, status="learning"),
        topic("d", mastery=0.0, status="locked"),
        topic("e", mastery=0.4, status="learning"),
        topic("f", mastery=0.3, status="learning"),
    )
    assert [n.id for n in graph_engine.recommend(graph)] == ["b", "f", "e"]
    assert graph_engine.recommend(make_graph()) == []


def test_add_concept_nodes_appends_locked_nodes_once():
    graph = make_graph(topic("vectors", mastery=0.4, status="learning"))
    added = graph_engine.add_concept_nodes(graph, ["vectors", "matrices", "determinants", "matrices"], ["vectors"], None)

    assert added == ["matrices", "determinants"]
    matrices = graph.node("matrices")
    assert matrices.status == "locked"
    assert matrices.mastery == 0.0
    assert matrices.subject == "General"
    assert matrices.prerequisites == ["vectors"]
    assert matrices.time_spent == 0.0
    # The existing node is untouched
    assert graph.node("vectors").mastery == 0.4
    assert [(e.source, e.target) for e in graph.edges] == [("vectors", "matrices"), ("vectors", "determinants")]

    assert graph_engine.add_concept_nodes(graph, ["matrices"], ["vectors"], "Linear Algebra") == []
    assert len(graph.nodes) == 3
    assert len(graph.edges) == 2


def test_concept_nodes_share_material_prerequisites_and_subject():
    graph = make_graph()
    graph_engine.add_concept_nodes(graph, ["limits", "derivatives"], ["functions", "algebra"], "Calculus")
    for concept in ("limits", "derivatives"):
        n = graph.node(concept)
        assert n.subject == "Calculus"
        assert n.prerequisites == ["functions", "algebra"]


def test_documents_serialize_with_camel_case_keys():
    graph = make_graph(topic("t"), edges=[Edge(source="s", target="t", strength=0.5)])
    data = graph.model_dump(mode="json", by_alias=True)
    assert data["userId"] == "u1"
    assert data["edges"] == [{"from": "s", "to": "t", "strength": 0.5}]
    assert "timeSpent" in data["nodes"][0]
    assert "lastStudied" in data["nodes"][0]
