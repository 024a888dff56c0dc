"""Progress graph rules.

A learner's progress graph is a small directed graph of topics. Each topic
carries a mastery score in [0, 1] and a status (locked / learning / mastered).
Everything here works on in-memory documents; loading and saving them is
``progress_tracker``'s job.
"""
from __future__ import annotations
import math
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .errors import TopicNotFound, ValidationError


# Exponential smoothing: 70% history, 30% newest performance sample
HISTORY_WEIGHT = 0.7
PERFORMANCE_WEIGHT = 0.3

MASTERED_THRESHOLD = 0.8
LEARNING_THRESHOLD = 0.3

RECOMMEND_BELOW = 0.7
RECOMMEND_LIMIT = 3

DEFAULT_SUBJECT = "General"

TopicStatus = Literal["locked", "learning", "mastered"]


class TopicNode(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	id: str
	name: str
	subject: str = DEFAULT_SUBJECT
	mastery: float = Field(default=0.0, ge=0.0, le=1.0)
	status: TopicStatus = "locked"
	prerequisites: List[str] = Field(default_factory=list)
	last_studied: Optional[datetime] = Field(default=None, alias="lastStudied")
	time_spent: float = Field(default=0.0, ge=0.0, alias="timeSpent")


class Edge(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	source: str = Field(alias="from")
	target: str = Field(alias="to")
	strength: float = 1.0


class ProgressGraphDoc(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	user_id: str = Field(alias="userId")
	nodes: List[TopicNode] = Field(default_factory=list)
	edges: List[Edge] = Field(default_factory=list)
	updated_at: Optional[datetime] = Field(default=None, alias="updatedAt")

	def node(self, topic_id: str) -> Optional[TopicNode]:
		for n in self.nodes:
			if n.id == topic_id:
				return n
		return None

	def index(self) -> Dict[str, TopicNode]:
		return {n.id: n for n in self.nodes}


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
	return max(low, min(high, value))


def smooth_mastery(old_mastery: float, performance: float) -> float:
	"""Blend a new performance sample into the running mastery score.

	The sample is not range-checked; an out-of-range value moves the blend
	and only the result is clamped to [0, 1].
	"""
	if not math.isfinite(performance):
		raise ValidationError(f"performance must be a finite number, got {performance!r}")
	return _clamp(old_mastery * HISTORY_WEIGHT + performance * PERFORMANCE_WEIGHT)


def derive_status(mastery: float, current: TopicStatus) -> TopicStatus:
	if mastery >= MASTERED_THRESHOLD:
		return "mastered"
	if mastery >= LEARNING_THRESHOLD:
		return "learning"
	# Below the learning band nothing goes back to locked, but a score that
	# dropped out of the mastered band is no longer mastered
	if current == "mastered":
		return "learning"
	return current


def prerequisites_met(graph: ProgressGraphDoc, node: TopicNode, index: Optional[Dict[str, TopicNode]] = None) -> bool:
	nodes = index if index is not None else graph.index()
	for prereq_id in node.prerequisites:
		prereq = nodes.get(prereq_id)
		# An unknown prerequisite never counts as mastered
		if prereq is None or prereq.status != "mastered":
			return False
	return True


def apply_mastery(
	graph: ProgressGraphDoc,
	topic_id: str,
	performance: float,
	*,
	time_spent: float = 0.0,
	now: Optional[datetime] = None,
) -> TopicNode:
	"""Record one performance sample for ``topic_id`` and re-derive its status.

	The status follows the new score alone; prerequisites only gate the
	unlock pass. Raises ``TopicNotFound`` if the topic is not in the graph.
	"""
	node = graph.node(topic_id)
	if node is None:
		raise TopicNotFound(graph.user_id, topic_id)
	if not math.isfinite(time_spent) or time_spent < 0:
		raise ValidationError(f"time_spent must be a non-negative number, got {time_spent!r}")

	node.mastery = smooth_mastery(node.mastery, performance)
	node.status = derive_status(node.mastery, node.status)
	node.last_studied = now or datetime.now(timezone.utc)
	node.time_spent += time_spent
	return node


def unlock_dependents(graph: ProgressGraphDoc, mastered_topic_id: str) -> List[str]:
	"""Move direct dependents of a mastered topic from locked to learning.

	Only edges leaving ``mastered_topic_id`` are followed and only one hop;
	a dependent unlocks when all of its own prerequisites are mastered.
	Mastery of the dependent is not touched. Returns the ids unlocked, so a
	repeated call with no intervening change returns an empty list.
	"""
	source = graph.node(mastered_topic_id)
	if source is None:
		raise TopicNotFound(graph.user_id, mastered_topic_id)
	if source.status != "mastered":
		return []

	index = graph.index()
	unlocked: List[str] = []
	for edge in graph.edges:
		if edge.source != mastered_topic_id:
			continue
		dependent = index.get(edge.target)
		if dependent is None or dependent.status != "locked":
			continue
		if prerequisites_met(graph, dependent, index):
			dependent.status = "learning"
			unlocked.append(dependent.id)
	return unlocked


def recommend(graph: ProgressGraphDoc, limit: int = RECOMMEND_LIMIT) -> List[TopicNode]:
	"""Topics in progress that are furthest from mastery, weakest first."""
	candidates = [n for n in graph.nodes if n.status == "learning" and n.mastery < RECOMMEND_BELOW]
	candidates.sort(key=lambda n: n.mastery)
	return candidates[:limit]


def _unique(items: Iterable[str]) -> List[str]:
	seen = set()
	out: List[str] = []
	for item in items:
		if item in seen:
			continue
		seen.add(item)
		out.append(item)
	return out


def add_concept_nodes(
	graph: ProgressGraphDoc,
	concepts: Iterable[str],
	prerequisites: Iterable[str] = (),
	subject: Optional[str] = None,
) -> List[str]:
	"""Append a locked node per concept not yet in the graph.

	All concepts of one material share the material's prerequisite list.
	Each new node also gets an edge from every prerequisite so that mastering
	a prerequisite finds it as a dependent. Returns the ids added.
	"""
	shared_prereqs = _unique(p for p in prerequisites if p)
	existing = {n.id for n in graph.nodes}
	edge_keys = {(e.source, e.target) for e in graph.edges}
	added: List[str] = []
	for concept in concepts:
		if not concept or not concept.strip() or concept in existing:
			continue
		graph.nodes.append(
			TopicNode(
				id=concept,
				name=concept,
				subject=subject or DEFAULT_SUBJECT,
				mastery=0.0,
				status="locked",
				prerequisites=[p for p in shared_prereqs if p != concept],
				time_spent=0.0,
			)
		)
		existing.add(concept)
		added.append(concept)
		for prereq in shared_prereqs:
			if prereq == concept or (prereq, concept) in edge_keys:
				continue
			graph.edges.append(Edge(source=prereq, target=concept, strength=1.0))
			edge_keys.add((prereq, concept))
	return added
