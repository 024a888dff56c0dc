from __future__ import annotations
import json
import logging
from typing import Callable, List, Optional, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from . import graph_engine
from .errors import AmberlearError, ConcurrentUpdateError, GraphNotFound
from .graph_engine import Edge, ProgressGraphDoc, TopicNode
from .models import LearningMaterial, ProgressGraph
from .settings import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class MasteryUpdate(BaseModel):
	node: TopicNode
	unlocked: List[str] = Field(default_factory=list)


def _to_doc(row: ProgressGraph) -> ProgressGraphDoc:
	return ProgressGraphDoc(
		user_id=row.user_id,
		nodes=[TopicNode.model_validate(n) for n in json.loads(row.nodes_json or "[]")],
		edges=[Edge.model_validate(e) for e in json.loads(row.edges_json or "[]")],
		updated_at=row.updated_at,
	)


def _dump(items: List[BaseModel]) -> str:
	return json.dumps([i.model_dump(mode="json", by_alias=True) for i in items])


def _store(row: ProgressGraph, graph: ProgressGraphDoc) -> bool:
	nodes_json = _dump(graph.nodes)
	edges_json = _dump(graph.edges)
	if nodes_json == row.nodes_json and edges_json == row.edges_json:
		return False
	row.nodes_json = nodes_json
	row.edges_json = edges_json
	return True


class ProgressTracker:
	"""Loads a user's graph, applies ``graph_engine`` rules and saves it back.

	Writes are optimistic: the row's version column is checked on UPDATE, and
	when another writer got there first the whole read-modify-write is redone
	on a fresh snapshot.
	"""

	def __init__(self, db: Session, *, max_attempts: Optional[int] = None) -> None:
		self.db = db
		self.max_attempts = max(1, max_attempts or settings.graph_write_retries)

	def create_graph(self, user_id: str) -> ProgressGraphDoc:
		row = self.db.get(ProgressGraph, user_id)
		if row is None:
			row = ProgressGraph(user_id=user_id, nodes_json="[]", edges_json="[]")
			self.db.add(row)
			self.db.commit()
			logger.info("created empty progress graph for %s", user_id)
		return _to_doc(row)

	def get_graph(self, user_id: str) -> ProgressGraphDoc:
		return _to_doc(self._load(user_id))

	def update_mastery(self, user_id: str, topic_id: str, performance: float, *, time_spent: float = 0.0) -> MasteryUpdate:
		def mutate(graph: ProgressGraphDoc) -> MasteryUpdate:
			node = graph_engine.apply_mastery(graph, topic_id, performance, time_spent=time_spent)
			logger.debug("mastery %s/%s -> %.4f (%s)", user_id, topic_id, node.mastery, node.status)
			# Same snapshot, same commit as the mastery change
			unlocked = graph_engine.unlock_dependents(graph, topic_id)
			return MasteryUpdate(node=node.model_copy(deep=True), unlocked=unlocked)

		result = self._write(user_id, mutate)
		if result.unlocked:
			logger.info("unlocked %s for %s after mastering %s", result.unlocked, user_id, topic_id)
		return result

	def unlock_dependents(self, user_id: str, mastered_topic_id: str) -> List[str]:
		unlocked = self._write(user_id, lambda graph: graph_engine.unlock_dependents(graph, mastered_topic_id))
		if unlocked:
			logger.info("unlocked %s for %s after mastering %s", unlocked, user_id, mastered_topic_id)
		return unlocked

	def get_recommended_topics(self, user_id: str) -> List[TopicNode]:
		row = self.db.get(ProgressGraph, user_id, populate_existing=True)
		if row is None:
			return []
		return graph_engine.recommend(_to_doc(row))

	def add_concept_nodes(self, material: LearningMaterial) -> List[str]:
		analysis = json.loads(material.analysis_json or "{}")
		concepts = analysis.get("concepts") or []
		prerequisites = analysis.get("prerequisites") or []
		if not concepts:
			return []
		added = self._write(
			material.username,
			lambda graph: graph_engine.add_concept_nodes(graph, concepts, prerequisites, material.subject),
		)
		if added:
			logger.info("added %d concept node(s) from material %s", len(added), material.id)
		return added

	def _load(self, user_id: str) -> ProgressGraph:
		row = self.db.get(ProgressGraph, user_id, populate_existing=True)
		if row is None:
			raise GraphNotFound(user_id)
		return row

	def _write(self, user_id: str, mutate: Callable[[ProgressGraphDoc], T]) -> T:
		for attempt in range(1, self.max_attempts + 1):
			row = self._load(user_id)
			graph = _to_doc(row)
			try:
				result = mutate(graph)
			except AmberlearError:
				self.db.rollback()
				raise
			if not _store(row, graph):
				self.db.rollback()
				return result
			try:
				self.db.commit()
			except StaleDataError:
				self.db.rollback()
				logger.warning("progress graph of %s changed underneath us (attempt %d/%d)", user_id, attempt, self.max_attempts)
				continue
			return result
		raise ConcurrentUpdateError(f"progress graph of {user_id!r} kept changing; gave up after {self.max_attempts} attempts")
