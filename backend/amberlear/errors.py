from __future__ import annotations


class AmberlearError(Exception):
	"""Base class for domain errors raised below the HTTP layer."""


class NotFoundError(AmberlearError):
	pass


class GraphNotFound(NotFoundError):
	def __init__(self, user_id: str) -> None:
		super().__init__(f"no progress graph for user {user_id!r}")
		self.user_id = user_id


class TopicNotFound(NotFoundError):
	def __init__(self, user_id: str, topic_id: str) -> None:
		super().__init__(f"topic {topic_id!r} not in progress graph of user {user_id!r}")
		self.user_id = user_id
		self.topic_id = topic_id


class MaterialNotFound(NotFoundError):
	def __init__(self, material_id: str) -> None:
		super().__init__(f"material {material_id!r} not found")
		self.material_id = material_id


class ValidationError(AmberlearError):
	pass


class ConcurrentUpdateError(AmberlearError):
	"""Raised when a graph write keeps losing the version check."""


class AnalysisError(AmberlearError):
	pass


class QuizNotFound(NotFoundError):
	def __init__(self, quiz_id: str) -> None:
		super().__init__(f"quiz {quiz_id!r} not found")
		self.quiz_id = quiz_id


class AttemptNotFound(NotFoundError):
	def __init__(self, attempt_id: str) -> None:
		super().__init__(f"attempt {attempt_id!r} not found")
		self.attempt_id = attempt_id


class QuestionNotFound(NotFoundError):
	def __init__(self, question_id: str) -> None:
		super().__init__(f"question {question_id!r} not found")
		self.question_id = question_id


class AttemptClosed(AmberlearError):
	"""Raised when an attempt can no longer change: it is finished, or retakes are off."""
