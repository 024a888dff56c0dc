"""Quiz documents and attempt scoring.

A quiz is a list of questions plus the learner's attempts at it. Answers are
graded as they are submitted; finishing an attempt only totals them up.
"""
from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import AttemptClosed, AttemptNotFound, QuestionNotFound, ValidationError


QuestionType = Literal["multiple_choice", "true_false", "short_answer", "essay"]


class _CamelModel(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class QuizQuestion(_CamelModel):
	id: Optional[str] = None
	type: QuestionType
	question: str = Field(min_length=1)
	options: List[str] = Field(default_factory=list)
	correct_answer: str = Field(alias="correctAnswer")
	explanation: Optional[str] = None
	difficulty: float = Field(default=0.5, ge=0, le=1)

	@field_validator("correct_answer", mode="before")
	@classmethod
	def _answer_as_text(cls, value: Any) -> Any:
		# true/false questions often come back as JSON booleans
		if isinstance(value, bool):
			return "true" if value else "false"
		if isinstance(value, (int, float)):
			return str(value)
		return value

	@field_validator("options", mode="before")
	@classmethod
	def _options_as_list(cls, value: Any) -> Any:
		return [] if value is None else value


class QuizSettings(_CamelModel):
	time_limit: Optional[int] = Field(default=None, ge=1, alias="timeLimit")
	shuffle_questions: bool = Field(default=True, alias="shuffleQuestions")
	show_correct_answers: bool = Field(default=True, alias="showCorrectAnswers")
	allow_retake: bool = Field(default=True, alias="allowRetake")


class AttemptAnswer(_CamelModel):
	question_id: str = Field(alias="questionId")
	answer: str
	is_correct: bool = Field(alias="isCorrect")
	time_spent: float = Field(default=0.0, ge=0, alias="timeSpent")


class QuizAttempt(_CamelModel):
	attempt_id: str = Field(alias="attemptId")
	start_time: datetime = Field(alias="startTime")
	end_time: Optional[datetime] = Field(default=None, alias="endTime")
	answers: List[AttemptAnswer] = Field(default_factory=list)
	score: float = 0.0
	feedback: Optional[str] = None

	@property
	def finished(self) -> bool:
		return self.end_time is not None


class AttemptResult(_CamelModel):
	score: float
	correct_answers: int = Field(alias="correctAnswers")
	total_questions: int = Field(alias="totalQuestions")
	time_spent: float = Field(alias="timeSpent")


def answer_matches(answer: str, correct_answer: str) -> bool:
	return answer.strip().lower() == correct_answer.strip().lower()


def assign_question_ids(questions: List[QuizQuestion]) -> List[QuizQuestion]:
	"""Give every question a fresh id; ids sent by the client are ignored."""
	return [q.model_copy(update={"id": uuid.uuid4().hex}) for q in questions]


def public_questions(questions: List[QuizQuestion]) -> List[dict]:
	"""Questions as shown to a learner mid-attempt, without answers or explanations."""
	return [{"id": q.id, "type": q.type, "question": q.question, "options": q.options} for q in questions]


def find_attempt(attempts: List[QuizAttempt], attempt_id: str) -> QuizAttempt:
	for attempt in attempts:
		if attempt.attempt_id == attempt_id:
			return attempt
	raise AttemptNotFound(attempt_id)


def find_question(questions: List[QuizQuestion], question_id: str) -> QuizQuestion:
	for question in questions:
		if question.id == question_id:
			return question
	raise QuestionNotFound(question_id)


def start_attempt(attempts: List[QuizAttempt], settings: QuizSettings, *, now: Optional[datetime] = None) -> QuizAttempt:
	if not settings.allow_retake and any(a.finished for a in attempts):
		raise AttemptClosed("this quiz does not allow retakes")
	attempt = QuizAttempt(attempt_id=uuid.uuid4().hex, start_time=now or datetime.now(timezone.utc))
	attempts.append(attempt)
	return attempt


def record_answer(attempt: QuizAttempt, question: QuizQuestion, answer: str, time_spent: float = 0.0) -> AttemptAnswer:
	"""Grade ``answer`` and store it on the attempt.

	Answering the same question again replaces the earlier answer, so an
	attempt never holds more answers than the quiz has questions.
	"""
	if attempt.finished:
		raise AttemptClosed(f"attempt {attempt.attempt_id!r} is already finished")
	if time_spent < 0:
		raise ValidationError(f"time_spent must be non-negative, got {time_spent!r}")
	graded = AttemptAnswer(
		question_id=question.id,
		answer=answer,
		is_correct=answer_matches(answer, question.correct_answer),
		time_spent=time_spent,
	)
	attempt.answers = [a for a in attempt.answers if a.question_id != question.id]
	attempt.answers.append(graded)
	return graded


def score_attempt(attempt: QuizAttempt, total_questions: int) -> AttemptResult:
	correct = sum(1 for a in attempt.answers if a.is_correct)
	score = correct / total_questions * 100 if total_questions else 0.0
	return AttemptResult(
		score=score,
		correct_answers=correct,
		total_questions=total_questions,
		time_spent=sum(a.time_spent for a in attempt.answers),
	)


def finish_attempt(attempt: QuizAttempt, total_questions: int, *, now: Optional[datetime] = None) -> AttemptResult:
	if attempt.finished:
		raise AttemptClosed(f"attempt {attempt.attempt_id!r} is already finished")
	result = score_attempt(attempt, total_questions)
	attempt.end_time = now or datetime.now(timezone.utc)
	attempt.score = result.score
	return result
