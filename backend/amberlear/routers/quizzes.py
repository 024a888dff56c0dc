from __future__ import annotations
import json
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AttemptClosed, NotFoundError, ValidationError
from ..models import LearningMaterial, Quiz
from ..quiz import (
	QuizAttempt,
	QuizQuestion,
	QuizSettings,
	assign_question_ids,
	find_attempt,
	find_question,
	finish_attempt,
	public_questions,
	record_answer,
	start_attempt,
)
from .auth import User, get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/quizzes", tags=["quizzes"])


class CreateQuizRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	title: str = Field(min_length=1, max_length=512)
	subject: str = Field(min_length=1, max_length=128)
	topics: List[str] = Field(default_factory=list)
	questions: List[QuizQuestion] = Field(default_factory=list)
	settings: Optional[QuizSettings] = None
	material_id: Optional[str] = Field(default=None, alias="materialId")


class AnswerRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	attempt_id: str = Field(alias="attemptId")
	question_id: str = Field(alias="questionId")
	answer: str
	time_spent: float = Field(default=0.0, ge=0, alias="timeSpent")


class FinishRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	attempt_id: str = Field(alias="attemptId")


def _load(row: Quiz) -> Tuple[List[QuizQuestion], QuizSettings, List[QuizAttempt]]:
	questions = [QuizQuestion.model_validate(q) for q in json.loads(row.questions_json or "[]")]
	settings = QuizSettings.model_validate_json(row.settings_json) if row.settings_json else QuizSettings()
	attempts = [QuizAttempt.model_validate(a) for a in json.loads(row.attempts_json or "[]")]
	return questions, settings, attempts


def _dump_list(items: List[BaseModel]) -> str:
	return json.dumps([i.model_dump(mode="json", by_alias=True) for i in items])


def _serialize(row: Quiz) -> Dict[str, Any]:
	questions, settings, attempts = _load(row)
	return {
		"id": row.id,
		"userId": row.username,
		"materialId": row.material_id,
		"title": row.title,
		"subject": row.subject,
		"topics": json.loads(row.topics_json or "[]"),
		"questions": [q.model_dump(mode="json", by_alias=True) for q in questions],
		"settings": settings.model_dump(mode="json", by_alias=True),
		"attempts": [a.model_dump(mode="json", by_alias=True) for a in attempts],
		"createdAt": row.created_at.isoformat() if isinstance(row.created_at, datetime) else None,
	}


def _owned(db: Session, quiz_id: str, user: User) -> Quiz:
	row = db.get(Quiz, quiz_id)
	if row is None or row.username != user.username:
		raise HTTPException(status_code=404, detail="Quiz not found")
	return row


def _raise_http(err: Exception) -> None:
	if isinstance(err, NotFoundError):
		raise HTTPException(status_code=404, detail=str(err))
	if isinstance(err, AttemptClosed):
		raise HTTPException(status_code=409, detail=str(err))
	if isinstance(err, ValidationError):
		raise HTTPException(status_code=422, detail=str(err))
	raise err


@router.get("")
async def list_quizzes(
	subject: Optional[str] = None,
	materialId: Optional[str] = None,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	q = db.query(Quiz).filter(Quiz.username == user.username)
	if subject:
		q = q.filter(Quiz.subject == subject)
	if materialId:
		q = q.filter(Quiz.material_id == materialId)
	return [_serialize(r) for r in q.order_by(Quiz.created_at.desc()).all()]


@router.get("/{quiz_id}")
async def get_quiz(quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return _serialize(_owned(db, quiz_id, user))


@router.post("", status_code=201)
async def create_quiz(req: CreateQuizRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if req.material_id is not None:
		material = db.get(LearningMaterial, req.material_id)
		if material is None or material.username != user.username:
			raise HTTPException(status_code=404, detail="Material not found")
	row = Quiz(
		id=uuid.uuid4().hex,
		username=user.username,
		material_id=req.material_id,
		title=req.title.strip(),
		subject=req.subject.strip(),
		topics_json=json.dumps(req.topics),
		questions_json=_dump_list(assign_question_ids(req.questions)),
		settings_json=(req.settings or QuizSettings()).model_dump_json(by_alias=True),
		attempts_json="[]",
	)
	db.add(row)
	db.commit()
	logger.info("created quiz %s with %d questions for %s", row.id, len(req.questions), user.username)
	return _serialize(row)


@router.delete("/{quiz_id}")
async def delete_quiz(quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	db.delete(_owned(db, quiz_id, user))
	db.commit()
	return {"success": True}


@router.post("/{quiz_id}/start")
async def start_quiz_attempt(quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = _owned(db, quiz_id, user)
	questions, settings, attempts = _load(row)
	try:
		attempt = start_attempt(attempts, settings)
	except AttemptClosed as e:
		_raise_http(e)
	row.attempts_json = _dump_list(attempts)
	db.add(row)
	db.commit()
	return {"attemptId": attempt.attempt_id, "questions": public_questions(questions)}


@router.post("/{quiz_id}/answer")
async def submit_quiz_answer(req: AnswerRequest, quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = _owned(db, quiz_id, user)
	questions, settings, attempts = _load(row)
	try:
		attempt = find_attempt(attempts, req.attempt_id)
		question = find_question(questions, req.question_id)
		graded = record_answer(attempt, question, req.answer, req.time_spent)
	except (NotFoundError, AttemptClosed, ValidationError) as e:
		_raise_http(e)
	row.attempts_json = _dump_list(attempts)
	db.add(row)
	db.commit()
	return {
		"isCorrect": graded.is_correct,
		"explanation": question.explanation if settings.show_correct_answers else None,
	}


@router.post("/{quiz_id}/finish")
async def finish_quiz_attempt(req: FinishRequest, quiz_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = _owned(db, quiz_id, user)
	questions, _, attempts = _load(row)
	try:
		attempt = find_attempt(attempts, req.attempt_id)
		result = finish_attempt(attempt, len(questions))
	except (NotFoundError, AttemptClosed) as e:
		_raise_http(e)
	row.attempts_json = _dump_list(attempts)
	db.add(row)
	db.commit()
	logger.info("quiz %s attempt %s finished with score %.1f", quiz_id, attempt.attempt_id, result.score)
	return result.model_dump(by_alias=True)
