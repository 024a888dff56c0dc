from __future__ import annotations
import json
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import AnalysisError, ConcurrentUpdateError, NotFoundError
from ..llm_client import LLMClient
from ..material_analyzer import MaterialAnalyzer
from ..models import LearningMaterial
from .auth import User, get_current_user


router = APIRouter(prefix="/materials", tags=["materials"])


MaterialType = Literal["pdf", "document", "video", "quiz", "assignment", "notes", "textbook"]
MaterialCategory = Literal["study_material", "assignment", "test", "reference", "practice"]


class CreateMaterialRequest(BaseModel):
	title: str = Field(min_length=1, max_length=512)
	type: MaterialType = "notes"
	category: MaterialCategory = "study_material"
	subject: Optional[str] = None
	topics: List[str] = Field(default_factory=list)
	text: Optional[str] = None


def get_llm_client() -> LLMClient:
	try:
		return LLMClient()
	except ValueError as e:
		raise HTTPException(status_code=503, detail=str(e))


def _serialize(row: LearningMaterial) -> Dict[str, Any]:
	analysis: Dict[str, Any] = {"analyzed": bool(row.analyzed)}
	if row.analysis_json:
		analysis.update(json.loads(row.analysis_json))
	return {
		"id": row.id,
		"userId": row.username,
		"title": row.title,
		"type": row.type,
		"category": row.category,
		"subject": row.subject,
		"topics": json.loads(row.topics_json or "[]"),
		"content": {"text": row.text} if row.text else None,
		"metadata": {
			"source": "local_upload",
			"difficulty": row.difficulty_level,
			"estimatedTime": row.estimated_time,
		},
		"analysis": analysis,
		"createdAt": row.created_at.isoformat() if isinstance(row.created_at, datetime) else None,
	}


def _owned(db: Session, material_id: str, user: User) -> LearningMaterial:
	row = db.get(LearningMaterial, material_id)
	if row is None or row.username != user.username:
		raise HTTPException(status_code=404, detail="Material not found")
	return row


@router.post("", status_code=201)
async def create_material(req: CreateMaterialRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = LearningMaterial(
		id=uuid.uuid4().hex,
		username=user.username,
		title=req.title.strip(),
		type=req.type,
		category=req.category,
		subject=req.subject,
		topics_json=json.dumps(req.topics),
		text=req.text,
		analyzed=False,
	)
	db.add(row)
	db.commit()
	return _serialize(row)


@router.get("")
async def list_materials(
	category: Optional[str] = None,
	subject: Optional[str] = None,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
):
	q = db.query(LearningMaterial).filter(LearningMaterial.username == user.username)
	if category:
		q = q.filter(LearningMaterial.category == category)
	if subject:
		q = q.filter(LearningMaterial.subject == subject)
	return [_serialize(r) for r in q.order_by(LearningMaterial.created_at.desc()).all()]


@router.get("/{material_id}")
async def get_material(material_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return _serialize(_owned(db, material_id, user))


@router.post("/{material_id}/analyze")
async def analyze_material(
	material_id: str,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	client: LLMClient = Depends(get_llm_client),
):
	try:
		_owned(db, material_id, user)
		row = await MaterialAnalyzer(db, client).analyze(material_id, user.username)
	except NotFoundError as e:
		raise HTTPException(status_code=404, detail=str(e))
	except ConcurrentUpdateError as e:
		raise HTTPException(status_code=409, detail=str(e))
	except (AnalysisError, httpx.HTTPError, RuntimeError) as e:
		raise HTTPException(status_code=502, detail=f"Material analysis failed: {e}")
	finally:
		await client.aclose()
	return _serialize(row)


@router.post("/{material_id}/quiz")
async def generate_material_quiz(
	material_id: str,
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	client: LLMClient = Depends(get_llm_client),
):
	"""Draft quiz questions for a material; saving them is a separate ``POST /quizzes``."""
	try:
		_owned(db, material_id, user)
		questions = await MaterialAnalyzer(db, client).generate_quiz(material_id, user.username)
	except NotFoundError as e:
		raise HTTPException(status_code=404, detail=str(e))
	except (AnalysisError, httpx.HTTPError, RuntimeError) as e:
		raise HTTPException(status_code=502, detail=f"Quiz generation failed: {e}")
	finally:
		await client.aclose()
	return {"questions": [q.model_dump(mode="json", by_alias=True, exclude={"id"}) for q in questions]}
