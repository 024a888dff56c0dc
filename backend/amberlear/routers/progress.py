from __future__ import annotations
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..errors import ConcurrentUpdateError, NotFoundError, ValidationError
from ..progress_tracker import ProgressTracker
from .auth import User, get_current_user


router = APIRouter(prefix="/progress", tags=["progress"])


class MasteryRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	topic_id: str = Field(alias="topicId", min_length=1)
	# Not range-checked: the smoothed result is clamped instead
	performance: float
	time_spent: float = Field(default=0.0, ge=0, alias="timeSpent")


def _own_graph(user_id: str, user: User) -> None:
	if user_id != user.username:
		raise HTTPException(status_code=403, detail="Not allowed to access another user's progress")


def _raise_http(err: Exception) -> None:
	if isinstance(err, NotFoundError):
		raise HTTPException(status_code=404, detail=str(err))
	if isinstance(err, ValidationError):
		raise HTTPException(status_code=422, detail=str(err))
	if isinstance(err, ConcurrentUpdateError):
		raise HTTPException(status_code=409, detail=str(err))
	raise err


@router.get("/{user_id}")
async def get_progress(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, Any]:
	_own_graph(user_id, user)
	try:
		graph = ProgressTracker(db).get_graph(user_id)
	except NotFoundError:
		raise HTTPException(status_code=404, detail="Progress not found")
	return graph.model_dump(mode="json", by_alias=True)


@router.post("/{user_id}/mastery")
async def update_topic_mastery(user_id: str, req: MasteryRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, Any]:
	_own_graph(user_id, user)
	try:
		result = ProgressTracker(db).update_mastery(user_id, req.topic_id, req.performance, time_spent=req.time_spent)
	except (NotFoundError, ValidationError, ConcurrentUpdateError) as err:
		_raise_http(err)
	return {
		"success": True,
		"node": result.node.model_dump(mode="json", by_alias=True),
		"unlocked": result.unlocked,
	}


@router.post("/{user_id}/topics/{topic_id}/unlock")
async def unlock_dependents(user_id: str, topic_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, List[str]]:
	_own_graph(user_id, user)
	try:
		unlocked = ProgressTracker(db).unlock_dependents(user_id, topic_id)
	except (NotFoundError, ConcurrentUpdateError) as err:
		_raise_http(err)
	return {"unlocked": unlocked}


@router.get("/{user_id}/recommendations")
async def get_recommendations(user_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, Any]:
	_own_graph(user_id, user)
	topics = ProgressTracker(db).get_recommended_topics(user_id)
	return {"recommendations": [t.model_dump(mode="json", by_alias=True) for t in topics]}
