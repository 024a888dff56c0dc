from __future__ import annotations
import json
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..adaptive_engine import AdaptiveState, MessageAnalysis, analyze_user_state, apply_emotional_update, update_emotional_state
from ..db import get_db
from ..models import LearningProfile
from ..profiles import CognitivePreferences, Profile, ProfileUpdate, to_profile
from .auth import User, get_current_user


router = APIRouter(prefix="/profile", tags=["profile"])


def _load_row(db: Session, user: User) -> LearningProfile:
	row = db.get(LearningProfile, user.username)
	if row is None:
		raise HTTPException(status_code=404, detail="Profile not found")
	return row


@router.get("", response_model=Profile, response_model_by_alias=True)
async def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return to_profile(_load_row(db, user))


@router.put("", response_model=Profile, response_model_by_alias=True)
async def update_profile(req: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = _load_row(db, user)
	if req.education_level is not None:
		row.education_level = req.education_level
	if req.subjects is not None:
		row.subjects_json = json.dumps(req.subjects)
	if req.goals is not None:
		row.goals_json = json.dumps(req.goals)
	if req.cognitive_preferences is not None:
		row.cognitive_preferences_json = req.cognitive_preferences.model_dump_json(by_alias=True)
	if req.emotional_state is not None:
		row.emotional_state_json = req.emotional_state.model_dump_json(by_alias=True)
	if req.voice_settings is not None:
		row.voice_settings_json = req.voice_settings.model_dump_json(by_alias=True)
	db.add(row)
	db.commit()
	return to_profile(row)


@router.put("/cognitive", response_model=Profile, response_model_by_alias=True)
async def update_cognitive_preferences(req: CognitivePreferences, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	row = _load_row(db, user)
	row.cognitive_preferences_json = req.model_dump_json(by_alias=True)
	db.add(row)
	db.commit()
	return to_profile(row)


@router.get("/adaptation", response_model=AdaptiveState, response_model_by_alias=True)
async def get_adaptation(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return analyze_user_state(to_profile(_load_row(db, user)))


@router.post("/emotional-state")
async def record_message_signal(req: MessageAnalysis, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Dict[str, Any]:
	row = _load_row(db, user)
	state = to_profile(row).emotional_state
	update = update_emotional_state(state, req)
	new_state = apply_emotional_update(state, update)
	row.emotional_state_json = new_state.model_dump_json(by_alias=True)
	db.add(row)
	db.commit()
	return {
		"updates": update.model_dump(mode="json", by_alias=True, exclude_none=True),
		"emotionalState": new_state.model_dump(mode="json", by_alias=True),
	}
