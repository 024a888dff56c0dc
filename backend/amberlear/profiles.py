from __future__ import annotations
import json
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import LearningProfile


class _CamelModel(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class CognitivePreferences(_CamelModel):
	visual_vs_verbal: float = Field(default=0.5, ge=0, le=1, alias="visualVsVerbal")
	step_by_step_vs_conceptual: float = Field(default=0.5, ge=0, le=1, alias="stepByStepVsConceptual")
	pace: Literal["slow", "moderate", "fast"] = "moderate"
	difficulty_tolerance: float = Field(default=0.5, ge=0, le=1, alias="difficultyTolerance")


class EmotionalState(_CamelModel):
	confidence: float = Field(default=0.5, ge=0, le=1)
	frustration_level: float = Field(default=0.0, ge=0, le=1, alias="frustrationLevel")
	recent_successes: int = Field(default=0, ge=0, alias="recentSuccesses")
	drop_off_points: List[str] = Field(default_factory=list, alias="dropOffPoints")


class VoiceSettings(_CamelModel):
	enabled: bool = True
	warmth: float = Field(default=0.7, ge=0, le=1)
	speed: float = Field(default=1.0, gt=0, le=2)
	stability: float = Field(default=0.5, ge=0, le=1)


class Profile(_CamelModel):
	user_id: str = Field(alias="userId")
	education_level: Optional[str] = Field(default=None, alias="educationLevel")
	subjects: List[str] = Field(default_factory=list)
	goals: List[str] = Field(default_factory=list)
	cognitive_preferences: CognitivePreferences = Field(default_factory=CognitivePreferences, alias="cognitivePreferences")
	emotional_state: EmotionalState = Field(default_factory=EmotionalState, alias="emotionalState")
	voice_settings: VoiceSettings = Field(default_factory=VoiceSettings, alias="voiceSettings")


class ProfileUpdate(_CamelModel):
	education_level: Optional[str] = Field(default=None, alias="educationLevel")
	subjects: Optional[List[str]] = None
	goals: Optional[List[str]] = None
	cognitive_preferences: Optional[CognitivePreferences] = Field(default=None, alias="cognitivePreferences")
	emotional_state: Optional[EmotionalState] = Field(default=None, alias="emotionalState")
	voice_settings: Optional[VoiceSettings] = Field(default=None, alias="voiceSettings")


def _load_json(text: Optional[str], model):
	if not text:
		return model()
	return model.model_validate_json(text)


def to_profile(row: LearningProfile) -> Profile:
	return Profile(
		user_id=row.username,
		education_level=row.education_level,
		subjects=json.loads(row.subjects_json or "[]"),
		goals=json.loads(row.goals_json or "[]"),
		cognitive_preferences=_load_json(row.cognitive_preferences_json, CognitivePreferences),
		emotional_state=_load_json(row.emotional_state_json, EmotionalState),
		voice_settings=_load_json(row.voice_settings_json, VoiceSettings),
	)
