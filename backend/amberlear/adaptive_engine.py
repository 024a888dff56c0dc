"""Tutoring adaptations derived from a learner's profile.

The tutor reads ``analyze_user_state`` before answering and feeds each
learner message back through ``update_emotional_state``.
"""
from __future__ import annotations
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .profiles import CognitivePreferences, EmotionalState, Profile


VISUAL_ABOVE = 0.6
STEP_BY_STEP_ABOVE = 0.6
FRUSTRATED_ABOVE = 0.5
LOW_CONFIDENCE_BELOW = 0.4

DETAILED_ABOVE = 0.7
CONCEPTUAL_BELOW = 0.3

# Calmer, slower voice for a frustrated learner
FRUSTRATED_STABILITY = 0.8
FRUSTRATED_SPEED = 0.9

# responseTime is in milliseconds
SLOW_RESPONSE_MS = 60000
FRUSTRATION_STEP_UP = 0.1
FRUSTRATION_STEP_DOWN = 0.15
RELIEF_SENTIMENT_ABOVE = 0.5
SUCCESS_SENTIMENT_ABOVE = 0.7
CONFIDENCE_STEP_UP = 0.05


class _CamelModel(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class VoiceParameters(_CamelModel):
	stability: float
	warmth: float
	speed: float


class AdaptiveState(_CamelModel):
	recommended_approach: str = Field(alias="recommendedApproach")
	voice_parameters: VoiceParameters = Field(alias="voiceParameters")
	adaptations: List[str] = Field(default_factory=list)


class MessageAnalysis(_CamelModel):
	sentiment: float = Field(ge=-1, le=1)
	complexity: float = Field(default=0.5, ge=0, le=1)
	response_time: float = Field(default=0, ge=0, alias="responseTime")


class EmotionalStateUpdate(_CamelModel):
	frustration_level: Optional[float] = Field(default=None, alias="frustrationLevel")
	confidence: Optional[float] = None
	recent_successes: Optional[int] = Field(default=None, alias="recentSuccesses")


def determine_teaching_approach(prefs: CognitivePreferences) -> str:
	if prefs.step_by_step_vs_conceptual > DETAILED_ABOVE:
		return "detailed-breakdown"
	if prefs.step_by_step_vs_conceptual < CONCEPTUAL_BELOW:
		return "conceptual-overview"
	return "balanced"


def analyze_user_state(profile: Profile) -> AdaptiveState:
	prefs = profile.cognitive_preferences
	mood = profile.emotional_state
	voice = profile.voice_settings
	frustrated = mood.frustration_level > FRUSTRATED_ABOVE

	adaptations: List[str] = []
	if prefs.visual_vs_verbal > VISUAL_ABOVE:
		adaptations.append("visual-mode")
	if prefs.step_by_step_vs_conceptual > STEP_BY_STEP_ABOVE:
		adaptations.append("step-by-step")
	if frustrated:
		adaptations.extend(["slower-pace", "more-encouragement"])
	if mood.confidence < LOW_CONFIDENCE_BELOW:
		adaptations.append("confidence-building")

	return AdaptiveState(
		recommended_approach=determine_teaching_approach(prefs),
		voice_parameters=VoiceParameters(
			stability=FRUSTRATED_STABILITY if frustrated else voice.stability,
			warmth=voice.warmth,
			speed=FRUSTRATED_SPEED if frustrated else voice.speed,
		),
		adaptations=adaptations,
	)


def update_emotional_state(state: EmotionalState, analysis: MessageAnalysis) -> EmotionalStateUpdate:
	"""Changes to apply to ``state`` after one learner message; unset fields stay as they are."""
	update = EmotionalStateUpdate()
	if analysis.response_time > SLOW_RESPONSE_MS and analysis.sentiment < 0:
		update.frustration_level = min(state.frustration_level + FRUSTRATION_STEP_UP, 1.0)
	elif analysis.sentiment > RELIEF_SENTIMENT_ABOVE:
		update.frustration_level = max(state.frustration_level - FRUSTRATION_STEP_DOWN, 0.0)

	if analysis.sentiment > SUCCESS_SENTIMENT_ABOVE:
		update.confidence = min(state.confidence + CONFIDENCE_STEP_UP, 1.0)
		update.recent_successes = state.recent_successes + 1
	return update


def apply_emotional_update(state: EmotionalState, update: EmotionalStateUpdate) -> EmotionalState:
	changes = update.model_dump(exclude_none=True)
	return state.model_copy(update=changes)
