import pytest

from amberlear.adaptive_engine import (
    MessageAnalysis,
    analyze_user_state,
    apply_emotional_update,
    determine_teaching_approach,
    update_emotional_state,
)
from amberlear.profiles import CognitivePreferences, EmotionalState, Profile, VoiceSettings


def make_profile(visual=0.5, step=0.5, frustration=0.0, confidence=0.5, voice=None):
    return Profile(
        user_id="ada@example.com",
        cognitive_preferences=CognitivePreferences(visual_vs_verbal=visual, step_by_step_vs_conceptual=step),
        emotional_state=EmotionalState(frustration_level=frustration, confidence=confidence),
        voice_settings=voice or VoiceSettings(warmth=0.6, speed=1.2, stability=0.4),
    )


def test_neutral_profile_gets_no_adaptations_and_its_own_voice():
    state = analyze_user_state(make_profile())
    assert state.adaptations == []
    assert state.recommended_approach == "balanced"
    assert state.voice_parameters.model_dump() == {"stability": 0.4, "warmth": 0.6, "speed": 1.2}


def test_adaptations_fire_just_above_their_thresholds():
    assert analyze_user_state(make_profile(visual=0.6)).adaptations == []
    assert analyze_user_state(make_profile(visual=0.61)).adaptations == ["visual-mode"]
    assert analyze_user_state(make_profile(step=0.65)).adaptations == ["step-by-step"]
    assert analyze_user_state(make_profile(confidence=0.4)).adaptations == []
    assert analyze_user_state(make_profile(confidence=0.39)).adaptations == ["confidence-building"]


def test_frustrated_learner_gets_slower_calmer_voice():
    calm = analyze_user_state(make_profile(frustration=0.5))
    assert "slower-pace" not in calm.adaptations

    state = analyze_user_state(make_profile(frustration=0.51))
    assert state.adaptations == ["slower-pace", "more-encouragement"]
    assert state.voice_parameters.stability == 0.8
    assert state.voice_parameters.speed == 0.9
    assert state.voice_parameters.warmth == 0.6


@pytest.mark.parametrize(
    "step, approach",
    [(0.71, "detailed-breakdown"), (0.7, "balanced"), (0.3, "balanced"), (0.29, "conceptual-overview")],
)
def test_teaching_approach(step, approach):
    assert determine_teaching_approach(CognitivePreferences(step_by_step_vs_conceptual=step)) == approach


def test_slow_negative_message_raises_frustration():
    state = EmotionalState(frustration_level=0.3, confidence=0.5)
    update = update_emotional_state(state, MessageAnalysis(sentiment=-0.2, response_time=61000))
    assert update.frustration_level == pytest.approx(0.4)
    assert update.confidence is None
    assert update.recent_successes is None

    capped = update_emotional_state(EmotionalState(frustration_level=0.95), MessageAnalysis(sentiment=-1, response_time=90000))
    assert capped.frustration_level == 1.0


def test_fast_negative_message_changes_nothing():
    update = update_emotional_state(EmotionalState(frustration_level=0.3), MessageAnalysis(sentiment=-0.5, response_time=60000))
    assert update.model_dump(exclude_none=True) == {}


def test_positive_message_relieves_frustration_and_builds_confidence():
    state = EmotionalState(frustration_level=0.1, confidence=0.98, recent_successes=2)
    update = update_emotional_state(state, MessageAnalysis(sentiment=0.8))
    assert update.frustration_level == 0.0
    assert update.confidence == 1.0
    assert update.recent_successes == 3

    mild = update_emotional_state(EmotionalState(frustration_level=0.5, confidence=0.5), MessageAnalysis(sentiment=0.6))
    assert mild.frustration_level == pytest.approx(0.35)
    assert mild.confidence is None

    new_state = apply_emotional_update(state, update)
    assert new_state.recent_successes == 3
    assert new_state.drop_off_points == []


def test_adaptation_and_emotional_state_endpoints(client, register):
    headers = register()
    client.put("/profile/cognitive", headers=headers, json={"visualVsVerbal": 0.9, "stepByStepVsConceptual": 0.8})

    response = client.get("/profile/adaptation", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["recommendedApproach"] == "detailed-breakdown"
    assert data["adaptations"] == ["visual-mode", "step-by-step"]

    response = client.post("/profile/emotional-state", headers=headers, json={"sentiment": 0.9, "complexity": 0.4, "responseTime": 1200})
    assert response.status_code == 200
    body = response.json()
    assert body["updates"]["frustrationLevel"] == 0.0
    assert body["updates"]["confidence"] == pytest.approx(0.55)
    assert body["updates"]["recentSuccesses"] == 1
    assert client.get("/profile", headers=headers).json()["emotionalState"]["recentSuccesses"] == 1

    assert client.post("/profile/emotional-state", headers=headers, json={"sentiment": 3}).status_code == 422
