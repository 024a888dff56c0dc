from __future__ import annotations
import json
import logging
import re
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .errors import AnalysisError, GraphNotFound, MaterialNotFound
from .llm_client import LLMClient
from .models import LearningMaterial
from .progress_tracker import ProgressTracker
from .quiz import QuizQuestion

logger = logging.getLogger(__name__)


class MaterialAnalysis(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	concepts: List[str] = Field(default_factory=list)
	prerequisites: List[str] = Field(default_factory=list)
	difficulty: float = 0.5
	quality_score: float = Field(default=0.7, alias="qualityScore")
	estimated_time: int = Field(default=30, alias="estimatedTime")


def difficulty_level(difficulty: float) -> str:
	if difficulty < 0.4:
		return "beginner"
	if difficulty < 0.7:
		return "intermediate"
	return "advanced"


def build_analysis_prompt(material: LearningMaterial) -> str:
	preview = ""
	if material.text:
		preview = f"Content Preview: {material.text[:1000]}...\n"
	return (
		"Analyze this learning material:\n\n"
		f"Title: {material.title}\n"
		f"Type: {material.type}\n"
		f"Category: {material.category}\n"
		f"{preview}\n"
		"Provide:\n"
		"1. Key concepts covered (list)\n"
		"2. Prerequisites needed (list)\n"
		"3. Difficulty level (0-1 scale)\n"
		"4. Quality score (0-1 scale)\n"
		"5. Estimated study time in minutes\n\n"
		"Respond in JSON format only, with keys: concepts, prerequisites, difficulty, qualityScore, estimatedTime."
	)


def _extract_json(text: str, opener: str = "{", closer: str = "}") -> Any:
	cleaned = re.sub(r"```(?:json)?", "", text).strip()
	try:
		return json.loads(cleaned)
	except ValueError:
		pass
	first = cleaned.find(opener)
	last = cleaned.rfind(closer)
	if first != -1 and last > first:
		try:
			return json.loads(cleaned[first : last + 1])
		except ValueError:
			pass
	raise AnalysisError("LLM did not return valid JSON.")


def parse_analysis(text: str) -> MaterialAnalysis:
	data = _extract_json(text)
	if not isinstance(data, dict):
		raise AnalysisError("LLM analysis must be a JSON object.")
	# Drop nulls so the model defaults apply
	data = {k: v for k, v in data.items() if v is not None}
	try:
		analysis = MaterialAnalysis.model_validate(data)
	except ValueError as err:
		raise AnalysisError(f"LLM analysis has unexpected shape: {err}") from err
	analysis.concepts = [str(c).strip() for c in analysis.concepts if str(c).strip()]
	analysis.prerequisites = [str(p).strip() for p in analysis.prerequisites if str(p).strip()]
	return analysis


QUIZ_MAX_TOKENS = 2000


def build_quiz_prompt(material: LearningMaterial) -> str:
	concepts: List[str] = []
	if material.analysis_json:
		concepts = MaterialAnalysis.model_validate_json(material.analysis_json).concepts
	return (
		"Based on this learning material, generate a quiz:\n\n"
		f"Title: {material.title}\n"
		f"Concepts: {', '.join(concepts)}\n"
		f"Difficulty: {material.difficulty_level or 'unknown'}\n\n"
		"Generate 10 questions covering the key concepts. Mix of:\n"
		"- 6 multiple choice\n"
		"- 2 true/false\n"
		"- 2 short answer\n\n"
		"For each question provide: question, type (multiple_choice, true_false or short_answer), "
		"options (for multiple choice), correctAnswer, a brief explanation and difficulty (0-1).\n\n"
		"Respond in JSON format only as an array of questions."
	)


def parse_quiz_questions(text: str) -> List[QuizQuestion]:
	data = _extract_json(text, "[", "]")
	if isinstance(data, dict) and isinstance(data.get("questions"), list):
		data = data["questions"]
	if not isinstance(data, list) or not data:
		raise AnalysisError("LLM quiz must be a non-empty JSON array of questions.")
	questions = []
	for item in data:
		if not isinstance(item, dict):
			raise AnalysisError("LLM quiz question must be a JSON object.")
		item = {k: v for k, v in item.items() if v is not None and k != "id"}
		try:
			questions.append(QuizQuestion.model_validate(item))
		except ValueError as err:
			raise AnalysisError(f"LLM quiz question has unexpected shape: {err}") from err
	return questions


class MaterialAnalyzer:
	def __init__(self, db: Session, client: LLMClient) -> None:
		self.db = db
		self.client = client

	async def analyze(self, material_id: str, username: Optional[str] = None) -> LearningMaterial:
		"""Run LLM analysis on a material, store it and grow the owner's graph."""
		material = self.db.get(LearningMaterial, material_id)
		if material is None or (username is not None and material.username != username):
			raise MaterialNotFound(material_id)

		try:
			raw = await self.client.generate(build_analysis_prompt(material))
			analysis = parse_analysis(raw)
		except Exception:
			logger.exception("analysis of material %s failed", material_id)
			material.analyzed = False
			self.db.add(material)
			self.db.commit()
			raise

		material.analyzed = True
		material.analysis_json = analysis.model_dump_json(by_alias=True)
		material.estimated_time = analysis.estimated_time
		material.difficulty_level = difficulty_level(analysis.difficulty)
		material.quality_score = analysis.quality_score
		self.db.add(material)
		self.db.commit()

		try:
			ProgressTracker(self.db).add_concept_nodes(material)
		except GraphNotFound:
			# The analysis stands on its own; there is just no graph to seed
			logger.warning("no progress graph for %s; concepts of material %s not added", material.username, material.id)
		return material

	async def generate_quiz(self, material_id: str, username: Optional[str] = None) -> List[QuizQuestion]:
		"""Ask the LLM for quiz questions on a material; nothing is stored."""
		material = self.db.get(LearningMaterial, material_id)
		if material is None or (username is not None and material.username != username):
			raise MaterialNotFound(material_id)
		try:
			raw = await self.client.generate(build_quiz_prompt(material), max_tokens=QUIZ_MAX_TOKENS)
			return parse_quiz_questions(raw)
		except Exception:
			logger.exception("quiz generation for material %s failed", material_id)
			raise
