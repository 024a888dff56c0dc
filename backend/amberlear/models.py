from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Float, Text, Boolean
from .db import Base


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username (the account email)
	username = Column(String(256), primary_key=True, index=True)
	name = Column(String(256), nullable=True)
	password_hash = Column(String(256), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	# JWT jti
	session_id = Column(String(64), primary_key=True)
	username = Column(String(256), index=True, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class LearningProfile(Base):
	__tablename__ = "learning_profiles"
	username = Column(String(256), primary_key=True)
	education_level = Column(String(64), nullable=True)
	subjects_json = Column(Text, nullable=False, default="[]")
	goals_json = Column(Text, nullable=False, default="[]")
	cognitive_preferences_json = Column(Text, nullable=True)
	emotional_state_json = Column(Text, nullable=True)
	voice_settings_json = Column(Text, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class ProgressGraph(Base):
	__tablename__ = "progress_graphs"
	user_id = Column(String(256), primary_key=True)
	nodes_json = Column(Text, nullable=False, default="[]")
	edges_json = Column(Text, nullable=False, default="[]")
	# Bumped on every UPDATE; a stale version makes the flush raise StaleDataError
	version = Column(Integer, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

	__mapper_args__ = {"version_id_col": version}


class LearningMaterial(Base):
	__tablename__ = "learning_materials"
	id = Column(String(64), primary_key=True)
	username = Column(String(256), index=True, nullable=False)
	title = Column(String(512), nullable=False)
	type = Column(String(32), nullable=False, default="document")
	category = Column(String(32), nullable=False, default="study_material")
	subject = Column(String(128), nullable=True)
	topics_json = Column(Text, nullable=False, default="[]")
	text = Column(Text, nullable=True)
	analyzed = Column(Boolean, nullable=False, default=False)
	analysis_json = Column(Text, nullable=True)
	estimated_time = Column(Integer, nullable=True)
	difficulty_level = Column(String(16), nullable=True)
	quality_score = Column(Float, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class Quiz(Base):
	__tablename__ = "quizzes"
	id = Column(String(64), primary_key=True)
	username = Column(String(256), index=True, nullable=False)
	material_id = Column(String(64), index=True, nullable=True)
	title = Column(String(512), nullable=False)
	subject = Column(String(128), nullable=False)
	topics_json = Column(Text, nullable=False, default="[]")
	questions_json = Column(Text, nullable=False, default="[]")
	settings_json = Column(Text, nullable=True)
	attempts_json = Column(Text, nullable=False, default="[]")
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
