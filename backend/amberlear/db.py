from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./amberlear.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> None:
	try:
		inspector = inspect(engine)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "progress_graphs" in tables:
		cols = {c["name"] for c in inspector.get_columns("progress_graphs")}
		with engine.begin() as conn:
			if "version" not in cols:
				conn.exec_driver_sql("ALTER TABLE progress_graphs ADD COLUMN version INTEGER DEFAULT 1 NOT NULL")
	if "learning_materials" in tables:
		cols = {c["name"] for c in inspector.get_columns("learning_materials")}
		with engine.begin() as conn:
			if "estimated_time" not in cols:
				conn.exec_driver_sql("ALTER TABLE learning_materials ADD COLUMN estimated_time INTEGER")
			if "difficulty_level" not in cols:
				conn.exec_driver_sql("ALTER TABLE learning_materials ADD COLUMN difficulty_level VARCHAR(16)")
