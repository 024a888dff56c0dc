import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import Base, engine, ensure_schema
from .settings import settings
from .routers import health
from .routers import auth
from .routers import profile
from .routers import progress
from .routers import materials
from .routers import quizzes

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="AMBERLEAR API")
app.add_middleware(
	CORSMiddleware,
	allow_origins=settings.cors_origins,
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)
app.include_router(health.router)
app.include_router(auth.router)
app.include_router(profile.router)
app.include_router(progress.router)
app.include_router(materials.router)
app.include_router(quizzes.router)


@app.get("/info")
def root():
	return {"status": "ok", "llm_configured": bool(settings.anthropic_api_key)}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	ensure_schema()
	logger.info("AMBERLEAR API ready")
