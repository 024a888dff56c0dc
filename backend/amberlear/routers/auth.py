from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import uuid

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel

from ..settings import settings
from sqlalchemy.orm import Session
from ..db import get_db
from ..models import AuthUser, AuthSession, LearningProfile
from ..progress_tracker import ProgressTracker

router = APIRouter(prefix="/auth", tags=["auth"])

logger = logging.getLogger(__name__)
logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class Token(BaseModel):
	access_token: str
	token_type: str = "bearer"


class User(BaseModel):
	username: str
	name: Optional[str] = None


class RegisterRequest(BaseModel):
	email: str
	name: str
	password: str


class RegisterResponse(BaseModel):
	token: str
	user: User


def _bcrypt_safe(password: str) -> str:
	# bcrypt only looks at the first 72 bytes
	password_bytes = password.encode('utf-8')
	if len(password_bytes) > 72:
		password_bytes = password_bytes[:72]
	return password_bytes.decode('utf-8', errors='ignore')


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(_bcrypt_safe(plain_password), hashed_password)


def authenticate_user(db: Session, username: str, password: str) -> Optional[User]:
	user_row = db.get(AuthUser, username)
	if user_row and verify_password(password, user_row.password_hash):
		return User(username=user_row.username, name=user_row.name)
	return None


def _resolve_expiry(expires_delta: Optional[timedelta]) -> datetime:
	delta = expires_delta
	if delta is None:
		minutes = settings.access_token_expire_minutes
		delta = timedelta(minutes=minutes) if minutes > 0 else timedelta(days=7)
	now = datetime.now(timezone.utc)
	try:
		return now + delta
	except OverflowError:
		return datetime.max.replace(tzinfo=timezone.utc)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
	to_encode = data.copy()
	to_encode.update({"exp": _resolve_expiry(expires_delta)})
	return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def _open_session(db: Session, username: str) -> str:
	# New session id (jti) persisted server-side so tokens can be revoked
	session_id = uuid.uuid4().hex
	db.merge(AuthSession(session_id=session_id, username=username))
	db.commit()
	return create_access_token({"sub": username, "jti": session_id})


@router.post("/token", response_model=Token)
async def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
	user = authenticate_user(db, form_data.username.strip().lower(), form_data.password)
	if not user:
		raise HTTPException(status_code=401, detail="Invalid credentials")
	return Token(access_token=_open_session(db, user.username))


def get_current_user(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
	credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
	try:
		payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
		username: str | None = payload.get("sub")
		jti: str | None = payload.get("jti")
		if username is None or jti is None:
			raise credentials_exception
	except JWTError:
		raise credentials_exception
	row = db.get(AuthSession, jti)
	if not row or row.username != username:
		raise credentials_exception
	row.last_activity_at = datetime.utcnow()
	db.add(row)
	db.commit()
	user_row = db.get(AuthUser, username)
	return User(username=username, name=user_row.name if user_row else None)


@router.get("/me", response_model=User)
async def me(user: User = Depends(get_current_user)):
	return user


@router.post("/register", status_code=201, response_model=RegisterResponse)
async def register(req: RegisterRequest, db: Session = Depends(get_db)):
	email = (req.email or "").strip().lower()
	name = (req.name or "").strip()
	password = req.password or ""
	if not email or not password:
		raise HTTPException(status_code=400, detail="email and password are required")
	if "@" not in email or len(email) > 256:
		raise HTTPException(status_code=400, detail="email is not valid")
	if db.get(AuthUser, email) is not None:
		raise HTTPException(status_code=400, detail="User already exists")

	db.add(AuthUser(username=email, name=name or None, password_hash=pwd_context.hash(_bcrypt_safe(password))))
	db.add(LearningProfile(username=email))
	db.commit()
	# Every account starts with an empty progress graph
	ProgressTracker(db).create_graph(email)
	logger.info("registered %s", email)

	return RegisterResponse(token=_open_session(db, email), user=User(username=email, name=name or None))
