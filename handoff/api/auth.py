"""
Authentication - JWT access tokens carried as a bearer header or a session cookie
"""
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, Request, Response
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import jwt, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from handoff.api.deps import get_app_settings
from handoff.config import Settings
from handoff.database import get_db
from handoff.errors import AuthError, ForbiddenError, NotFoundError, ValidationError
from handoff.models.client import Client
from handoff.models.user import User, UserRole
from handoff.utils.helpers import utcnow
from handoff.utils.validators import require_text

logger = logging.getLogger(__name__)

router = APIRouter()

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


# ─── Schemas ───

class Token(BaseModel):
    access_token: str
    token_type: str


class UserCreate(BaseModel):
    email: str
    full_name: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    role: str

    class Config:
        from_attributes = True


# ─── Password / token helpers ───

def verify_password(plain_password: str, hashed_password: Optional[str]) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(settings: Settings, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def issue_session(response: Response, user: User, settings: Settings) -> str:
    """The one place a session is handed out: token plus HTTP-only cookie"""
    token = create_access_token(settings, data={"sub": user.email})
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info(f"Session issued for user {user.id}")
    return token


async def user_from_token(db: AsyncSession, settings: Settings, token: Optional[str]) -> User:
    if not token:
        raise AuthError("Not authenticated")
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        email: Optional[str] = payload.get("sub")
    except JWTError:
        raise AuthError("Could not validate credentials")
    if email is None:
        raise AuthError("Could not validate credentials")

    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise AuthError("Could not validate credentials")
    return user


async def get_current_user(
    request: Request,
    token: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> User:
    """Bearer header first, session cookie as fallback"""
    if not token:
        token = request.cookies.get(settings.SESSION_COOKIE_NAME)
    return await user_from_token(db, settings, token)


async def find_client_id(db: AsyncSession, user: User) -> Optional[str]:
    result = await db.execute(select(Client.id).where(Client.user_id == user.id).limit(1))
    return result.scalar_one_or_none()


async def client_id_for(db: AsyncSession, user: User, client_id: Optional[str] = None) -> str:
    """The client company acting through this user, unless a designer names one"""
    own = await find_client_id(db, user)
    if not client_id:
        if own is None:
            raise ValidationError("Client ID is required")
        return own

    if await db.get(Client, client_id) is None:
        raise NotFoundError("Client not found")
    if user.is_client and client_id != own:
        raise ForbiddenError("Client users can only act for their own company")
    return client_id


# ─── Routes ───

@router.post("/login", response_model=Token)
async def login(
    response: Response,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Login endpoint"""
    result = await db.execute(select(User).where(User.email == form_data.username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(form_data.password, user.hashed_password):
        raise AuthError("Incorrect email or password")

    token = issue_session(response, user, settings)
    return {"access_token": token, "token_type": "bearer"}


@router.post("/login-as-designer", response_model=Token)
async def login_as_designer(
    response: Response,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    """Demo shortcut: open a session for the configured designer account"""
    if not settings.DEMO_DESIGNER_ID:
        raise ValidationError("DEMO_DESIGNER_ID is not configured")

    user = await db.get(User, settings.DEMO_DESIGNER_ID)
    if user is None:
        raise NotFoundError("Designer account not found")

    token = issue_session(response, user, settings)
    return {"access_token": token, "token_type": "bearer"}


@router.post("/register", response_model=UserResponse)
async def register(user_data: UserCreate, db: AsyncSession = Depends(get_db)):
    """Register a client user; designer accounts are provisioned by seeding"""
    email = require_text(user_data.email, "Email").lower()
    require_text(user_data.password, "Password")

    result = await db.execute(select(User).where(User.email == email))
    if result.scalar_one_or_none():
        raise ValidationError("Email already registered")

    user = User(
        email=email,
        full_name=user_data.full_name,
        role=UserRole.CLIENT.value,
        hashed_password=get_password_hash(user_data.password),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info(f"Registered {user.role} {user.id}")
    return user


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user


@router.post("/logout")
async def logout(response: Response, settings: Settings = Depends(get_app_settings)):
    response.delete_cookie(settings.SESSION_COOKIE_NAME)
    return {"status": "logged_out"}
