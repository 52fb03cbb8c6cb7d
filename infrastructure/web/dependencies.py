import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, Header, Request, status
from jose import jwt, JWTError

from config.settings import settings
from core.entities.user import User
from core.services.payment_provider import PaymentProvider
from core.services.sms_gateway import SmsGateway
from core.use_cases.currency_use_cases import ExchangeRateCache
from infrastructure.db.sqlite import SQLiteActivationRepository, SQLiteUserRepository
from infrastructure.payments.stub_provider import StubPaymentProvider


def get_db():
    conn = sqlite3.connect(settings.DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()

def get_user_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteUserRepository:
    return SQLiteUserRepository(conn)

def get_activation_repo(conn: sqlite3.Connection = Depends(get_db)) -> SQLiteActivationRepository:
    return SQLiteActivationRepository(conn)

# jwt авторизация
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return encoded_jwt

def get_bearer_token(authorization: Optional[str] = Header(None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return authorization.split(" ", 1)[1]

async def get_current_user(
    token: str = Depends(get_bearer_token),
    repo: SQLiteUserRepository = Depends(get_user_repo),
) -> User:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")
        if not user_id:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = repo.get_by_id(user_id)
    if user is None:
        raise credentials_exception
    return user

async def get_admin_user(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user

# используем любой PaymentProvider, пока что - заглушка
def get_payment_provider() -> PaymentProvider:
    return StubPaymentProvider()

# шлюз и кэш курсов создаются один раз в main.py и лежат в app.state
def get_sms_gateway(request: Request) -> SmsGateway:
    return request.app.state.sms_gateway

def get_rate_cache(request: Request) -> ExchangeRateCache:
    return request.app.state.rate_cache
