from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, EmailStr, Field

from config.settings import settings
from core.entities.user import User
from core.errors import ExchangeRateUnavailableError
from core.services.payment_provider import PaymentProvider
from core.use_cases.currency_use_cases import ExchangeRateCache, format_currency, usd_to_ngn
from core.use_cases.ledger_use_cases import check_user_balance_health
from core.use_cases.user_use_cases import register_user, authenticate_user, top_up_balance
from infrastructure.db.sqlite import SQLiteUserRepository
from infrastructure.web.dependencies import (
    create_access_token,
    get_current_user,
    get_payment_provider,
    get_rate_cache,
    get_user_repo,
)


router = APIRouter(prefix="", tags=["users"])

basic_security = HTTPBasic()


# DTO для транзакций
class TransactionItem(BaseModel):
    id: str
    type: str
    amount: float
    description: str
    previous_balance: float
    new_balance: float
    metadata: Optional[Dict[str, Any]] = None
    created_at: str

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)

class UserResponse(BaseModel):
    id: str
    email: EmailStr
    is_admin: bool
    balance: float
    created_at: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"

class TopUpRequest(BaseModel):
    amount: Optional[float] = Field(None, gt=0)  # если не передан, берём дефолтное из settings

class BalanceResponse(BaseModel):
    balance: float
    formatted: str
    balance_ngn: Optional[float] = None
    formatted_ngn: Optional[str] = None
    rate_source: Optional[str] = None

class BalanceHealthResponse(BaseModel):
    current_balance: float
    calculated_balance: float
    discrepancy: float
    transaction_count: int
    last_transaction_at: Optional[str] = None
    is_healthy: bool
    issues: List[str]
    warnings: List[str]

class RateResponse(BaseModel):
    base: str
    quote: str
    rate: float
    source: str

def _user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        email=user.email,
        is_admin=user.is_admin,
        balance=user.balance,
        created_at=user.created_at,
    )

@router.post("/register", response_model=UserResponse, status_code=201)
def register(payload: RegisterRequest, repo: SQLiteUserRepository = Depends(get_user_repo)):
    try:
        user = register_user(repo, email=payload.email, password=payload.password)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _user_response(user)

@router.post("/login", response_model=TokenResponse)
def login(
    credentials: HTTPBasicCredentials = Depends(basic_security),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    user = authenticate_user(repo, email=credentials.username, password=credentials.password)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Basic"},
        )
    token = create_access_token({"sub": user.id})
    return TokenResponse(access_token=token)

@router.get("/me", response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return _user_response(current_user)

@router.post("/topup", response_model=UserResponse)
def topup(
    payload: Optional[TopUpRequest] = None,
    current_user: User = Depends(get_current_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
    provider: PaymentProvider = Depends(get_payment_provider),
):
    amount = payload.amount if payload and payload.amount else settings.TOPUP_DEFAULT_AMOUNT
    try:
        top_up_balance(repo, provider, current_user, amount)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return _user_response(repo.get_by_id(current_user.id))

@router.get("/balance", response_model=BalanceResponse)
def get_balance(
    current_user: User = Depends(get_current_user),
    rates: ExchangeRateCache = Depends(get_rate_cache),
):
    response = BalanceResponse(balance=current_user.balance, formatted=format_currency(current_user.balance, "USD"))
    try:
        rate = rates.get_or_refresh("USD", "NGN")
    except ExchangeRateUnavailableError:
        return response
    response.balance_ngn = usd_to_ngn(current_user.balance, rate.rate)
    response.formatted_ngn = format_currency(response.balance_ngn, "NGN")
    response.rate_source = rate.source
    return response

@router.get("/balance/health", response_model=BalanceHealthResponse)
def get_balance_health(
    current_user: User = Depends(get_current_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    report = check_user_balance_health(repo, current_user.id)
    return BalanceHealthResponse(
        current_balance=report.current_balance,
        calculated_balance=report.calculated_balance,
        discrepancy=report.discrepancy,
        transaction_count=report.transaction_count,
        last_transaction_at=report.last_transaction_at,
        is_healthy=report.is_healthy,
        issues=report.issues,
        warnings=report.warnings,
    )

@router.get("/transactions", response_model=List[TransactionItem])
def get_transactions(
    limit: int = 50,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    limit = max(1, min(100, int(limit)))  # пагинация, не хотим возвращать много
    offset = max(0, int(offset))
    txs = repo.list_transactions(current_user.id, limit=limit, offset=offset)
    return [
        TransactionItem(
            id=tx.id,
            type=tx.type,
            amount=tx.amount,
            description=tx.description,
            previous_balance=tx.previous_balance,
            new_balance=tx.new_balance,
            metadata=tx.metadata,
            created_at=tx.created_at,
        )
        for tx in txs
    ]

@router.get("/rates/{base}/{quote}", response_model=RateResponse)
def get_rate(base: str, quote: str, rates: ExchangeRateCache = Depends(get_rate_cache)):
    try:
        result = rates.get_or_refresh(base, quote)
    except ExchangeRateUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e))
    return RateResponse(base=base.upper(), quote=quote.upper(), rate=result.rate, source=result.source)
