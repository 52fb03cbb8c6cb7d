from typing import Optional, List, Dict, Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from config.settings import settings
from core.entities.user import User
from core.use_cases.ledger_use_cases import audit_all_users, reconcile_all_users, reconcile_user_balance
from infrastructure.db.sqlite import SQLiteUserRepository
from infrastructure.web.dependencies import get_admin_user, get_user_repo


router = APIRouter(prefix="/admin", tags=["admin"])


class FixedUserItem(BaseModel):
    user_id: str
    email: str
    old_balance: float
    new_balance: float

class ReconcileReportResponse(BaseModel):
    total: int
    fixed: int
    correct: int
    errors: int
    fixed_users: List[FixedUserItem]

class ReconcileUserResponse(BaseModel):
    user_id: str
    fixed: Optional[bool] = None
    old_balance: Optional[float] = None
    new_balance: Optional[float] = None
    balance: Optional[float] = None
    error: Optional[str] = None

class AuditItem(BaseModel):
    user_id: str
    email: str
    current_balance: float
    calculated_balance: float
    discrepancy: float
    transaction_count: int
    severity: str
    issues: List[str]
    suspicious_transactions: List[Dict[str, Any]]

@router.post("/reconcile", response_model=ReconcileReportResponse)
def reconcile_everyone(
    admin: User = Depends(get_admin_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    report = reconcile_all_users(repo, delay_seconds=settings.RECONCILE_DELAY_SECONDS)
    return ReconcileReportResponse(
        total=report.total,
        fixed=report.fixed,
        correct=report.correct,
        errors=report.errors,
        fixed_users=[FixedUserItem(**vars(u)) for u in report.fixed_users],
    )

@router.post("/users/{user_id}/reconcile", response_model=ReconcileUserResponse)
def reconcile_one(
    user_id: str,
    admin: User = Depends(get_admin_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    if repo.get_by_id(user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    result = reconcile_user_balance(repo, user_id)
    return ReconcileUserResponse(user_id=user_id, **result.to_dict())

@router.get("/audit", response_model=List[AuditItem])
def audit(
    admin: User = Depends(get_admin_user),
    repo: SQLiteUserRepository = Depends(get_user_repo),
):
    return [
        AuditItem(
            user_id=r.user_id,
            email=r.email,
            current_balance=r.current_balance,
            calculated_balance=r.calculated_balance,
            discrepancy=r.discrepancy,
            transaction_count=r.transaction_count,
            severity=r.severity,
            issues=r.issues,
            suspicious_transactions=r.suspicious_transactions,
        )
        for r in audit_all_users(repo)
    ]
