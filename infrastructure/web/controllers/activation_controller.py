from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.entities.activation import Activation
from core.entities.user import User
from core.errors import (
    ActivationClosedError,
    ActivationNotFoundError,
    GatewayError,
    InsufficientFundsError,
    PurchaseValidationError,
)
from core.services.sms_gateway import SmsGateway
from core.use_cases.activation_use_cases import (
    cancel_activation,
    check_activation_status,
    mark_activation_ready,
    purchase_activation,
)
from infrastructure.db.sqlite import SQLiteActivationRepository, SQLiteUserRepository
from infrastructure.web.dependencies import (
    get_activation_repo,
    get_current_user,
    get_sms_gateway,
    get_user_repo,
)


router = APIRouter(prefix="/activations", tags=["activations"])


class BuyNumberRequest(BaseModel):
    service: str = Field(..., min_length=1)
    country: str = Field(..., min_length=1)
    operator: Optional[str] = None

class ActivationResponse(BaseModel):
    activation_id: str
    status: str
    phone_number: str
    service: str
    country: str
    operator: Optional[str] = None
    price: float
    sms_code: Optional[str] = None
    sms_text: Optional[str] = None
    created_at: str
    expires_at: str

class GatewayMessageResponse(BaseModel):
    success: bool
    message: str

def _activation_response(activation: Activation) -> ActivationResponse:
    return ActivationResponse(
        activation_id=activation.activation_id,
        status=activation.status,
        phone_number=activation.phone_number,
        service=activation.service,
        country=activation.country,
        operator=activation.operator,
        price=activation.price,
        sms_code=activation.sms_code,
        sms_text=activation.sms_text,
        created_at=activation.created_at,
        expires_at=activation.expires_at,
    )

@router.post("", response_model=ActivationResponse, status_code=201)
def buy_number(
    payload: BuyNumberRequest,
    current_user: User = Depends(get_current_user),
    users: SQLiteUserRepository = Depends(get_user_repo),
    activations: SQLiteActivationRepository = Depends(get_activation_repo),
    gateway: SmsGateway = Depends(get_sms_gateway),
):
    try:
        activation = purchase_activation(
            users, activations, gateway, current_user.id,
            service=payload.service, country=payload.country, operator=payload.operator,
        )
    except PurchaseValidationError as e:
        raise HTTPException(status_code=400, detail=e.errors)
    except InsufficientFundsError as e:
        raise HTTPException(status_code=402, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _activation_response(activation)

@router.get("", response_model=List[ActivationResponse])
def list_activations(
    limit: int = 50,
    offset: int = 0,
    current_user: User = Depends(get_current_user),
    activations: SQLiteActivationRepository = Depends(get_activation_repo),
):
    limit = max(1, min(100, int(limit)))
    offset = max(0, int(offset))
    return [_activation_response(a) for a in activations.list_activations(current_user.id, limit, offset)]

@router.get("/{activation_id}/status", response_model=ActivationResponse)
def get_status(
    activation_id: str,
    current_user: User = Depends(get_current_user),
    activations: SQLiteActivationRepository = Depends(get_activation_repo),
    gateway: SmsGateway = Depends(get_sms_gateway),
):
    try:
        activation = check_activation_status(activations, gateway, current_user.id, activation_id)
    except ActivationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _activation_response(activation)

@router.post("/{activation_id}/cancel", response_model=ActivationResponse)
def cancel(
    activation_id: str,
    current_user: User = Depends(get_current_user),
    activations: SQLiteActivationRepository = Depends(get_activation_repo),
    gateway: SmsGateway = Depends(get_sms_gateway),
):
    try:
        activation = cancel_activation(activations, gateway, current_user.id, activation_id)
    except ActivationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ActivationClosedError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return _activation_response(activation)

@router.post("/{activation_id}/ready", response_model=GatewayMessageResponse)
def set_ready(
    activation_id: str,
    current_user: User = Depends(get_current_user),
    activations: SQLiteActivationRepository = Depends(get_activation_repo),
    gateway: SmsGateway = Depends(get_sms_gateway),
):
    if activations.get_activation(activation_id, current_user.id) is None:
        raise HTTPException(status_code=404, detail=f"Activation {activation_id} not found")
    try:
        message = mark_activation_ready(gateway, activation_id)
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return GatewayMessageResponse(success=True, message=message)
