"""
Activations: leased virtual numbers waiting for a verification SMS.

The upstream gateway answers status queries with a single plaintext line.
``parse_status_response`` maps that line onto waiting/completed/cancelled over
a closed set of literal prefixes; anything it does not recognise is treated as
still waiting, never as completed or cancelled.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from config.settings import settings
from core.entities.activation import Activation, CANCELLED, COMPLETED, WAITING
from core.entities.transaction import PURCHASE
from core.errors import (
    ActivationClosedError,
    ActivationNotFoundError,
    GatewayError,
    PurchaseValidationError,
    UserNotFoundError,
)
from core.repositories.activation_repository import ActivationRepository
from core.repositories.user_repository import UserRepository
from core.services.sms_gateway import SmsGateway
from core.use_cases.ledger_use_cases import apply_transaction
from core.use_cases.validation import validate_purchase_request

logger = logging.getLogger(__name__)

STATUS_OK = "STATUS_OK"
FULL_SMS = "FULL_SMS"
STATUS_WAIT_CODE = "STATUS_WAIT_CODE"
STATUS_CANCEL = "STATUS_CANCEL"
ACCESS_NUMBER = "ACCESS_NUMBER"


@dataclass(frozen=True)
class StatusUpdate:
    status: str
    sms_code: Optional[str] = None
    sms_text: Optional[str] = None


def _field(parts, index: int) -> Optional[str]:
    if len(parts) > index and parts[index]:
        return parts[index]
    return None


def parse_status_response(line: str) -> StatusUpdate:
    data = (line or "").rstrip()

    if data.startswith(STATUS_OK):
        parts = data.split(":")
        return StatusUpdate(COMPLETED, sms_code=_field(parts, 1))
    if data.startswith(FULL_SMS):
        # the message text itself may contain ':'
        parts = data.split(":", 2)
        return StatusUpdate(COMPLETED, sms_code=_field(parts, 1), sms_text=_field(parts, 2))
    if data == STATUS_WAIT_CODE:
        return StatusUpdate(WAITING)
    if data == STATUS_CANCEL:
        return StatusUpdate(CANCELLED)
    return StatusUpdate(WAITING)


def parse_number_response(line: str) -> Tuple[str, str]:
    """``ACCESS_NUMBER:<activation id>:<phone>`` -> (activation id, phone)."""
    data = (line or "").strip()
    parts = data.split(":")
    if data.startswith(ACCESS_NUMBER) and len(parts) >= 3 and parts[1] and parts[2]:
        return parts[1], parts[2]
    raise GatewayError(data or "Empty response from SMS gateway")


def _get_owned(repo: ActivationRepository, user_id: str, activation_id: str) -> Activation:
    activation = repo.get_activation(activation_id, user_id)
    if activation is None:
        raise ActivationNotFoundError(f"Activation {activation_id} not found")
    return activation


def check_activation_status(
    repo: ActivationRepository,
    gateway: SmsGateway,
    user_id: str,
    activation_id: str,
) -> Activation:
    activation = _get_owned(repo, user_id, activation_id)
    if activation.is_terminal:
        return activation

    raw = gateway.get_status(activation_id)
    logger.info("Status response for activation %s: %s", activation_id, raw)
    update = parse_status_response(raw)
    return repo.update_status(
        activation_id,
        user_id,
        update.status,
        sms_code=update.sms_code,
        sms_text=update.sms_text,
    )


def cancel_activation(
    repo: ActivationRepository,
    gateway: SmsGateway,
    user_id: str,
    activation_id: str,
) -> Activation:
    activation = _get_owned(repo, user_id, activation_id)
    if activation.status == CANCELLED:
        return activation
    if activation.status == COMPLETED:
        raise ActivationClosedError(f"Activation {activation_id} is already completed")

    raw = gateway.cancel(activation_id)
    # ответ шлюза только логируем, запись отменяем в любом случае
    logger.info("Cancel response for activation %s: %s", activation_id, raw)
    return repo.update_status(activation_id, user_id, CANCELLED)


def mark_activation_ready(gateway: SmsGateway, activation_id: str) -> str:
    raw = gateway.set_ready(activation_id)
    logger.info("Set ready response for activation %s: %s", activation_id, raw)
    return raw


def purchase_activation(
    user_repo: UserRepository,
    activation_repo: ActivationRepository,
    gateway: SmsGateway,
    user_id: str,
    service: str,
    country: str,
    operator: Optional[str] = None,
    price: Optional[float] = None,
    now: Optional[datetime] = None,
) -> Activation:
    if price is None:
        price = settings.ACTIVATION_PRICE
    user = user_repo.get_by_id(user_id)
    if user is None:
        raise UserNotFoundError("User not found")

    check = validate_purchase_request(
        user_id,
        f"{service}:{country}",
        user.balance,
        price,
        {"service": service, "country": country, "operator": operator},
    )
    if not check.is_valid:
        raise PurchaseValidationError(check.errors)
    for warning in check.warnings:
        logger.warning("Purchase by user %s: %s", user_id, warning)

    raw = gateway.buy_number(service, country, operator)
    logger.info("Buy number response: %s", raw)
    activation_id, phone_number = parse_number_response(raw)

    try:
        apply_transaction(
            user_repo,
            user_id,
            PURCHASE,
            -price,
            f"SMS number for {service} ({country})",
            metadata={"activation_id": activation_id},
        )
    except Exception:
        # списать не удалось, номер у шлюза освобождаем
        logger.exception("Charge for activation %s failed, releasing the number", activation_id)
        try:
            raw_cancel = gateway.cancel(activation_id)
            logger.info("Cancel response for activation %s: %s", activation_id, raw_cancel)
        except GatewayError:
            logger.exception("Could not release activation %s", activation_id)
        raise

    created = now or datetime.now(timezone.utc)
    return activation_repo.create_activation(Activation(
        activation_id=activation_id,
        user_id=user_id,
        status=WAITING,
        phone_number=phone_number,
        service=service,
        country=country,
        operator=operator,
        price=price,
        created_at=created.isoformat(),
        expires_at=(created + timedelta(minutes=settings.ACTIVATION_TTL_MINUTES)).isoformat(),
    ))
