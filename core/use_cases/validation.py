"""
Validation of ledger records before they are written.

Validators never raise: every problem is accumulated into a ValidationResult so
the caller sees all of them at once. Warnings are advisory and never make a
result invalid.

The entity validators below are built from the same small predicates
(check_identifier, check_number, find_undefined_paths) instead of repeating
the shape checks per entity.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from config.settings import settings
from core.entities.transaction import CREDIT_TYPES, DEBIT_TYPES, TRANSACTION_TYPES
from core.entities.undefined import UNDEFINED


ORDER_STATUSES = ("pending", "processing", "completed", "cancelled", "refunded")
ORDER_CATEGORIES = ("esim", "proxy", "vpn", "rdp", "gift")
ORDER_REQUIRED_FIELDS = ("user_id", "product_id", "product_name", "category", "price", "status")
REQUEST_DETAIL_TEXT_FIELDS = {
    "location": "Location",
    "duration": "Duration",
    "specifications": "Specifications",
    "additional_notes": "Additional notes",
}


@dataclass
class ValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)


def format_amount(value: float) -> str:
    return f"${value:.2f}"


def is_number(value: Any) -> bool:
    # bool is an int subclass but never a valid amount
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def check_identifier(result: ValidationResult, value: Any, label: str) -> bool:
    if not value or not isinstance(value, str):
        result.add_error(f"Invalid {label}")
        return False
    return True


def check_number(
    result: ValidationResult,
    value: Any,
    label: str,
    minimum: Optional[float] = None,
    strictly_positive: bool = False,
) -> bool:
    ok = is_number(value)
    if ok and minimum is not None and value < minimum:
        ok = False
    if ok and strictly_positive and value <= 0:
        ok = False
    if not ok:
        result.add_error(f"Invalid {label}")
    return ok


def find_undefined_paths(obj: Any, path: str = "") -> List[str]:
    """Dotted key paths of every UNDEFINED value inside nested dicts and lists."""
    found: List[str] = []
    if isinstance(obj, dict):
        items = obj.items()
    elif isinstance(obj, (list, tuple)):
        items = enumerate(obj)
    else:
        return found

    for key, value in items:
        current = f"{path}.{key}" if path else str(key)
        if value is UNDEFINED:
            found.append(current)
        elif isinstance(value, (dict, list, tuple)):
            found.extend(find_undefined_paths(value, current))
    return found


def check_sign(result: ValidationResult, type: str, amount: Any) -> None:
    if not is_number(amount) or not isinstance(type, str):
        return
    if type in DEBIT_TYPES and amount >= 0:
        result.add_error(f"{type} amount should be negative")
    elif type in CREDIT_TYPES and amount <= 0:
        result.add_error(f"{type} amount should be positive")


def validate_transaction(
    user_id: Any,
    type: Any,
    amount: Any,
    description: Any,
    balance_after: Any,
    large_amount_threshold: Optional[float] = None,
) -> ValidationResult:
    if large_amount_threshold is None:
        large_amount_threshold = settings.LARGE_TRANSACTION_THRESHOLD
    result = ValidationResult()

    check_identifier(result, user_id, "user ID")
    check_identifier(result, type, "transaction type")
    check_number(result, amount, "amount")
    check_identifier(result, description, "description")
    check_number(result, balance_after, "balance after transaction", minimum=0)

    if not isinstance(type, str) or type not in TRANSACTION_TYPES:
        result.add_error(f"Invalid transaction type: {type}")

    check_sign(result, type, amount)

    if is_number(amount) and abs(amount) > large_amount_threshold:
        result.add_warning("Large transaction amount detected")

    return result


def validate_balance_consistency(
    profile_balance: float,
    calculated_balance: float,
    tolerance: Optional[float] = None,
) -> ValidationResult:
    if tolerance is None:
        tolerance = settings.BALANCE_TOLERANCE
    result = ValidationResult()

    if abs(profile_balance - calculated_balance) > tolerance:
        result.add_error(
            f"Balance discrepancy: Profile shows {format_amount(profile_balance)}, "
            f"calculated {format_amount(calculated_balance)}"
        )

    if profile_balance < 0:
        result.add_error("Negative balance detected")

    if calculated_balance < 0:
        result.add_warning("Calculated balance is negative - possible transaction history issue")

    return result


def validate_purchase_request(
    user_id: Any,
    product_id: Any,
    user_balance: Any,
    product_price: Any,
    request_details: Any = None,
) -> ValidationResult:
    result = ValidationResult()

    check_identifier(result, user_id, "user ID")
    check_identifier(result, product_id, "product ID")
    balance_ok = check_number(result, user_balance, "user balance", minimum=0)
    price_ok = check_number(result, product_price, "product price", strictly_positive=True)

    if is_number(user_balance) and is_number(product_price) and user_balance < product_price:
        result.add_error(
            f"Insufficient balance: {format_amount(user_balance)} < {format_amount(product_price)}"
        )

    if request_details:
        if not isinstance(request_details, dict):
            result.add_error("Invalid request details format")
        else:
            for path in find_undefined_paths(request_details):
                result.add_error(f"Undefined value found at {path}")
            for key, label in REQUEST_DETAIL_TEXT_FIELDS.items():
                value = request_details.get(key)
                if value and not isinstance(value, str):
                    result.add_error(f"{label} must be a string")

    if balance_ok and price_ok:
        if user_balance - product_price < settings.LOW_BALANCE_THRESHOLD:
            result.add_warning("Balance will be very low after purchase")
        if product_price > settings.HIGH_VALUE_PURCHASE_THRESHOLD:
            result.add_warning("High-value purchase detected")

    return result


def validate_product_order(order: Dict[str, Any]) -> ValidationResult:
    result = ValidationResult()

    for name in ORDER_REQUIRED_FIELDS:
        value = order.get(name)
        if not value:
            result.add_error(f"Missing required field: {name}")

    price = order.get("price")
    if price and (not is_number(price) or price <= 0):
        result.add_error("Invalid price")

    status = order.get("status")
    if status and status not in ORDER_STATUSES:
        result.add_error(f"Invalid status: {status}")

    category = order.get("category")
    if category and category not in ORDER_CATEGORIES:
        result.add_warning(f"Unusual category: {category}")

    return result


def clean_record(obj: Any) -> Any:
    """Copy of obj with every UNDEFINED value dropped, safe to serialise."""
    if obj is None or obj is UNDEFINED:
        return None
    if isinstance(obj, dict):
        return {key: clean_record(value) for key, value in obj.items() if value is not UNDEFINED}
    if isinstance(obj, (list, tuple)):
        return [clean_record(item) for item in obj if item is not UNDEFINED]
    return obj
