from datetime import datetime, timezone

import pytest

from core.entities.activation import CANCELLED, COMPLETED, WAITING, Activation
from core.entities.transaction import PURCHASE
from core.errors import (
    ActivationClosedError,
    ActivationNotFoundError,
    GatewayError,
    InsufficientFundsError,
    PurchaseValidationError,
)
from core.use_cases.activation_use_cases import (
    StatusUpdate,
    cancel_activation,
    check_activation_status,
    mark_activation_ready,
    parse_number_response,
    parse_status_response,
    purchase_activation,
)
from fakes import FakeGateway


@pytest.mark.parametrize("line,expected", [
    ("STATUS_OK:482913", StatusUpdate(COMPLETED, "482913", None)),
    ("FULL_SMS:482913:Your code is 482913", StatusUpdate(COMPLETED, "482913", "Your code is 482913")),
    ("FULL_SMS:1234:Code: 1234, valid 10:00", StatusUpdate(COMPLETED, "1234", "Code: 1234, valid 10:00")),
    ("STATUS_WAIT_CODE", StatusUpdate(WAITING)),
    ("STATUS_CANCEL", StatusUpdate(CANCELLED)),
    ("STATUS_WAIT_RETRY:4821", StatusUpdate(WAITING)),
    ("BAD_KEY", StatusUpdate(WAITING)),
    ("", StatusUpdate(WAITING)),
    ("STATUS_OK", StatusUpdate(COMPLETED, None, None)),
    ("STATUS_OK:", StatusUpdate(COMPLETED, None, None)),
    ("STATUS_OK:777\n", StatusUpdate(COMPLETED, "777", None)),
])
def test_parse_status_response(line, expected):
    assert parse_status_response(line) == expected


def test_status_ok_wins_over_later_text():
    update = parse_status_response("STATUS_OK:1:STATUS_CANCEL")
    assert update.status == COMPLETED
    assert update.sms_code == "1"


def test_status_ok_code_is_the_second_field_only():
    assert parse_status_response("STATUS_OK:482913:extra").sms_code == "482913"


def test_cancel_and_wait_require_exact_match():
    assert parse_status_response("STATUS_CANCELLED").status == WAITING
    assert parse_status_response("STATUS_WAIT_CODE:x").status == WAITING


def test_parse_number_response():
    assert parse_number_response("ACCESS_NUMBER:1001:2348012345678") == ("1001", "2348012345678")
    with pytest.raises(GatewayError, match="NO_NUMBERS"):
        parse_number_response("NO_NUMBERS")


def seed_activation(repo, user_id, activation_id="1001", status=WAITING):
    return repo.create_activation(Activation(
        activation_id=activation_id,
        user_id=user_id,
        status=status,
        phone_number="2348012345678",
        service="wa",
        country="19",
        price=0.5,
        created_at="2025-01-01T00:00:00+00:00",
        expires_at="2025-01-01T00:20:00+00:00",
    ))


def test_check_status_stores_code(activation_repo, make_user, gateway):
    user = make_user()
    seed_activation(activation_repo, user.id)
    gateway.responses["status"] = "FULL_SMS:482913:Your code is 482913"

    activation = check_activation_status(activation_repo, gateway, user.id, "1001")

    assert activation.status == COMPLETED
    assert activation.sms_code == "482913"
    assert activation.sms_text == "Your code is 482913"
    assert gateway.calls == [("getStatus", "1001")]


def test_unrecognised_status_keeps_waiting(activation_repo, make_user, gateway):
    user = make_user()
    seed_activation(activation_repo, user.id)
    gateway.responses["status"] = "ERROR_SQL"
    assert check_activation_status(activation_repo, gateway, user.id, "1001").status == WAITING


def test_terminal_activation_is_not_polled(activation_repo, make_user, gateway):
    user = make_user()
    seed_activation(activation_repo, user.id, status=COMPLETED)
    assert check_activation_status(activation_repo, gateway, user.id, "1001").status == COMPLETED
    assert gateway.calls == []


def test_other_users_activation_is_not_found(activation_repo, make_user, gateway):
    owner = make_user()
    stranger = make_user()
    seed_activation(activation_repo, owner.id)
    with pytest.raises(ActivationNotFoundError):
        check_activation_status(activation_repo, gateway, stranger.id, "1001")
    assert gateway.calls == []


def test_cancel_marks_cancelled_whatever_gateway_says(activation_repo, make_user, gateway):
    user = make_user()
    seed_activation(activation_repo, user.id)
    gateway.responses["cancel"] = "EARLY_CANCEL_DENIED"

    assert cancel_activation(activation_repo, gateway, user.id, "1001").status == CANCELLED
    # second cancel is a no-op
    assert cancel_activation(activation_repo, gateway, user.id, "1001").status == CANCELLED
    assert gateway.calls == [("cancel", "1001")]


def test_completed_activation_cannot_be_cancelled(activation_repo, make_user, gateway):
    user = make_user()
    seed_activation(activation_repo, user.id, status=COMPLETED)
    with pytest.raises(ActivationClosedError):
        cancel_activation(activation_repo, gateway, user.id, "1001")
    assert gateway.calls == []


def test_mark_ready_passes_response_through(gateway):
    assert mark_activation_ready(gateway, "1001") == "ACCESS_READY"


def test_purchase_charges_and_records(user_repo, activation_repo, make_user, gateway):
    user = make_user(balance=2)
    created = datetime(2025, 1, 1, tzinfo=timezone.utc)

    activation = purchase_activation(user_repo, activation_repo, gateway, user.id, "wa", "19",
                                     price=0.5, now=created)

    assert activation.activation_id == "1001"
    assert activation.phone_number == "2348012345678"
    assert activation.status == WAITING
    assert activation.expires_at == "2025-01-01T00:20:00+00:00"
    assert user_repo.get_by_id(user.id).balance == pytest.approx(1.5)
    history = user_repo.get_transaction_history(user.id)
    assert [(t.type, t.amount) for t in history] == [(PURCHASE, -0.5)]
    assert history[0].metadata == {"activation_id": "1001"}
    assert activation_repo.get_activation("1001", user.id) == activation


def test_purchase_with_low_balance_never_calls_gateway(user_repo, activation_repo, make_user, gateway):
    user = make_user(balance=5)
    with pytest.raises(PurchaseValidationError) as exc:
        purchase_activation(user_repo, activation_repo, gateway, user.id, "wa", "19", price=10)
    assert "Insufficient balance: $5.00 < $10.00" in exc.value.errors
    assert gateway.calls == []


def test_purchase_without_numbers_leaves_balance(user_repo, activation_repo, make_user, gateway):
    user = make_user(balance=5)
    gateway.responses["number"] = "NO_NUMBERS"
    with pytest.raises(GatewayError):
        purchase_activation(user_repo, activation_repo, gateway, user.id, "wa", "19", price=1)
    assert user_repo.get_by_id(user.id).balance == 5
    assert activation_repo.list_activations(user.id) == []


def test_insufficient_funds_is_a_value_error():
    assert issubclass(InsufficientFundsError, ValueError)


class DrainingGateway(FakeGateway):
    """Another request spends the balance while the number is being bought."""

    def __init__(self, user_repo, user_id, **kwargs):
        super().__init__(**kwargs)
        self.user_repo = user_repo
        self.user_id = user_id

    def buy_number(self, service, country, operator=None):
        self.user_repo.set_balance(self.user_id, 0.1)
        return super().buy_number(service, country, operator)


def test_failed_charge_releases_the_number(user_repo, activation_repo, make_user):
    user = make_user(balance=5)
    gateway = DrainingGateway(user_repo, user.id)

    with pytest.raises(InsufficientFundsError):
        purchase_activation(user_repo, activation_repo, gateway, user.id, "wa", "19", price=1)

    assert gateway.calls == [("getNumber", "wa", "19", None), ("cancel", "1001")]
    assert activation_repo.list_activations(user.id) == []
    assert user_repo.get_transaction_history(user.id) == []


def test_failed_release_keeps_the_charge_error(user_repo, activation_repo, make_user):
    user = make_user(balance=5)
    gateway = DrainingGateway(user_repo, user.id)

    def refuse(activation_id):
        gateway.calls.append(("cancel", activation_id))
        raise GatewayError("connection reset")

    gateway.cancel = refuse

    with pytest.raises(InsufficientFundsError):
        purchase_activation(user_repo, activation_repo, gateway, user.id, "wa", "19", price=1)
    assert gateway.calls[-1] == ("cancel", "1001")
