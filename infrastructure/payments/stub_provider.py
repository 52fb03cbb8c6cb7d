from uuid import uuid4
from core.entities.user import User
from core.services.payment_provider import PaymentProvider, PaymentReceipt


class StubPaymentProvider(PaymentProvider):
    """Заглушка платёжного шлюза для пополнения баланса - всегда успех на данную сумму"""
    def charge(self, user: User, amount: float) -> PaymentReceipt:
        return PaymentReceipt(
            success=True,
            amount=round(float(amount), 2),
            tx_ref=f"stub-{uuid4()}",
            message="Stub payment approved",
        )
