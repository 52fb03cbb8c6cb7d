from typing import List


class InsufficientFundsError(ValueError):
    pass


class UserNotFoundError(ValueError):
    pass


class TransactionValidationError(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class PurchaseValidationError(ValueError):
    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class ActivationNotFoundError(ValueError):
    pass


class ActivationClosedError(ValueError):
    """Активация уже в терминальном статусе"""
    pass


class GatewayError(RuntimeError):
    pass


class ExchangeRateUnavailableError(RuntimeError):
    pass
