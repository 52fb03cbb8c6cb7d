import os
from dataclasses import dataclass


@dataclass
class Settings:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-secret-change-me")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
    DB_PATH: str = os.getenv("DB_PATH", "./smsglobe.db")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    SMS_ACTIVATE_API_KEY: str = os.getenv("SMS_ACTIVATE_API_KEY", "")
    SMS_ACTIVATE_BASE_URL: str = os.getenv(
        "SMS_ACTIVATE_BASE_URL", "https://api.sms-activate.ae/stubs/handler_api.php"
    )
    GATEWAY_TIMEOUT_SECONDS: float = float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "15"))

    ACTIVATION_PRICE: float = float(os.getenv("ACTIVATION_PRICE", "0.5"))
    ACTIVATION_TTL_MINUTES: int = int(os.getenv("ACTIVATION_TTL_MINUTES", "20"))

    # сверка баланса
    BALANCE_TOLERANCE: float = float(os.getenv("BALANCE_TOLERANCE", "0.01"))
    RECONCILE_DELAY_SECONDS: float = float(os.getenv("RECONCILE_DELAY_SECONDS", "0.1"))

    LARGE_TRANSACTION_THRESHOLD: float = float(os.getenv("LARGE_TRANSACTION_THRESHOLD", "1000"))
    HIGH_VALUE_PURCHASE_THRESHOLD: float = float(os.getenv("HIGH_VALUE_PURCHASE_THRESHOLD", "100"))
    LOW_BALANCE_THRESHOLD: float = float(os.getenv("LOW_BALANCE_THRESHOLD", "1"))

    EXCHANGE_RATE_TTL_SECONDS: int = int(os.getenv("EXCHANGE_RATE_TTL_SECONDS", "600"))
    DEFAULT_USD_TO_NGN_RATE: float = float(os.getenv("DEFAULT_USD_TO_NGN_RATE", "1550"))

    TOPUP_DEFAULT_AMOUNT: float = float(os.getenv("TOPUP_DEFAULT_AMOUNT", "5"))

settings = Settings()
