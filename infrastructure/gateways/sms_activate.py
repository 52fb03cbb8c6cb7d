import logging
from typing import Optional, Dict, Any

import httpx

from config.settings import settings
from core.errors import GatewayError
from core.services.sms_gateway import SmsGateway

logger = logging.getLogger(__name__)


class SmsActivateGateway(SmsGateway):
    """SMS-Activate handler API: GET requests with an ``action`` parameter, plaintext answers."""
    def __init__(self, api_key: str, base_url: str, timeout: float = 15.0,
                 client: Optional[httpx.Client] = None):
        self.api_key = api_key
        self.base_url = base_url
        self.client = client or httpx.Client(timeout=timeout)

    def _call(self, action: str, **params: Any) -> str:
        query: Dict[str, Any] = {"api_key": self.api_key, "action": action}
        query.update({k: v for k, v in params.items() if v is not None})
        try:
            response = self.client.get(self.base_url, params=query)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error("SMS gateway %s request failed: %s", action, e)
            raise GatewayError(f"SMS gateway request failed: {e}") from e
        return response.text.strip()

    def get_status(self, activation_id: str) -> str:
        return self._call("getStatus", id=activation_id)

    def cancel(self, activation_id: str) -> str:
        return self._call("setStatus", status="8", id=activation_id)

    def set_ready(self, activation_id: str) -> str:
        return self._call("setStatus", status="1", id=activation_id)

    def buy_number(self, service: str, country: str, operator: Optional[str] = None) -> str:
        return self._call("getNumber", service=service, country=country, operator=operator)

    def close(self) -> None:
        self.client.close()


def build_sms_gateway() -> SmsActivateGateway:
    return SmsActivateGateway(
        api_key=settings.SMS_ACTIVATE_API_KEY,
        base_url=settings.SMS_ACTIVATE_BASE_URL,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )
