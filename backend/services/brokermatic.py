import logging
from datetime import datetime

import requests

from config import BROKERMATIC_API_KEY, BROKERMATIC_API_URL, BROKERMATIC_TIMEOUT_SECONDS, MOCK_MODE
from services.exceptions import BrokermaticError
from services.mock.brokermatic import mock_brokermatic_client

logger = logging.getLogger(__name__)


class BrokermaticClient:
    """Brokermatic certificate holder API client"""

    def __init__(self, api_key: str, base_url: str = BROKERMATIC_API_URL, timeout: float = BROKERMATIC_TIMEOUT_SECONDS):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"X-API-Key": api_key, "Content-Type": "application/json"})

    def _request(self, method: str, endpoint: str, payload: dict = None) -> dict:
        url = f"{self.base_url}{endpoint}"
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            raise BrokermaticError(f"Brokermatic request failed: {method} {endpoint}: {e}") from e

        if not response.ok:
            try:
                message = response.json().get("message")
            except ValueError:
                message = None
            raise BrokermaticError(message or f"Brokermatic API error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise BrokermaticError(f"Brokermatic returned invalid JSON for {endpoint}") from e

    def get_upload_url(self, file_name: str) -> dict:
        return self._request("POST", "/certificates/upload-url", {"fileName": file_name})

    def parse_certificate(self, storage_key: str, now: datetime) -> dict:
        # Brokermatic parses and evaluates on its own clock; `now` matters only to the mock
        return self._request("POST", "/certificates/parse", {"storageKey": storage_key})

    def submit_requirements(self, requirements: dict) -> dict:
        return self._request("POST", "/compliance/requirements", requirements)

    def create_certificate(self, data: dict) -> dict:
        return self._request("POST", "/certificates", data)

    def check_compliance(self, certificate_id: str, requirements: dict, now: datetime) -> dict:
        return self._request(
            "POST",
            "/compliance/check",
            {"certificateId": certificate_id, "requirements": requirements},
        )


# Lazy client initialization
_client = None


def get_brokermatic_client():
    global _client
    if MOCK_MODE or not BROKERMATIC_API_KEY:
        return mock_brokermatic_client
    if _client is None:
        _client = BrokermaticClient(BROKERMATIC_API_KEY)
        logger.info("Brokermatic client initialized for %s", BROKERMATIC_API_URL)
    return _client
