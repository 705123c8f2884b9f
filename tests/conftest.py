import httpx
import pytest
from fastapi.testclient import TestClient

from order_total_service.config import Settings
from order_total_service.main import create_app

RATE_SERVICE_URL = "http://rates.test/find_rate"


@pytest.fixture
def sample_order():
    return {
        "order_id": 1,
        "product_id": 2,
        "quantity": 3,
        "subtotal": 100.0,
        "shipping_address": "1 Main St",
        "shipping_zip": "10001",
        "total": 0.0,
    }


@pytest.fixture
def make_client():
    """Builds a TestClient whose rate service is answered by the given handler."""
    def _make(handler):
        settings = Settings(rate_service_url=RATE_SERVICE_URL, rate_service_timeout_seconds=1.0)
        app = create_app(settings, transport=httpx.MockTransport(handler))
        return TestClient(app)
    return _make


@pytest.fixture
def rate_client_for(make_client):
    """Client whose rate service always answers with the given text."""
    def _make(rate_text, status_code=200):
        return make_client(lambda request: httpx.Response(status_code, text=rate_text))
    return _make
