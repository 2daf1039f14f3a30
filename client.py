"""
HTTP client for the Provision Store Billing API.
"""

import logging
from typing import Any, Dict, Optional

import requests

from cart import Cart

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        message = detail.get("message", detail) if isinstance(detail, dict) else detail
        super().__init__(f"{status_code}: {message}")


class StoreClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000/api",
        username: Optional[str] = None,
        password: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout_seconds: int = 10,
    ):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout_seconds = timeout_seconds
        if username is not None:
            self.login(username, password or "")

    def login(self, username: str, password: str) -> None:
        self.session.auth = (username, password)

    def logout(self) -> None:
        self.session.auth = None

    def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        url = f"{self.base_url}{endpoint}"
        resp = self.session.request(method, url, timeout=self.timeout_seconds, **kwargs)
        if not resp.ok:
            try:
                detail = resp.json().get("detail", resp.text)
            except ValueError:
                detail = resp.text
            logger.warning("%s %s failed: %s", method, endpoint, detail)
            raise ApiError(resp.status_code, detail)
        return resp.json()

    # ----- Auth -----

    def register(self, username: str, full_name: str, password: str, role: str = "cashier") -> Dict[str, Any]:
        user = self._request("POST", "/auth/register", json={
            "username": username, "full_name": full_name, "password": password, "role": role,
        })
        self.login(username, password)
        return user

    def me(self) -> Dict[str, Any]:
        return self._request("GET", "/auth/me")

    # ----- Products -----

    def list_products(self, **params) -> Dict[str, Any]:
        return self._request("GET", "/products", params=params)

    def get_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/products/{product_id}")

    def create_product(self, product: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/products", json=product)

    def update_product(self, product_id: str, product: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("PUT", f"/products/{product_id}", json=product)

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/products/{product_id}")

    def categories(self) -> Dict[str, Any]:
        return self._request("GET", "/products/categories")

    # ----- Bills -----

    def list_bills(self, **params) -> Dict[str, Any]:
        return self._request("GET", "/bills", params=params)

    def create_bill(self, bill: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/bills", json=bill)

    def get_bill(self, bill_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/bills/{bill_id}")

    def update_bill_status(self, bill_id: str, status: str) -> Dict[str, Any]:
        return self._request("PUT", f"/bills/{bill_id}/status", json={"status": status})

    def dashboard(self) -> Dict[str, Any]:
        return self._request("GET", "/bills/stats/dashboard")

    def checkout(self, cart: Cart, customer_name: Optional[str] = None, payment_method: str = "cash", notes: Optional[str] = None) -> Dict[str, Any]:
        """Turn the cart into a bill. The cart is cleared only when the bill is created."""
        request = cart.to_bill_request(customer_name=customer_name, payment_method=payment_method, notes=notes)
        bill = self.create_bill(request.model_dump(exclude_none=True))
        logger.info("Bill %s generated, total %.2f", bill["bill_number"], bill["total_amount"])
        cart.clear()
        return bill

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health")
