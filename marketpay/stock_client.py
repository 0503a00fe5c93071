from typing import Protocol

from httpx import Client, HTTPError, HTTPStatusError

from marketpay.logger_config import log


class StockRestorer(Protocol):
    def restore_stock(self, order_id: int) -> None: ...


class StockRestorationError(Exception):
    def __init__(self, order_id: int, message: str):
        super().__init__(message)
        self.order_id = order_id
        self.message = message


class StockClient:
    """
    Client for the inventory service's stock restoration endpoint.
    The endpoint is idempotent per order; retries belong to the inventory side.
    """

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def restore_stock(self, order_id: int) -> None:
        url = f"{self.base_url}/internal/orders/{order_id}/restore-stock"
        log.debug("Requesting stock restoration", order_id=order_id, url=url)

        with Client(timeout=self.timeout) as client:
            try:
                response = client.post(url, headers={"accept": "application/json"})
                response.raise_for_status()
            except HTTPStatusError as e:
                log.warning(
                    "HTTP error from inventory service",
                    order_id=order_id,
                    status_code=e.response.status_code,
                    response=e.response.text[:500],
                )
                raise StockRestorationError(
                    order_id, f"Inventory service returned {e.response.status_code}"
                ) from e
            except HTTPError as e:
                log.error("Inventory service unreachable", order_id=order_id, error=str(e))
                raise StockRestorationError(order_id, "Inventory service unreachable") from e

        log.info("Stock restored", order_id=order_id)
