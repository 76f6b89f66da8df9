"""
HTTP expense ledger client.

Talks JSON to a remote bookkeeping service:
- GET    /api/expenses?status=paid&start=YYYY-MM-DD&end=YYYY-MM-DD
- GET    /api/expenses/{id}
- POST   /api/expenses
- DELETE /api/expenses/{id}

Responses wrap their payload in {"data": ...}.
"""

import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .base import Expense, ExpenseDraft, ExpenseLedger, ExpenseStatus

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base exception for expense ledger errors."""

    pass


class LedgerAPIError(LedgerError):
    """Ledger service returned an error response."""

    def __init__(self, status_code: int, message: str, response_body: str | None = None):
        self.status_code = status_code
        self.message = message
        self.response_body = response_body
        super().__init__(f"Ledger API error {status_code}: {message}")


class LedgerConnectionError(LedgerError):
    """Failed to reach the ledger service."""

    pass


class HttpExpenseLedger(ExpenseLedger):
    """
    Client for a remote expense ledger.

    Features:
    - Bearer token auth
    - Automatic retry with backoff on 429/5xx
    """

    DEFAULT_TIMEOUT = 30

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
    ):
        """
        Initialize ledger client.

        Args:
            base_url: Service URL (e.g., "http://localhost:8080")
            token: Bearer token (optional)
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts
            backoff_factor: Backoff factor for retries
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update(
            {
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if token:
            self.session.headers["Authorization"] = f"Bearer {token}"

        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET", "DELETE"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json_data: dict | None = None,
    ) -> requests.Response:
        """Make an API request with error handling."""
        url = f"{self.base_url}{endpoint}"
        logger.debug(f"Ledger request: {method} {url}")

        try:
            response = self.session.request(
                method=method,
                url=url,
                params=params,
                json=json_data,
                timeout=self.timeout,
            )
        except requests.exceptions.ConnectionError as e:
            logger.error(f"Connection error to {url}: {e}")
            raise LedgerConnectionError(f"Failed to connect to ledger at {self.base_url}: {e}") from e
        except requests.exceptions.Timeout as e:
            logger.error(f"Timeout for {url}: {e}")
            raise LedgerConnectionError(f"Request to ledger timed out: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.error(f"Request error for {url}: {e}")
            raise LedgerError(f"Request failed: {e}") from e

        if not response.ok:
            try:
                message = response.json().get("message", response.reason)
            except ValueError:
                message = response.reason

            logger.error(f"Ledger API error {response.status_code}: {message}")
            raise LedgerAPIError(
                status_code=response.status_code,
                message=message,
                response_body=response.text,
            )

        return response

    def list_paid_expenses(self, start: str, end: str) -> list[Expense]:
        response = self._request(
            "GET",
            "/api/expenses",
            params={"status": ExpenseStatus.PAID, "start": start, "end": end},
        )
        items = response.json().get("data", [])
        return [Expense.from_dict(item) for item in items]

    def get_expense(self, expense_id: int) -> Expense | None:
        try:
            response = self._request("GET", f"/api/expenses/{expense_id}")
        except LedgerAPIError as e:
            if e.status_code == 404:
                return None
            raise
        return Expense.from_dict(response.json().get("data", {}))

    def create_expense(self, draft: ExpenseDraft) -> int:
        response = self._request("POST", "/api/expenses", json_data=draft.to_dict())
        data = response.json().get("data", {})
        try:
            expense_id = int(data["id"])
        except (KeyError, TypeError, ValueError) as e:
            raise LedgerError(f"Ledger did not return an expense id: {data!r}") from e

        logger.info(f"Created expense {expense_id}: {draft.vendor_name} {draft.amount}")
        return expense_id

    def delete_expense(self, expense_id: int) -> None:
        try:
            self._request("DELETE", f"/api/expenses/{expense_id}")
        except LedgerAPIError as e:
            if e.status_code != 404:
                raise
            logger.warning(f"Expense {expense_id} not found for deletion")
            return
        logger.info(f"Deleted expense {expense_id}")
