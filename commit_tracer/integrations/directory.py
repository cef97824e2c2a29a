"""HiBob employee directory integration.

This module provides a client for the HiBob REST API. The directory is only
ever read in bulk: one search call returns the whole roster, and the
department and title ids it contains are resolved through the company
named-list catalogs.
"""

from __future__ import annotations

import os
from typing import Any

import requests

from ..config.config_schema import DEFAULT_HIBOB_URL
from ..tracer_logging import get_logger
from .base import IntegrationClient
from .models import EmployeeRecord, normalize_email_key

logger = get_logger(__name__)

TITLE_LIST = "title"
DEPARTMENT_LIST = "department"


def _as_str(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_opt_str(value: Any) -> str | None:
    text = _as_str(value)
    return text or None


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


class DirectoryClient(IntegrationClient):
    """Client for the HiBob people and named-list endpoints.

    The client holds no cache; :class:`DirectoryCache` decides when to call
    :meth:`fetch_all`.
    """

    SEARCH_ENDPOINT = "/people/search"
    NAMED_LIST_ENDPOINT = "/company/named-lists/{list_type}"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        max_retries: int = 3,
        requests_per_minute: int = 60,
    ):
        """Initialize the directory client.

        Args:
            token: HiBob service token (defaults to HIBOB_API_TOKEN env var)
            base_url: API root (defaults to HIBOB_API_URL env var, then the
                public HiBob endpoint)
            max_retries: Maximum retry attempts per request
            requests_per_minute: Client-side rate limit
        """
        token = token or os.environ.get("HIBOB_API_TOKEN", "")
        if not token:
            raise ValueError(
                "HiBob token required. Set HIBOB_API_TOKEN environment variable "
                "or pass token parameter."
            )
        base_url = base_url or os.environ.get("HIBOB_API_URL", "") or DEFAULT_HIBOB_URL

        super().__init__(
            api_key=token,
            base_url=base_url,
            max_retries=max_retries,
            requests_per_minute=requests_per_minute,
        )
        self._session.headers.update(
            {
                "authorization": f"Basic {token}",
                "accept": "application/json",
            }
        )

    @property
    def service_name(self) -> str:
        return "hibob"

    # ------------------------------------------------------------------
    # Catalogs
    # ------------------------------------------------------------------

    def fetch_named_list(self, list_type: str) -> dict[str, str]:
        """Fetch an id -> name catalog.

        Failures are logged and produce an empty mapping so that enrichment
        degrades to the raw ids instead of failing the whole fetch.
        """
        endpoint = self.NAMED_LIST_ENDPOINT.format(list_type=list_type)
        logger.debug(f"Fetching {list_type} mappings from {self.base_url}{endpoint}")
        try:
            data = self._request("GET", endpoint, params={"includeArchived": "false"})
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Error fetching {list_type} mappings: {e}")
            return {}

        values = _as_dict(data).get("values")
        if not isinstance(values, list):
            return {}

        mappings: dict[str, str] = {}
        for item in values:
            item = _as_dict(item)
            item_id = _as_str(item.get("id"))
            if item_id:
                mappings[item_id] = _as_str(item.get("name"))
        return mappings

    def fetch_title_mappings(self) -> dict[str, str]:
        return self.fetch_named_list(TITLE_LIST)

    def fetch_department_mappings(self) -> dict[str, str]:
        return self.fetch_named_list(DEPARTMENT_LIST)

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def fetch_all_employees(self) -> list[dict[str, Any]]:
        """Fetch the raw roster in a single search call.

        Raises:
            requests.RequestException: If the request fails
            ValueError: If the payload is not the expected shape
        """
        logger.debug("Fetching all employees from HiBob API")
        data = self._request("POST", self.SEARCH_ENDPOINT, json_body={"showInactive": False})
        if not isinstance(data, dict) or not isinstance(data.get("employees", []), list):
            raise ValueError("Unexpected people search response")
        employees = [e for e in data.get("employees", []) if isinstance(e, dict)]
        logger.debug(f"Fetched {len(employees)} employees from HiBob API")
        return employees

    def _parse_employee(
        self,
        employee: dict[str, Any],
        titles: dict[str, str],
        departments: dict[str, str],
    ) -> EmployeeRecord | None:
        """Build an EmployeeRecord, or None for entries without an email."""
        email = _as_str(employee.get("email")).strip()
        if not email:
            return None

        work = _as_dict(employee.get("work"))
        reports_to = _as_dict(work.get("reportsTo"))

        department_id = _as_opt_str(work.get("department"))
        title_id = _as_opt_str(work.get("title"))

        team = departments.get(department_id, department_id) if department_id else ""
        title = titles.get(title_id, title_id) if title_id else ""

        return EmployeeRecord(
            email=email,
            display_name=_as_str(employee.get("displayName")),
            team=team,
            title=title,
            manager=_as_str(reports_to.get("displayName")),
            department_id=department_id,
            title_id=title_id,
            site_id=_as_opt_str(work.get("siteId")),
            team_id=_as_opt_str(work.get("teamId")),
        )

    def fetch_all(self) -> dict[str, EmployeeRecord]:
        """Fetch every active employee with resolved team and title names.

        Returns:
            Records keyed by normalized email. Empty when the roster call or
            its parsing failed; callers must read that as a failed fetch.
        """
        logger.debug("Fetching all employees with enriched data")
        titles = self.fetch_title_mappings()
        departments = self.fetch_department_mappings()
        logger.debug(f"Fetched {len(titles)} titles and {len(departments)} departments")

        try:
            employees = self.fetch_all_employees()
        except (requests.RequestException, ValueError) as e:
            logger.warning(f"Error fetching employees: {e}")
            return {}

        records: dict[str, EmployeeRecord] = {}
        for employee in employees:
            record = self._parse_employee(employee, titles, departments)
            if record is not None:
                records[normalize_email_key(record.email)] = record

        logger.info(f"Fetched {len(records)} employees from HiBob")
        return records
