# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and shared fixtures for ApiAlchemy tests.
"""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest

from apialchemy import (
    ApiRecord,
    ApiSession,
    ApiSettings,
    ApiType,
    TransportResponse,
    api_field,
    api_record,
    belongs_to,
    clear_registry,
    has_many,
    validation_hook,
)


class FakeTransport:
    """
    In-memory transport.

    Responses are queued per ``(method, path)``; the last queued response of a
    route is sticky. Unrouted requests get a 404 with no body.
    """

    def __init__(self):
        self.routes: Dict[Tuple[str, str], List[TransportResponse]] = {}
        self.calls: List[Tuple[str, str, Any]] = []

    def add(self, method: str, path: str, status_code: int, body: Any = None) -> None:
        self.routes.setdefault((method, path), []).append(TransportResponse(status_code, body))

    def _respond(self, method: str, path: str, payload: Any) -> TransportResponse:
        self.calls.append((method, path, payload))
        queue = self.routes.get((method, path))
        if not queue:
            return TransportResponse(404, None)
        if len(queue) > 1:
            return queue.pop(0)
        return queue[0]

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> TransportResponse:
        return self._respond("GET", path, dict(params or {}))

    def post(self, path: str, body: Any = None) -> TransportResponse:
        return self._respond("POST", path, body)

    def patch(self, path: str, body: Any = None) -> TransportResponse:
        return self._respond("PATCH", path, body)

    def delete(self, path: str) -> TransportResponse:
        return self._respond("DELETE", path, None)

    def calls_to(self, method: str, path: Optional[str] = None) -> List[Tuple[str, str, Any]]:
        return [call for call in self.calls if call[0] == method and (path is None or call[1] == path)]


@pytest.fixture(autouse=True)
def global_registry_cleanup():
    """Forget declared record types before and after every test."""
    clear_registry()
    yield
    clear_registry()
    ApiRecord.use_session(None)


@pytest.fixture
def settings() -> ApiSettings:
    return ApiSettings(
        base_url="http://api.test/api/v1/",
        api_key="secret",
        page_size=200,
        bulk_slice_size=20,
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def session(transport: FakeTransport, settings: ApiSettings) -> ApiSession:
    """Session over the fake transport, bound to every record type."""
    api_session = ApiSession(transport, settings=settings)
    ApiRecord.use_session(api_session)
    return api_session


@pytest.fixture
def models(session: ApiSession) -> SimpleNamespace:
    """Company / Contact / Note / Invoice / InvoiceLine record types."""

    @api_record("Company", path="Companies", id_ref="company_id")
    class Company(ApiRecord):
        """Customer or vendor."""
        company_id = api_field()
        company_name = api_field(ApiType.STRING)
        company_type = api_field(enum={"customer": "Customer", "vendor": "Vendor"})
        contacts = has_many("Contact", foreign_key="company_id")
        notes = has_many(
            "Note",
            primary_key="company_id",
            foreign_key="object_key",
            polymorphic={"table_key": "Company"},
        )

    @api_record("Contact", path="Contacts", id_ref="contact_id")
    class Contact(ApiRecord):
        """Person attached to a company."""
        contact_id = api_field()
        company_id = api_field()
        contact_name = api_field()
        email_address = api_field()
        is_active = api_field(ApiType.BOOLEAN)
        company = belongs_to("Company", foreign_key="company_id")

    @api_record("Note", path="Notes", id_ref="note_id")
    class Note(ApiRecord):
        """Free text attached to any record."""
        note_id = api_field()
        object_key = api_field()
        table_key = api_field()
        note_text = api_field()

    @api_record("Invoice", path="Invoices", id_ref="id")
    class Invoice(ApiRecord):
        """Invoice with a required name."""
        id = api_field()
        name = api_field()
        amount = api_field(ApiType.DECIMAL)
        invoice_date = api_field(ApiType.DATETIME)
        status = api_field(enum=["Open", "Closed"])
        created = api_field(ApiType.DATETIME)
        modified = api_field(ApiType.DATETIME)
        lines = has_many("InvoiceLine", foreign_key="invoice_id")

        @validation_hook
        def require_name(self, errors):
            if not self.get_attribute("name"):
                errors.add("name", "can't be blank")

    @api_record("InvoiceLine", path="InvoiceLines", id_ref="line_id")
    class InvoiceLine(ApiRecord):
        """Line of an invoice."""
        line_id = api_field()
        invoice_id = api_field()
        quantity = api_field(ApiType.INTEGER)

    return SimpleNamespace(
        Company=Company,
        Contact=Contact,
        Note=Note,
        Invoice=Invoice,
        InvoiceLine=InvoiceLine,
    )
