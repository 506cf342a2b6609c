# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Tests for record identity, equality and rendering.
"""

from __future__ import annotations

import datetime
import json

from apialchemy import ApiRecord, api_field, api_record


class TestEquality:
    """Equality by identity value."""

    def test_same_type_same_id_equal(self, models):
        """Two instances of one record are equal and hash alike."""
        a = models.Company.from_server({"companyId": "1"})
        b = models.Company.from_server({"companyId": "1"})
        assert a == b
        assert hash(a) == hash(b)
        assert len({a, b}) == 1

    def test_different_ids_unequal(self, models):
        """Different identity values are unequal."""
        assert models.Company.from_server({"companyId": "1"}) != models.Company.from_server({"companyId": "2"})

    def test_different_types_unequal(self, models):
        """Equal identity values of different types are unequal."""
        company = models.Company.from_server({"companyId": "1"})
        contact = models.Contact.from_server({"contactId": "1"})
        assert company != contact

    def test_new_records_compare_by_reference(self, models):
        """Records without identity are only equal to themselves."""
        a = models.Company(company_name="x")
        b = models.Company(company_name="x")
        assert a == a
        assert a != b
        assert len({a, b}) == 2

    def test_blank_identity_is_new(self, models):
        """An empty string identity counts as absent."""
        a = models.Company.from_server({"companyId": ""})
        b = models.Company.from_server({"companyId": ""})
        assert a.new
        assert a != b

    def test_not_equal_to_other_objects(self, models):
        """Comparison with non-records is never equal."""
        assert models.Company.from_server({"companyId": "1"}) != "1"


class TestPersistenceState:
    """persisted / new / dirty flags."""

    def test_new_record_state(self, models):
        """Records built locally are new and dirty."""
        company = models.Company(company_name="x")
        assert company.new and not company.persisted
        assert company.dirty()
        assert company.dirty_fields() == ["company_name"]

    def test_server_record_state(self, models):
        """Records built from server data are persisted and clean."""
        company = models.Company.from_server({"companyId": "1", "companyName": "x"})
        assert company.persisted and not company.new
        assert company.clean()

    def test_audit_timestamps(self, models):
        """created_at / updated_at read the audit fields."""
        invoice = models.Invoice.from_server(
            {"id": "X", "created": "2024-01-01T00:00:00Z", "modified": "2024-02-01T00:00:00Z"}
        )
        assert invoice.created_at == datetime.datetime(2024, 1, 1, tzinfo=datetime.timezone.utc)
        assert invoice.updated_at.month == 2


class TestRendering:
    """Reference descriptors and JSON views."""

    def test_to_pointer(self, models):
        """The reference descriptor names the record type and identity."""
        company = models.Company.from_server({"companyId": "C1"})
        assert company.to_pointer() == {"__type": "Pointer", "className": "Company", "company_id": "C1"}

    def test_as_json_merges_buffers(self, models):
        """as_json overlays pending changes on persisted values."""
        company = models.Company.from_server({"companyId": "C1", "companyName": "Old"})
        company.company_name = "New"
        assert company.as_json() == {"company_id": "C1", "company_name": "New"}

    def test_as_json_nested_records_and_dates(self, models):
        """Nested records render as JSON and dates as timestamps."""
        contact = models.Contact.from_server({"contactId": "P1", "company": {"companyId": "C1"}})
        invoice = models.Invoice.from_server({"id": "X", "invoiceDate": "2024-01-02T00:00:00Z"})
        assert contact.as_json()["company"] == {"company_id": "C1"}
        assert invoice.as_json()["invoice_date"] == "2024-01-02T00:00:00.000Z"

    def test_to_json(self, models):
        """to_json serializes as_json."""
        company = models.Company.from_server({"companyId": "C1"})
        assert json.loads(company.to_json()) == {"company_id": "C1"}

    def test_base_record_accepts_any_server_field(self, session):
        """The base record keeps whatever the server returns."""
        record = ApiRecord.from_server({"someField": 1})
        assert record.some_field == 1
        assert record.id is None


class TestServerDates:
    """Date wrappers decode on every plain field."""

    WRAPPED = {"__type": "Date", "iso": "2024-01-02T03:04:05.000Z"}
    EXPECTED = datetime.datetime(2024, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)

    def test_untyped_field(self, session):
        @api_record("Thing", path="Things", id_ref="thing_id")
        class Thing(ApiRecord):
            thing_id = api_field()
            due = api_field()

        thing = Thing.from_server({"thingId": "T1", "due": self.WRAPPED})
        assert thing.due == self.EXPECTED

    def test_base_record_field(self, session):
        record = ApiRecord.from_server({"due": self.WRAPPED})
        assert record.due == self.EXPECTED

    def test_other_dicts_untouched(self, session):
        record = ApiRecord.from_server({"meta": {"a": 1}})
        assert record.meta == {"a": 1}
