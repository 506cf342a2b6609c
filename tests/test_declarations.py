# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Tests for record declarations: fields, relations, enums, schemas and the registry.
"""

from __future__ import annotations

import pytest

from apialchemy import (
    ApiRecord,
    ApiType,
    AttributeUndeclared,
    DeclarationError,
    RelationKind,
    api_alias,
    api_field,
    api_record,
    belongs_to,
    get_record_by_name,
    get_registered_records,
    has_many,
)
from apialchemy.api_types import CastRule, EnumRule


class TestRecordDecorator:
    """Schema construction by @api_record."""

    def test_package_exports_the_decorator(self, session):
        """The package-level api_record is the decorator, not a submodule."""
        import apialchemy

        assert callable(api_record)
        assert apialchemy.api_record is api_record

        @api_record("Widget", path="Widgets", id_ref="widget_id")
        class Widget(ApiRecord):
            widget_id = api_field()

        assert get_record_by_name("Widget") is Widget

    def test_fields_are_collected_and_frozen(self, models):
        """Declared fields land in a frozen type registry."""
        types = models.Invoice.type_registry()
        assert types.lookup("amount") == CastRule(ApiType.DECIMAL)
        assert isinstance(types.lookup("status"), EnumRule)
        assert types.frozen
        with pytest.raises(DeclarationError):
            types.declare_field("late")

    def test_relations_are_collected(self, models):
        """belongs_to and has_many declarations are bound to their owner."""
        spec = models.Contact.relation_spec("company")
        assert spec.kind is RelationKind.BELONGS_TO
        assert spec.owner is models.Contact
        assert spec.resolve_target() is models.Company
        assert set(models.Company.has_many_relations()) == {"contacts", "notes"}

    def test_registered_by_name(self, models):
        """Concrete record types are registered by their record name."""
        assert get_record_by_name("Invoice") is models.Invoice
        assert "Company" in get_registered_records()

    def test_abstract_not_registered(self, session):
        """Abstract types are not registered."""

        @api_record("AbstractBase", abstract=True)
        class AbstractBase(ApiRecord):
            name = api_field()

        assert get_record_by_name("AbstractBase") is None

    def test_subclass_inherits_fields_and_identity(self, models):
        """Subclasses extend the parent schema and keep id_ref and path."""

        @api_record("PriorityInvoice")
        class PriorityInvoice(models.Invoice):
            priority = api_field(ApiType.INTEGER)

        assert PriorityInvoice.id_ref() == "id"
        assert PriorityInvoice.resource_path() == "Invoices"
        assert "amount" in PriorityInvoice.type_registry()
        assert "priority" not in models.Invoice.type_registry()
        assert PriorityInvoice.schema().validators == ("require_name",)

    def test_missing_id_ref_raises_lazily(self, session):
        """Declaring without id_ref succeeds; asking for it raises."""

        @api_record("Thing", path="Things")
        class Thing(ApiRecord):
            name = api_field()

        with pytest.raises(DeclarationError, match="id_ref has not been defined"):
            Thing.id_ref()
        assert Thing(name="x").id is None

    def test_schema_loading(self, models):
        """Fields and relations of a schema class are copied into the record type."""

        @api_record("ContactSchema", abstract=True)
        class ContactSchema(ApiRecord):
            contact_name = api_field(ApiType.STRING)
            company = belongs_to("Company", foreign_key="company_id")

        @api_record("SchemaContact", path="Contacts", id_ref="contact_id", schema=ContactSchema)
        class SchemaContact(ApiRecord):
            contact_id = api_field()
            company_id = api_field()

        assert SchemaContact.type_registry().lookup("contact_name") == CastRule(ApiType.STRING)
        spec = SchemaContact.relation_spec("company")
        assert spec.owner is SchemaContact
        record = SchemaContact(contact_name=12)
        assert record.contact_name == "12"


class TestRelationDeclarations:
    """Relation target and key handling."""

    def test_empty_target_rejected(self):
        """A relation needs a target."""
        with pytest.raises(DeclarationError):
            has_many("")

    def test_unknown_target_raises_on_resolution(self, session):
        """Unknown target names surface when the target is first needed."""

        @api_record("Orphan", path="Orphans", id_ref="orphan_id")
        class Orphan(ApiRecord):
            orphan_id = api_field()
            parent = belongs_to("NoSuchRecord")

        with pytest.raises(DeclarationError, match="NoSuchRecord"):
            Orphan.relation_spec("parent").resolve_target()

    def test_callable_target(self, models):
        """Zero-argument callables act as forward references."""

        @api_record("Memo", path="Memos", id_ref="memo_id")
        class Memo(ApiRecord):
            memo_id = api_field()
            company_id = api_field()
            company = belongs_to(lambda: models.Company, foreign_key="company_id")

        assert Memo.relation_spec("company").resolve_target() is models.Company

    def test_key_defaults(self, models):
        """belongs_to defaults to the target's id_ref, has_many to the owner's."""
        assert models.Contact.relation_spec("company").keys() == ("company_id", "company_id")
        assert models.Invoice.relation_spec("lines").keys() == ("id", "invoice_id")

    def test_included_hint(self, models, transport):
        """included is kept on the spec; embedded data is materialized either way."""

        @api_record("Ticket", path="Tickets", id_ref="ticket_id")
        class Ticket(ApiRecord):
            ticket_id = api_field()
            company_id = api_field()
            company = belongs_to("Company", foreign_key="company_id", included=True)

        assert Ticket.relation_spec("company").included is True
        assert models.Contact.relation_spec("company").included is False

        ticket = Ticket.from_server({"ticketId": "T1", "company": {"companyId": "C1"}})
        plain = models.Contact.from_server({"contactId": "P1", "company": {"companyId": "C1"}})
        assert isinstance(ticket.company, models.Company)
        assert isinstance(plain.company, models.Company)
        assert transport.calls == []


class TestEnumDeclarations:
    """Enum fields and their dispatch table."""

    def test_invalid_enum_declaration(self):
        """Enum values must be a list or a mapping."""
        with pytest.raises(DeclarationError):
            api_field(enum=5)

    def test_typed_enum_rejected(self):
        """A field cannot be both typed and an enum."""
        with pytest.raises(DeclarationError):
            api_field(ApiType.STRING, enum=["a"])

    def test_reader_sees_key_store_holds_value(self, models):
        """Readers get the symbolic key while the canonical value is stored."""
        company = models.Company(company_type="customer")
        assert company.company_type == "customer"
        assert company.get_attribute("company_type") == "Customer"

    def test_predicates(self, models):
        """is_<key>() compares against the canonical value."""
        company = models.Company(company_type="Vendor")
        assert company.is_vendor()
        assert not company.is_customer()

    def test_mutator_on_new_record(self, models, transport):
        """mark_<key>() sets the value and does not save a new record."""
        company = models.Company(company_type="customer")
        assert company.mark_vendor() is True
        assert company.company_type == "vendor"
        assert transport.calls == []

    def test_mutator_saves_persisted_record(self, models, transport):
        """mark_<key>() saves a persisted record."""
        transport.add("PATCH", "Companies/C1", 200, {"companyId": "C1", "companyType": "Vendor"})
        company = models.Company.from_server({"companyId": "C1", "companyType": "Customer"})
        assert company.mark_vendor() is True
        method, path, body = transport.calls[0]
        assert (method, path, body) == ("PATCH", "Companies/C1", {"companyType": "Vendor"})

    def test_invalid_value_fails_validation(self, models, transport):
        """Values outside the declared set block saving."""
        company = models.Company(company_type="partner")
        assert company.save() is False
        assert company.errors["company_type"] == ["has an invalid value"]
        assert transport.calls == []


class TestAttributeAccess:
    """Schema membership and aliases."""

    def test_valid_attribute_on_base_accepts_anything(self):
        """The base record accepts every attribute name."""
        assert ApiRecord.valid_attribute("whatever")

    def test_valid_attribute_strict(self, models):
        """Declared types only accept declared names; raising on demand."""
        assert models.Contact.valid_attribute("contact_name")
        assert not models.Contact.valid_attribute("nickname")
        with pytest.raises(AttributeUndeclared, match="nickname"):
            models.Contact.valid_attribute("nickname", raise_exception=True)

    def test_undeclared_attribute_access_raises(self, models):
        """Unknown attributes raise AttributeUndeclared, an AttributeError."""
        contact = models.Contact()
        with pytest.raises(AttributeError):
            contact.nickname
        assert not hasattr(contact, "nickname")

    def test_undeclared_server_field_readable(self, models):
        """Fields returned by the server but not declared stay readable."""
        contact = models.Contact.from_server({"contactId": "1", "externalRef": "X9"})
        assert contact.external_ref == "X9"

    def test_api_alias(self, session):
        """api_alias exposes a field under a second name."""

        @api_record("Person", path="People", id_ref="person_id")
        class Person(ApiRecord):
            person_id = api_field()
            full_name = api_field()
            name = api_alias("full_name")

        person = Person(name="Ada")
        assert person.full_name == "Ada"
        person.name = "Grace"
        assert person.get_attribute("full_name") == "Grace"

    def test_alias_attribute(self, models):
        """alias_attribute adds an alias after declaration."""
        models.Contact.alias_attribute("email", "email_address")
        contact = models.Contact(email="a@b.c")
        assert contact.email_address == "a@b.c"
