from pathlib import Path

import pytest

from audience.domain.rules import ValidationError
from audience.services import contacts
from audience.store.sqlite import SqliteStore


def _store(tmp_path: Path) -> SqliteStore:
    store = SqliteStore(tmp_path / "test.sqlite")
    store.apply_schema()
    return store


def test_add_contact_defaults(tmp_path: Path) -> None:
    store = _store(tmp_path)
    contact = contacts.add_contact(store, first_name="Amal", last_name="Haddad")

    assert contact.name == "Amal Haddad"
    assert contact.channel == "whatsapp"
    assert contact.conversation_status == "unassigned"
    assert contact.tags == ()
    assert contact.created_at is not None

    stored = contacts.fetch_contact(store, contact.contact_id)
    assert stored == contact


def test_add_contact_normalizes_phone_and_country(tmp_path: Path) -> None:
    store = _store(tmp_path)
    contact = contacts.add_contact(
        store, name="Omar", phone="050 123 4567", default_country="sa", tags=" VIP , new,VIP"
    )

    assert contact.phone == "+966501234567"
    assert contact.country_iso == "SA"
    assert contact.tags == ("VIP", "new")


def test_add_contact_keeps_explicit_country(tmp_path: Path) -> None:
    store = _store(tmp_path)
    contact = contacts.add_contact(store, name="Lina", phone="+201012345678", country_iso="ae")

    assert contact.phone == "+201012345678"
    assert contact.country_iso == "AE"


def test_add_contact_rejects_bad_input(tmp_path: Path) -> None:
    store = _store(tmp_path)
    with pytest.raises(ValidationError, match="name or phone"):
        contacts.add_contact(store)
    with pytest.raises(ValidationError, match="channel"):
        contacts.add_contact(store, name="Sam", channel="fax")
    with pytest.raises(ValidationError, match="phone"):
        contacts.add_contact(store, name="Sam", phone="123", default_country="SA")
    assert contacts.fetch_contacts(store) == []


def test_delete_contact(tmp_path: Path) -> None:
    store = _store(tmp_path)
    contact = contacts.add_contact(store, name="Sam")

    assert contacts.delete_contact(store, contact.contact_id) is True
    assert contacts.delete_contact(store, contact.contact_id) is False
    assert contacts.fetch_contact(store, contact.contact_id) is None


def test_import_contacts_csv(tmp_path: Path) -> None:
    store = _store(tmp_path)
    csv_path = tmp_path / "contacts.csv"
    csv_path.write_text(
        "Name,Phone Number,Country,Tags,Last Interaction Time\n"
        "Amal,+966501234567,,vip;new,2026-02-01T09:30:00\n"
        "Bad,123,SA,,\n"
        "Omar,,eg,,\n",
        encoding="utf-8",
    )

    summary = contacts.import_contacts_csv(store, csv_path, default_country="SA")

    assert summary.created == 2
    assert summary.skipped == 1
    assert len(summary.errors) == 1
    assert summary.errors[0].startswith("line 3:")

    by_name = {contact.name: contact for contact in contacts.fetch_contacts(store)}
    assert set(by_name) == {"Amal", "Omar"}
    assert by_name["Amal"].country_iso == "SA"
    assert by_name["Amal"].tags == ("vip", "new")
    assert by_name["Amal"].last_interaction_time is not None
    assert by_name["Omar"].country_iso == "EG"
