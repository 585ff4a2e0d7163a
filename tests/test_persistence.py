from datetime import date
from decimal import Decimal

import pytest

from budget_assistant.budget import BudgetEnvelope
from budget_assistant.catalog import CategoryCatalog
from budget_assistant.db.client import get_engine, session_scope
from budget_assistant.models import DuplicateMatch, PaymentInstrument, Purchase, PurchaseDraft
from budget_assistant.persistence import (
    accept_duplicate,
    add_purchase,
    clear_purchases_and_budgets,
    commit_drafts,
    delete_purchase,
    load_snapshot,
    remember_merchant,
    save_budget,
    save_catalog,
    save_instruments,
    save_tag,
    seed_defaults,
)
from budget_assistant.tags import DEFAULT_TAGS


def test_empty_database_yields_defaults(db_url):
    with session_scope(database_url=db_url) as session:
        snap = load_snapshot(session)
    assert snap.catalog.names == CategoryCatalog.default().names
    assert snap.tags.names == list(DEFAULT_TAGS)
    assert len(snap.instruments) == 5
    assert len(snap.memory) == 0
    assert snap.purchases == []
    assert snap.budget == BudgetEnvelope()


def test_seed_defaults_keeps_ids_stable(db_url):
    with session_scope(database_url=db_url) as session:
        seeded = seed_defaults(session)
    with session_scope(database_url=db_url) as session:
        again = load_snapshot(session)
    assert [c.id for c in again.catalog] == [c.id for c in seeded.catalog]
    assert [t.id for t in again.tags] == [t.id for t in seeded.tags]
    assert [i.name for i in again.instruments] == [i.name for i in seeded.instruments]


def test_save_catalog_round_trip(db_url):
    catalog = CategoryCatalog.default()
    catalog.add("Pets", "35.50")
    catalog.move(len(catalog) - 1, 0)
    with session_scope(database_url=db_url) as session:
        save_catalog(session, catalog)

    with session_scope(database_url=db_url) as session:
        loaded = load_snapshot(session).catalog
    assert loaded.names == catalog.names
    assert loaded.find("pets").limit == Decimal("35.50")
    assert loaded.find("Pets").id == catalog.find("Pets").id

    # Removing a category from the catalog removes its row.
    trimmed = CategoryCatalog(c for c in catalog if c.name != "Pets")
    with session_scope(database_url=db_url) as session:
        save_catalog(session, trimmed)
    with session_scope(database_url=db_url) as session:
        assert "Pets" not in load_snapshot(session).catalog


def test_instruments_round_trip(db_url):
    inst = PaymentInstrument(name="Custom", multipliers={"Dining": Decimal("5.5")}, base_rate=Decimal("1.25"))
    with session_scope(database_url=db_url) as session:
        save_instruments(session, [inst])
    with session_scope(database_url=db_url) as session:
        (loaded,) = load_snapshot(session).instruments
    assert loaded.id == inst.id
    assert dict(loaded.multipliers) == {"Dining": Decimal("5.5")}
    assert loaded.base_rate == Decimal("1.25")

    with session_scope(database_url=db_url) as session, pytest.raises(ValueError):
        save_instruments(session, [])


def test_save_tag_appends(db_url):
    with session_scope(database_url=db_url) as session:
        snap = seed_defaults(session)
        tag = snap.tags.add("Road Trip")
        save_tag(session, tag)
    with session_scope(database_url=db_url) as session:
        names = load_snapshot(session).tags.names
    assert names[-1] == "Road Trip"


def test_remember_merchant(db_url):
    with session_scope(database_url=db_url) as session:
        assert remember_merchant(session, " Joe's Diner ", "Dining")
        assert not remember_merchant(session, "  ", "Dining")
        assert not remember_merchant(session, "Unknown", "Dining")
        assert not remember_merchant(session, "Joe's", None)
    with session_scope(database_url=db_url) as session:
        assert load_snapshot(session).memory.as_dict() == {"joe's diner": "Dining"}


def test_commit_drafts_writes_valid_drafts_and_remembers(db_url):
    with session_scope(database_url=db_url) as session:
        snap = seed_defaults(session)
        dining = snap.catalog.find("Dining")
        work = snap.tags.find("work")
        drafts = [
            PurchaseDraft(
                merchant="Olive Garden",
                amount=Decimal("60"),
                category_id=dining.id,
                tag_ids=[work.id, work.id],
                notes="dinner",
            ),
            PurchaseDraft(merchant="Broken", amount=Decimal("0")),
            PurchaseDraft(merchant="Fee", amount=Decimal("0.004")),
        ]
        written = commit_drafts(session, drafts, catalog=snap.catalog, today=date(2024, 5, 1))
    assert [p.merchant for p in written] == ["Olive Garden"]

    with session_scope(database_url=db_url) as session:
        snap = load_snapshot(session)
    (stored,) = snap.purchases
    assert stored.id == drafts[0].id
    assert stored.amount == Decimal("60")
    assert stored.date == date(2024, 5, 1)
    assert stored.tag_ids == (work.id,)
    assert stored.category_id == dining.id
    assert snap.memory.lookup("OLIVE GARDEN") == "Dining"


def test_accept_duplicate_adds_new_side(db_url):
    existing = Purchase(date=date(2024, 5, 1), merchant="Shell", amount=Decimal("40"))
    new = Purchase(date=date(2024, 5, 2), merchant="Shell", amount=Decimal("40"))
    with session_scope(database_url=db_url) as session:
        catalog = seed_defaults(session).catalog
        add_purchase(session, existing)
        accept_duplicate(session, DuplicateMatch(existing=existing, new=new), catalog=catalog)
    with session_scope(database_url=db_url) as session:
        ids = {p.id for p in load_snapshot(session).purchases}
    assert ids == {existing.id, new.id}


def test_failed_scope_rolls_back(db_url):
    p = Purchase(date=date(2024, 5, 1), merchant="Shell", amount=Decimal("40"))
    with pytest.raises(RuntimeError), session_scope(database_url=db_url) as session:
        add_purchase(session, p)
        raise RuntimeError("boom")
    with session_scope(database_url=db_url) as session:
        assert load_snapshot(session).purchases == []


def test_engine_rejects_a_second_url(db_url, tmp_path):
    with pytest.raises(RuntimeError):
        get_engine(database_url=f"sqlite+pysqlite:///{tmp_path / 'other.db'}")


def test_budget_envelope_round_trip(db_url):
    with session_scope(database_url=db_url) as session:
        save_budget(session, BudgetEnvelope(Decimal("1500.25")))
    with session_scope(database_url=db_url) as session:
        save_budget(session, BudgetEnvelope(Decimal("1750")))
    with session_scope(database_url=db_url) as session:
        assert load_snapshot(session).budget.overall_limit == Decimal("1750")


def test_delete_purchase(db_url):
    keep = Purchase(date=date(2024, 5, 1), merchant="Shell", amount=Decimal("40"))
    drop = Purchase(date=date(2024, 5, 2), merchant="Kroger", amount=Decimal("12.99"))
    with session_scope(database_url=db_url) as session:
        add_purchase(session, keep)
        add_purchase(session, drop)
        remember_merchant(session, "Kroger", "Groceries")
    with session_scope(database_url=db_url) as session:
        assert delete_purchase(session, drop.id)
        assert not delete_purchase(session, drop.id)
    with session_scope(database_url=db_url) as session:
        snap = load_snapshot(session)
    assert [p.id for p in snap.purchases] == [keep.id]
    assert snap.memory.lookup("kroger") == "Groceries"


def test_clear_purchases_and_budgets(db_url):
    with session_scope(database_url=db_url) as session:
        snap = seed_defaults(session)
        snap.catalog.add("Pets", "35")
        save_catalog(session, snap.catalog)
        road_trip = snap.tags.add("Road Trip")
        save_tag(session, road_trip)
        save_budget(session, BudgetEnvelope(Decimal("900")))
        pets = snap.catalog.find("Pets")
        petco = Purchase(date=date(2024, 5, 1), merchant="Petco", amount=Decimal("20"), category_id=pets.id)
        add_purchase(session, petco)
        remember_merchant(session, "Petco", "Pets")

    with session_scope(database_url=db_url) as session:
        assert clear_purchases_and_budgets(session) == 1

    with session_scope(database_url=db_url) as session:
        snap = load_snapshot(session)
    assert snap.purchases == []
    assert len(snap.memory) == 0
    assert snap.budget == BudgetEnvelope()
    assert snap.catalog.names == CategoryCatalog.default().names
    assert "Road Trip" in snap.tags.names


def test_dropping_a_category_uncategorizes_its_purchases(db_url):
    with session_scope(database_url=db_url) as session:
        catalog = seed_defaults(session).catalog
        catalog.add("Pets")
        save_catalog(session, catalog)
        pets = catalog.find("Pets")
        purchase = Purchase(
            date=date(2024, 5, 1), merchant="Petco", amount=Decimal("20"), category_id=pets.id
        )
        add_purchase(session, purchase)

    trimmed = CategoryCatalog(c for c in catalog if c.name != "Pets")
    with session_scope(database_url=db_url) as session:
        save_catalog(session, trimmed)
    with session_scope(database_url=db_url) as session:
        (stored,) = load_snapshot(session).purchases
    assert stored.id == purchase.id
    assert stored.category_id is None
