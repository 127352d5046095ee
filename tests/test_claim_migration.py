from datetime import date
from decimal import Decimal

from app.insurance_database import ClaimItem
from app.services.claim_migration import (
    migrate_all_facilities,
    migrate_claim_to_items,
    migrate_facility_claims,
    preview_migration,
)


def test_migrate_claim_creates_items(db_session, make_claim):
    claim = make_claim(treatment_procedure="PCV, TAB PCM 1G TDS 5/7", primary_diagnosis="Malaria")

    result = migrate_claim_to_items(db_session, claim)

    assert result == {"success": True, "items_created": 2}
    items = db_session.query(ClaimItem).filter(ClaimItem.claim_id == claim.id).order_by(ClaimItem.id).all()
    assert [item.item_type for item in items] == ["investigation", "medication"]
    assert items[0].total_cost == Decimal("3000")
    assert items[1].dosage == "1G"
    assert items[1].duration == "5/7, TDS"
    assert items[1].service_date == date(2024, 1, 15)
    assert all(item.indication == "Malaria" for item in items)
    assert all(item.created_by == 1 for item in items)
    assert all(item.review_status == "pending" for item in items)


def test_migrate_claim_uses_claim_creator(db_session, make_claim):
    claim = make_claim(created_by=42)

    migrate_claim_to_items(db_session, claim)

    assert {item.created_by for item in db_session.query(ClaimItem).all()} == {42}


def test_migrate_claim_twice_is_rejected(db_session, make_claim):
    claim = make_claim()
    migrate_claim_to_items(db_session, claim)

    result = migrate_claim_to_items(db_session, claim)

    assert result["success"] is False
    assert result["error"] == "Claim already has itemized data"
    assert db_session.query(ClaimItem).count() == 2


def test_migrate_claim_without_text(db_session, make_claim):
    claim = make_claim(treatment_procedure="   ")

    result = migrate_claim_to_items(db_session, claim)

    assert result == {"success": False, "items_created": 0, "error": "No treatment procedure text to migrate"}


def test_migrate_claim_with_unparseable_text(db_session, make_claim):
    claim = make_claim(treatment_procedure="ok; ,; 12.50")

    result = migrate_claim_to_items(db_session, claim)

    assert result["success"] is False
    assert result["error"] == "No valid items could be parsed from text"


def test_migrate_facility_claims(db_session, make_claim):
    first = make_claim(facility_id=10)
    make_claim(facility_id=10, treatment_procedure="CAESAREAN SECTION, BED FEES")
    make_claim(facility_id=10, treatment_procedure=None)
    make_claim(facility_id=20)
    migrate_claim_to_items(db_session, first)

    result = migrate_facility_claims(db_session, 10)

    assert result["total_claims"] == 2
    assert result["successful_migrations"] == 1
    assert result["failed_migrations"] == 1
    assert result["total_items_created"] == 2
    assert result["errors"] == [f"Claim {first.id}: Claim already has itemized data"]


def test_migrate_all_facilities(db_session, make_claim):
    make_claim(facility_id=10)
    make_claim(facility_id=20, treatment_procedure="CAESAREAN SECTION")
    make_claim(facility_id=20, treatment_procedure="")

    result = migrate_all_facilities(db_session)

    assert result["facilities_processed"] == 2
    assert result["total_claims_migrated"] == 2
    assert result["total_items_created"] == 3
    assert len(result["errors"]) == 1
    assert result["errors"][0].startswith("Facility 20: ")


def test_preview_migration_writes_nothing(db_session, make_claim):
    make_claim(facility_id=10)
    make_claim(facility_id=10, treatment_procedure="CAESAREAN SECTION")
    make_claim(facility_id=10, treatment_procedure="BED FEES")

    result = preview_migration(db_session, 10, limit=2)

    assert len(result["sample_claims"]) == 2
    assert result["total_estimated_items"] == 3
    assert result["sample_claims"][0]["original_text"] == "PCV, TAB PCM 1G TDS 5/7"
    assert result["sample_claims"][0]["estimated_cost"] == Decimal("3500")
    assert result["sample_claims"][1]["estimated_cost"] == Decimal("150000")
    assert db_session.query(ClaimItem).count() == 0


def test_oversized_quantity_is_reported_not_raised(db_session, make_claim):
    oversized = make_claim(facility_id=10, treatment_procedure="BED FEES 99999999999999999999 DAYS")
    make_claim(facility_id=10)

    result = migrate_claim_to_items(db_session, oversized)

    assert result["success"] is False
    assert result["items_created"] == 0
    assert db_session.query(ClaimItem).count() == 0

    facility_result = migrate_facility_claims(db_session, 10)

    assert facility_result["successful_migrations"] == 1
    assert facility_result["failed_migrations"] == 1
    assert facility_result["errors"][0].startswith(f"Claim {oversized.id}: ")
    assert db_session.query(ClaimItem).count() == 2
