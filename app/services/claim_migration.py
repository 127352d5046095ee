"""Convert legacy claims' treatment text into itemized claim_items rows."""

import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import SYSTEM_USER_ID
from app.insurance_database import Claim, ClaimItem
from app.services.claim_text_parser import parse_claim_text

logger = logging.getLogger(__name__)


def _claims_with_text(db: Session, facility_id: int):
    return (
        db.query(Claim)
        .filter(Claim.facility_id == facility_id)
        .filter(Claim.treatment_procedure.isnot(None))
        .order_by(Claim.id.asc())
    )


def _has_items(db: Session, claim_id: int) -> bool:
    return db.query(ClaimItem.id).filter(ClaimItem.claim_id == claim_id).first() is not None


def migrate_claim_to_items(db: Session, claim: Claim) -> Dict[str, Any]:
    if not claim.treatment_procedure or not claim.treatment_procedure.strip():
        return {"success": False, "items_created": 0, "error": "No treatment procedure text to migrate"}

    if _has_items(db, claim.id):
        return {"success": False, "items_created": 0, "error": "Claim already has itemized data"}

    parsed_items = parse_claim_text(
        claim.treatment_procedure,
        claim.date_of_treatment or date.today(),
        claim.primary_diagnosis or "",
    )
    if not parsed_items:
        return {"success": False, "items_created": 0, "error": "No valid items could be parsed from text"}

    rows = [
        ClaimItem(
            claim_id=claim.id,
            created_by=claim.created_by or SYSTEM_USER_ID,
            **item.model_dump(),
        )
        for item in parsed_items
    ]

    try:
        db.add_all(rows)
        db.commit()
    except (SQLAlchemyError, OverflowError) as exc:
        # OverflowError: a parsed quantity too large for the INTEGER column
        db.rollback()
        logger.exception("Error inserting items for claim %s", claim.id)
        return {"success": False, "items_created": 0, "error": str(exc)}

    return {"success": True, "items_created": len(rows)}


def migrate_facility_claims(db: Session, facility_id: int) -> Dict[str, Any]:
    claims = _claims_with_text(db, facility_id).all()
    logger.info("Found %d claims to potentially migrate for facility %s", len(claims), facility_id)

    errors: List[str] = []
    successful = 0
    items_created = 0

    for claim in claims:
        result = migrate_claim_to_items(db, claim)
        if result["success"]:
            successful += 1
            items_created += result["items_created"]
            logger.info("Migrated claim %s: %d items created", claim.id, result["items_created"])
        else:
            errors.append(f"Claim {claim.id}: {result['error']}")
            logger.info("Failed to migrate claim %s: %s", claim.id, result["error"])

    return {
        "total_claims": len(claims),
        "successful_migrations": successful,
        "failed_migrations": len(claims) - successful,
        "total_items_created": items_created,
        "errors": errors,
    }


def migrate_all_facilities(db: Session) -> Dict[str, Any]:
    facility_ids = [
        row[0]
        for row in db.query(Claim.facility_id)
        .filter(Claim.facility_id.isnot(None))
        .distinct()
        .order_by(Claim.facility_id)
        .all()
    ]
    logger.info("Found %d facilities with claims", len(facility_ids))

    errors: List[str] = []
    claims_migrated = 0
    items_created = 0

    for facility_id in facility_ids:
        result = migrate_facility_claims(db, facility_id)
        claims_migrated += result["successful_migrations"]
        items_created += result["total_items_created"]
        if result["errors"]:
            errors.append(f"Facility {facility_id}: {', '.join(result['errors'])}")
        logger.info(
            "Facility %s: %d/%d claims migrated, %d items created",
            facility_id, result["successful_migrations"], result["total_claims"], result["total_items_created"],
        )

    return {
        "facilities_processed": len(facility_ids),
        "total_claims_migrated": claims_migrated,
        "total_items_created": items_created,
        "errors": errors,
    }


def preview_migration(db: Session, facility_id: int, limit: int = 5) -> Dict[str, Any]:
    """Parse up to `limit` claims of a facility without writing anything."""
    claims = _claims_with_text(db, facility_id).limit(limit).all()

    sample_claims = []
    for claim in claims:
        parsed_items = parse_claim_text(
            claim.treatment_procedure or "",
            claim.date_of_treatment or date.today(),
            claim.primary_diagnosis or "",
        )
        sample_claims.append({
            "claim_id": claim.id,
            "original_text": claim.treatment_procedure or "",
            "parsed_items": parsed_items,
            "estimated_cost": sum((item.total_cost for item in parsed_items), Decimal("0")),
        })

    return {
        "sample_claims": sample_claims,
        "total_estimated_items": sum(len(sample["parsed_items"]) for sample in sample_claims),
    }
