from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from decimal import Decimal
from typing import List, Optional
import logging

from app.model import (ClaimCreate, ClaimTextInput, MigrationRequest, ParseClaimTextRequest,
                       ParseClaimTextResponse, ParsedClaimText)
from app.insurance_database import get_db, Claim, ClaimItem
from app.services.claim_text_parser import parse_claim_text, parse_multiple_claim_texts, parse_sample_claim_data
from app.services import claim_migration
from app.rule_loader import get_base_costs
from app.dependencies import get_api_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Claims"])


def _parse_response(items) -> ParseClaimTextResponse:
    return ParseClaimTextResponse(
        count=len(items),
        total_cost=sum((item.total_cost for item in items), Decimal("0")),
        items=items,
    )


@router.post("/claims", status_code=201)
def create_claim(
    input_data: ClaimCreate,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    claim = Claim(**input_data.model_dump())
    db.add(claim)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail=f"Claim {input_data.unique_claim_id} already exists")
    db.refresh(claim)
    return {"id": claim.id, "unique_claim_id": claim.unique_claim_id, "batch_number": claim.batch_number}


@router.post("/claims/parse", response_model=ParseClaimTextResponse)
def parse_claim(
    request: ParseClaimTextRequest,
    api_key: str = Depends(get_api_key)
):
    items = parse_claim_text(request.claim_text, request.service_date, request.primary_diagnosis)
    return _parse_response(items)


@router.post("/claims/parse/batch", response_model=List[ParsedClaimText])
def parse_claims_batch(
    claims: List[ClaimTextInput],
    api_key: str = Depends(get_api_key)
):
    return parse_multiple_claim_texts(claims)


@router.get("/claims/parse/sample", response_model=ParseClaimTextResponse)
def parse_sample(api_key: str = Depends(get_api_key)):
    return _parse_response(parse_sample_claim_data())


@router.get("/claims/cost-table")
def list_base_costs(
    api_key: str = Depends(get_api_key),
    q: Optional[str] = Query(None, min_length=2, description="Search term for item categories"),
) -> dict:
    all_costs = get_base_costs()

    if not q:
        return {"count": len(all_costs), "costs": all_costs}

    query = q.strip().lower()
    filtered = [row for row in all_costs if query in row["category"]]
    return {"count": len(filtered), "costs": filtered}


@router.post("/claims/migrate")
def migrate_claims(
    request: MigrationRequest,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    logger.info("Claim migration requested: %s (facility=%s, claim=%s)", request.action, request.facility_id, request.claim_id)

    if request.action == "migrate_all":
        return {"success": True, "type": "migration", **claim_migration.migrate_all_facilities(db)}

    if request.action == "migrate_single":
        if request.claim_id is None:
            raise HTTPException(status_code=400, detail="Claim ID is required for single migration")
        claim = db.query(Claim).filter(Claim.id == request.claim_id).first()
        if not claim:
            raise HTTPException(status_code=404, detail="Claim not found")
        result = claim_migration.migrate_claim_to_items(db, claim)
        return {"type": "migration", "claim_id": claim.id, **result}

    if request.facility_id is None:
        raise HTTPException(status_code=400, detail="Facility ID is required")

    if request.action == "test":
        result = claim_migration.preview_migration(db, request.facility_id, limit=10)
        return {"success": True, "type": "test", "facility_id": request.facility_id, **result}

    if request.test_only:
        result = claim_migration.preview_migration(db, request.facility_id, limit=50)
        return {"success": True, "type": "test", "facility_id": request.facility_id, **result}

    result = claim_migration.migrate_facility_claims(db, request.facility_id)
    return {"success": True, "type": "migration", "facility_id": request.facility_id, **result}


@router.get("/claims/{claim_id}/items")
def get_claim_items(
    claim_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    claim = db.query(Claim).filter(Claim.id == claim_id).first()
    if not claim:
        raise HTTPException(status_code=404, detail="Claim not found")

    items = db.query(ClaimItem).filter(ClaimItem.claim_id == claim_id).order_by(ClaimItem.id.asc()).all()
    return {
        "claim_id": claim_id,
        "count": len(items),
        "total_cost": str(sum((item.total_cost for item in items), Decimal("0"))),
        "results": [
            {
                "id": item.id,
                "item_type": item.item_type,
                "item_category": item.item_category,
                "item_name": item.item_name,
                "item_description": item.item_description,
                "quantity": item.quantity,
                "unit": item.unit,
                "dosage": item.dosage,
                "duration": item.duration,
                "unit_cost": str(item.unit_cost),
                "total_cost": str(item.total_cost),
                "service_date": item.service_date,
                "urgency": item.urgency,
                "indication": item.indication,
                "review_status": item.review_status,
            }
            for item in items
        ],
    }
