from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from app.dependencies import get_api_key
from app.insurance_database import get_db, Claim
from app.model import ErrorStatistics, ValidationReport
from app.services import error_validation

router = APIRouter(tags=["Error Validation"])


@router.post("/claims/{claim_id}/validate")
def validate_claim_endpoint(
    claim_id: int,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    claim = db.query(Claim).filter(Claim.id == claim_id).first()
    if not claim:
        raise HTTPException(status_code=404, detail="Claim not found")

    errors = error_validation.validate_claim(claim)
    return {
        "claim_id": claim.id,
        "unique_claim_id": claim.unique_claim_id,
        "is_valid": not any(e.severity in ("critical", "high") for e in errors),
        "errors": errors,
    }


@router.get("/batches/{batch_number}/validation", response_model=ValidationReport)
def batch_validation_report(
    batch_number: str,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return error_validation.generate_validation_report(db, batch_number)


@router.post("/batches/{batch_number}/validation")
def save_batch_validation(
    batch_number: str,
    created_by: Optional[int] = None,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    report = error_validation.generate_validation_report(db, batch_number)

    tpa_id = None
    first_claim = db.query(Claim).filter(Claim.batch_number == batch_number).first()
    if first_claim:
        tpa_id = first_claim.tpa_id

    saved = error_validation.save_validation_errors(db, batch_number, report.errors, created_by, tpa_id)
    return {"batch_number": batch_number, "saved_errors": saved, "report": report}


@router.get("/error-logs/stats", response_model=ErrorStatistics)
def error_statistics(
    tpa_id: Optional[int] = None,
    db: Session = Depends(get_db),
    api_key: str = Depends(get_api_key)
):
    return error_validation.get_error_statistics(db, tpa_id)
