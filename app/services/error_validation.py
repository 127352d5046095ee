"""Data quality and fraud heuristics for claims and claim batches."""

import logging
from collections import Counter, defaultdict
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.insurance_database import Claim, ErrorLog
from app.model import ErrorStatistics, ClaimValidationError, ValidationReport
from app.rule_loader import get_validation_rules

logger = logging.getLogger(__name__)


def _is_blank(value: Optional[str]) -> bool:
    return not value or not value.strip()


def _has_approved_cost(claim) -> bool:
    return claim.approved_cost_of_care is not None and claim.approved_cost_of_care > 0


def _has_positive_cost(claim) -> bool:
    return claim.total_cost_of_care is not None and claim.total_cost_of_care > 0


def validate_claim(claim) -> List[ClaimValidationError]:
    threshold = float(get_validation_rules()["claim_rules"]["excessive_cost_threshold"])
    errors: List[ClaimValidationError] = []

    # Required fields
    if _is_blank(claim.primary_diagnosis):
        errors.append(ClaimValidationError(
            error_code="MISSING_DIAGNOSIS",
            error_title="Missing Primary Diagnosis",
            error_description="Primary diagnosis is required for all claims",
            error_type="validation",
            error_category="missing_data",
            severity="high",
            field_name="primary_diagnosis",
            expected_value="Valid diagnosis description",
            actual_value=claim.primary_diagnosis or "Empty",
        ))

    if not claim.date_of_claim_submission:
        errors.append(ClaimValidationError(
            error_code="MISSING_SUBMISSION_DATE",
            error_title="Missing Date of Submission",
            error_description="Date of claim submission is required",
            error_type="validation",
            error_category="missing_data",
            severity="high",
            field_name="date_of_claim_submission",
            expected_value="Valid date",
            actual_value="Empty",
        ))

    if _is_blank(claim.treatment_procedure):
        errors.append(ClaimValidationError(
            error_code="MISSING_TREATMENT",
            error_title="Missing Treatment Procedure",
            error_description="Treatment procedure is required for all claims",
            error_type="validation",
            error_category="missing_data",
            severity="medium",
            field_name="treatment_procedure",
            expected_value="Valid treatment description",
            actual_value=claim.treatment_procedure or "Empty",
        ))

    # Decision mismatches
    if _has_approved_cost(claim):
        approved = float(claim.approved_cost_of_care)
        if claim.decision == "rejected":
            errors.append(ClaimValidationError(
                error_code="REJECTED_WITH_APPROVED_COST",
                error_title="Rejected Claim with Approved Cost",
                error_description="Rejected claims should not have approved costs",
                error_type="discrepancy",
                error_category="decision_mismatch",
                severity="critical",
                field_name="approved_cost_of_care",
                expected_value="0 or null for rejected claims",
                actual_value=str(claim.approved_cost_of_care),
                expected_amount=0,
                actual_amount=approved,
                amount_deviation=approved,
                deviation_percentage=100,
            ))
        elif not claim.decision:
            errors.append(ClaimValidationError(
                error_code="NO_DECISION_WITH_APPROVED_COST",
                error_title="No Decision with Approved Cost",
                error_description="Claims with approved costs must have a decision",
                error_type="discrepancy",
                error_category="decision_mismatch",
                severity="high",
                field_name="decision",
                expected_value="approved, rejected, or pending",
                actual_value="Empty",
                expected_amount=0,
                actual_amount=approved,
                amount_deviation=approved,
                deviation_percentage=100,
            ))

    # Cost anomalies
    if claim.total_cost_of_care is not None:
        total_cost = float(claim.total_cost_of_care)

        if total_cost > threshold:
            errors.append(ClaimValidationError(
                error_code="EXCESSIVE_COST",
                error_title="Excessive Claim Cost",
                error_description="Claim cost exceeds reasonable threshold",
                error_type="fraud",
                error_category="cost_anomaly",
                severity="critical",
                field_name="total_cost_of_care",
                expected_value="Cost within reasonable range",
                actual_value=str(total_cost),
                expected_amount=threshold,
                actual_amount=total_cost,
                amount_deviation=total_cost - threshold,
                deviation_percentage=(total_cost - threshold) / threshold * 100,
            ))

        if total_cost <= 0:
            errors.append(ClaimValidationError(
                error_code="INVALID_COST",
                error_title="Invalid Claim Cost",
                error_description="Claim cost must be greater than zero",
                error_type="validation",
                error_category="cost_anomaly",
                severity="high",
                field_name="total_cost_of_care",
                expected_value="Cost greater than 0",
                actual_value=str(total_cost),
                expected_amount=1,
                actual_amount=total_cost,
                amount_deviation=1 - total_cost,
                deviation_percentage=100,
            ))

    # Dates
    if claim.date_of_admission and claim.date_of_discharge:
        if claim.date_of_discharge < claim.date_of_admission:
            errors.append(ClaimValidationError(
                error_code="INVALID_DATE_RANGE",
                error_title="Invalid Date Range",
                error_description="Discharge date cannot be before admission date",
                error_type="validation",
                error_category="missing_data",
                severity="high",
                field_name="date_of_discharge",
                expected_value=f"Date on or after {claim.date_of_admission.isoformat()}",
                actual_value=claim.date_of_discharge.isoformat(),
            ))

    return errors


def validate_batch_claims(batch_claims: Sequence, facility_claims: Sequence = ()) -> List[ClaimValidationError]:
    """Batch-level checks over already loaded claims.

    facility_claims are all claims of the batch's facility and feed the
    facility average used for the deviation check.
    """
    rules = get_validation_rules()["batch_rules"]
    errors: List[ClaimValidationError] = []

    if not batch_claims:
        errors.append(ClaimValidationError(
            error_code="EMPTY_BATCH",
            error_title="Empty Batch",
            error_description="Batch contains no claims",
            error_type="validation",
            error_category="missing_data",
            severity="medium",
        ))
        return errors

    # Duplicates
    id_counts = Counter(claim.unique_claim_id for claim in batch_claims)
    duplicates = sum(count - 1 for count in id_counts.values() if count > 1)
    if duplicates:
        errors.append(ClaimValidationError(
            error_code="DUPLICATE_CLAIMS",
            error_title="Duplicate Claims Found",
            error_description=f"Batch contains {duplicates} duplicate claims",
            error_type="fraud",
            error_category="duplicate",
            severity="critical",
            field_name="unique_claim_id",
            expected_value="Unique claim IDs",
            actual_value=f"Found {duplicates} duplicates",
        ))

    # Cost distribution; non-positive costs are reported per claim as INVALID_COST
    costs = [float(c.total_cost_of_care) for c in batch_claims if _has_positive_cost(c)]
    if costs:
        average_cost = sum(costs) / len(costs)
        max_cost = max(costs)
        cost_threshold = average_cost * rules["outlier_multiplier"]
        outliers = [cost for cost in costs if cost > cost_threshold]

        if outliers:
            errors.append(ClaimValidationError(
                error_code="COST_OUTLIERS",
                error_title="Cost Outliers Detected",
                error_description=f"Batch contains {len(outliers)} claims with unusually high costs",
                error_type="fraud",
                error_category="cost_anomaly",
                severity="high",
                field_name="total_cost_of_care",
                expected_value=f"Costs within {cost_threshold:,.2f} range",
                actual_value=f"Found {len(outliers)} outliers above threshold",
                expected_amount=cost_threshold,
                actual_amount=max_cost,
                amount_deviation=max_cost - cost_threshold,
                deviation_percentage=(max_cost - cost_threshold) / cost_threshold * 100,
            ))

        facility_costs = [float(c.total_cost_of_care) for c in facility_claims if _has_positive_cost(c)]
        if facility_costs:
            facility_average = sum(facility_costs) / len(facility_costs)
            batch_deviation = abs(average_cost - facility_average) / facility_average * 100

            if batch_deviation > rules["facility_deviation_percent"]:
                errors.append(ClaimValidationError(
                    error_code="BATCH_COST_DEVIATION",
                    error_title="Batch Cost Deviation",
                    error_description=f"Batch average cost deviates {batch_deviation:.1f}% from facility average",
                    error_type="discrepancy",
                    error_category="cost_anomaly",
                    severity="medium",
                    field_name="batch_cost_average",
                    expected_value=f"Within {facility_average:,.2f} range",
                    actual_value=f"Batch average: {average_cost:,.2f}",
                    expected_amount=facility_average,
                    actual_amount=average_cost,
                    amount_deviation=abs(average_cost - facility_average),
                    deviation_percentage=batch_deviation,
                ))

    # Decision consistency
    if any(c.decision == "rejected" and _has_approved_cost(c) for c in batch_claims):
        errors.append(ClaimValidationError(
            error_code="BATCH_DECISION_INCONSISTENCY",
            error_title="Batch Decision Inconsistency",
            error_description="Batch contains rejected claims with approved costs",
            error_type="discrepancy",
            error_category="decision_mismatch",
            severity="high",
            field_name="decision",
            expected_value="Consistent decision logic",
            actual_value="Mixed decision logic found",
        ))

    # Missing data
    missing = sum(
        1 for c in batch_claims
        if not c.primary_diagnosis or not c.treatment_procedure or not c.date_of_claim_submission
    )
    if missing:
        missing_percentage = missing / len(batch_claims) * 100
        if missing_percentage > rules["missing_data_high_percent"]:
            severity = "high"
        elif missing_percentage > rules["missing_data_medium_percent"]:
            severity = "medium"
        else:
            severity = "low"

        errors.append(ClaimValidationError(
            error_code="BATCH_MISSING_DATA",
            error_title="Batch Missing Data",
            error_description=f"{missing} claims ({missing_percentage:.1f}%) are missing required data",
            error_type="quality",
            error_category="missing_data",
            severity=severity,
            field_name="required_fields",
            expected_value="All required fields populated",
            actual_value=f"{missing} claims with missing data",
        ))

    return errors


def _batch_claims(db: Session, batch_number: str) -> List[Claim]:
    return db.query(Claim).filter(Claim.batch_number == batch_number).order_by(Claim.id.asc()).all()


def validate_batch(db: Session, batch_number: str) -> List[ClaimValidationError]:
    batch_claims = _batch_claims(db, batch_number)
    facility_claims: List[Claim] = []
    if batch_claims and batch_claims[0].facility_id is not None:
        facility_claims = db.query(Claim).filter(Claim.facility_id == batch_claims[0].facility_id).all()
    return validate_batch_claims(batch_claims, facility_claims)


def generate_validation_report(db: Session, batch_number: str) -> ValidationReport:
    errors = validate_batch(db, batch_number)

    for claim in _batch_claims(db, batch_number):
        for error in validate_claim(claim):
            errors.append(error.model_copy(update={
                "claim_id": claim.id,
                "field_name": f"{error.field_name} (Claim: {claim.unique_claim_id})",
            }))

    counts = Counter(error.severity for error in errors)
    return ValidationReport(
        is_valid=counts["critical"] == 0 and counts["high"] == 0,
        errors=errors,
        total_errors=len(errors),
        critical_errors=counts["critical"],
        high_errors=counts["high"],
        medium_errors=counts["medium"],
        low_errors=counts["low"],
    )


def save_validation_errors(
    db: Session,
    batch_number: str,
    errors: Sequence[ClaimValidationError],
    created_by: Optional[int] = None,
    tpa_id: Optional[int] = None,
) -> int:
    rows = [
        ErrorLog(batch_number=batch_number, tpa_id=tpa_id, created_by=created_by, status="open", **error.model_dump())
        for error in errors
    ]
    try:
        db.add_all(rows)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to save %d validation errors for batch %s", len(rows), batch_number)
        raise
    return len(rows)


def get_error_statistics(db: Session, tpa_id: Optional[int] = None) -> ErrorStatistics:
    query = db.query(ErrorLog)
    if tpa_id is not None:
        query = query.filter(ErrorLog.tpa_id == tpa_id)
    logs = query.all()

    by_category: Dict[str, int] = defaultdict(int)
    by_type: Dict[str, int] = defaultdict(int)
    for log in logs:
        by_category[log.error_category] += 1
        by_type[log.error_type] += 1

    severities = Counter(log.severity for log in logs)
    statuses = Counter(log.status for log in logs)
    return ErrorStatistics(
        total_errors=len(logs),
        open_errors=statuses["open"],
        resolved_errors=statuses["resolved"],
        critical_errors=severities["critical"],
        high_errors=severities["high"],
        medium_errors=severities["medium"],
        low_errors=severities["low"],
        errors_by_category=dict(by_category),
        errors_by_type=dict(by_type),
    )
