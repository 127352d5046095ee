from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from typing import List, Optional, Dict, Literal
from datetime import date
from decimal import Decimal
from enum import Enum


class ItemType(str, Enum):
    investigation = "investigation"
    procedure = "procedure"
    medication = "medication"
    other_service = "other_service"


class Urgency(str, Enum):
    routine = "routine"
    urgent = "urgent"
    emergency = "emergency"


class ParsedClaimItem(BaseModel):
    """One billable item estimated from a free-text treatment description.

    total_cost is always unit_cost * quantity and cannot be set directly.
    """
    model_config = ConfigDict(use_enum_values=True, frozen=True)

    item_type: ItemType
    item_category: str
    item_name: str
    item_description: Optional[str] = None
    quantity: int = Field(1, ge=1)
    unit: str
    dosage: Optional[str] = None
    duration: Optional[str] = None
    unit_cost: Decimal
    service_date: date
    urgency: Urgency = "routine"
    indication: Optional[str] = None

    @computed_field
    @property
    def total_cost(self) -> Decimal:
        return self.unit_cost * self.quantity


class ParseClaimTextRequest(BaseModel):
    claim_text: str
    service_date: Optional[date] = None
    primary_diagnosis: Optional[str] = None


class ParseClaimTextResponse(BaseModel):
    count: int
    total_cost: Decimal
    items: List[ParsedClaimItem]


class ClaimTextInput(BaseModel):
    claim_id: int
    treatment_procedure: str
    primary_diagnosis: Optional[str] = None
    date_of_treatment: Optional[date] = None


class ParsedClaimText(BaseModel):
    claim_id: int
    items: List[ParsedClaimItem]


class ClaimCreate(BaseModel):
    unique_claim_id: str
    unique_beneficiary_id: str
    beneficiary_name: str
    tpa_id: int
    facility_id: int
    batch_number: Optional[str] = None
    primary_diagnosis: Optional[str] = None
    treatment_procedure: Optional[str] = None
    date_of_admission: Optional[date] = None
    date_of_treatment: Optional[date] = None
    date_of_discharge: Optional[date] = None
    date_of_claim_submission: Optional[date] = None
    total_cost_of_care: Optional[Decimal] = None
    approved_cost_of_care: Optional[Decimal] = None
    decision: Optional[Literal["approved", "rejected", "pending"]] = None
    created_by: Optional[int] = None

    @field_validator("unique_claim_id", "unique_beneficiary_id")
    def normalize_ids(cls, v):
        if isinstance(v, str):
            return v.upper().strip()
        return v


class MigrationRequest(BaseModel):
    action: Literal["test", "migrate_single", "migrate_facility", "migrate_all"]
    facility_id: Optional[int] = None
    claim_id: Optional[int] = None
    test_only: bool = False


class ClaimValidationError(BaseModel):
    error_code: str
    error_title: str
    error_description: str
    error_type: Literal["validation", "discrepancy", "fraud", "quality"]
    error_category: Literal["missing_data", "duplicate", "cost_anomaly", "decision_mismatch"]
    severity: Literal["low", "medium", "high", "critical"]
    claim_id: Optional[int] = None
    field_name: Optional[str] = None
    expected_value: Optional[str] = None
    actual_value: Optional[str] = None
    expected_amount: Optional[float] = None
    actual_amount: Optional[float] = None
    amount_deviation: Optional[float] = None
    deviation_percentage: Optional[float] = None


class ValidationReport(BaseModel):
    is_valid: bool
    errors: List[ClaimValidationError]
    total_errors: int
    critical_errors: int
    high_errors: int
    medium_errors: int
    low_errors: int


class ErrorStatistics(BaseModel):
    total_errors: int
    open_errors: int
    resolved_errors: int
    critical_errors: int
    high_errors: int
    medium_errors: int
    low_errors: int
    errors_by_category: Dict[str, int]
    errors_by_type: Dict[str, int]
