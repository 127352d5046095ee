"""Heuristic itemization of free-text treatment descriptions.

Legacy claims carry the whole treatment as one text blob, e.g.
"PCV, HBSAG, TAB CEFUROXIME 500MG BD 5/7, CAESAREAN SECTION". This module
splits such a blob into claim items, guesses the type and category of each
item from keyword tables and estimates its cost from a static base cost
table. The output is an estimate for review, never a verified bill.
"""

import logging
import re
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Union

from app.model import ClaimTextInput, ParsedClaimItem, ParsedClaimText
from app.rule_loader import get_parser_rules

logger = logging.getLogger(__name__)

SPLIT_PATTERN = re.compile(r"[,;]+")
SKIP_TOKEN_PATTERN = re.compile(r"(total|grand total|amount|₦|\d+\.\d+)", re.IGNORECASE)
MIN_TOKEN_LENGTH = 3

DOSAGE_PATTERNS = [
    re.compile(r"(\d+(?:\.\d+)?)\s*mg", re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*ml", re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*g", re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*iu", re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*mcg", re.IGNORECASE),
]

# "N times daily" runs before the bare abbreviations so "daily" is consumed with its count
FREQUENCY_PATTERNS = [
    re.compile(r"(\d+/\d+)"),  # 5/7, 3/7
    re.compile(r"(\d+\s*times?\s*daily?)", re.IGNORECASE),
    re.compile(r"\b(daily|bd|tds|qds|b\.d|t\.d\.s|q\.d\.s)\b", re.IGNORECASE),
    re.compile(r"(\d+\s*hrly)", re.IGNORECASE),
    re.compile(r"\b(stat)\b", re.IGNORECASE),
]

QUANTITY_PATTERN = re.compile(r"(\d+)\s*(times?|days?|units?|packs?|bottles?)", re.IGNORECASE)

SAMPLE_CLAIM_TEXT = (
    "PCV, HBSAG, HCV, GROUPING & CROSS MATCHING, IVF 5% DS 500ML 4 HRLY, "
    "IVF N/S 500ML 4 HRLY, IV CEFTRIAZONE 1G 12 HRLY, IV FLAGYL 500MG 8 HRLY, "
    "IV PCM 600MG 8 HRLY, IM PENTAZOCINE 30MG 6 HRLY, IM DICLOFENAC 75MG 12 HRLY, "
    "TAB CEFUROXIME 500MG BD 5/7, TAB METRONIDAZOLE 400MG TDS 5/7, TAB PCM 1G TDS 5/7, "
    "TAB DICLOFENAC BD 3/7, CAESEREAN SECTION, CONSUMABLES, "
    "INITIAL SPECIALIST CONSULTATION, BED FEES, NURSING CARE"
)


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(keyword in text for keyword in keywords)


def _pick_category(lower_text: str, group: Dict) -> str:
    for sub in group["subcategories"]:
        if _contains_any(lower_text, sub["keywords"]):
            return sub["category"]
    return group["default_category"]


def categorize_item(item_text: str) -> Dict[str, str]:
    """Assign an item type and category from the keyword tables.

    Types are tried in table order (procedure, investigation, medication);
    text matching none of them is an other_service.
    """
    rules = get_parser_rules()
    lower_text = item_text.lower()

    for group in rules["item_types"]:
        if _contains_any(lower_text, group["keywords"]):
            return {"item_type": group["item_type"], "item_category": _pick_category(lower_text, group)}

    fallback = rules["fallback"]
    return {"item_type": fallback["item_type"], "item_category": _pick_category(lower_text, fallback)}


def extract_dosage(item_text: str) -> Dict[str, Optional[str]]:
    for pattern in DOSAGE_PATTERNS:
        match = pattern.search(item_text)
        if match:
            return {
                "dosage": match.group(0),
                "clean_name": pattern.sub("", item_text, count=1).strip(),
            }

    return {"dosage": None, "clean_name": item_text}


def extract_frequency(item_text: str) -> Dict[str, Optional[str]]:
    """Pull dosing frequency and course length out of an item name.

    Every match of every pattern ends up in duration, and every match is
    stripped from the returned name.
    """
    found: List[str] = []
    clean_name = item_text

    for pattern in FREQUENCY_PATTERNS:
        matches = [m.group(0) for m in pattern.finditer(clean_name)]
        if matches:
            found.extend(matches)
            clean_name = pattern.sub("", clean_name).strip()

    return {"duration": ", ".join(found) if found else None, "clean_name": clean_name}


def estimate_cost(item_type: str, item_name: str) -> Dict[str, Union[Decimal, int]]:
    rules = get_parser_rules()
    lower_name = item_name.lower()

    quantity = 1
    quantity_match = QUANTITY_PATTERN.search(lower_name)
    if quantity_match:
        quantity = int(quantity_match.group(1)) or 1

    category = categorize_item(item_name)["item_category"].lower()
    type_costs = rules["base_costs"].get(item_type, {})
    base_cost = type_costs.get(category) or type_costs.get("medical service") or rules["default_cost"]

    unit_cost = Decimal(str(base_cost))
    for adjustment in rules["cost_multipliers"]:
        if _contains_any(lower_name, adjustment["keywords"]):
            unit_cost *= Decimal(str(adjustment["multiplier"]))

    return {
        "unit_cost": unit_cost.quantize(Decimal("1"), rounding=ROUND_HALF_UP),
        "quantity": quantity,
    }


def _pick_urgency(lower_text: str) -> str:
    for level in get_parser_rules()["urgency"]:
        if _contains_any(lower_text, level["keywords"]):
            return level["level"]
    return "routine"


def _pick_unit(item_type: str, lower_text: str) -> str:
    unit_rules = get_parser_rules()["units"].get(item_type, {})
    for rule in unit_rules.get("rules", []):
        if rule["keyword"] in lower_text:
            return rule["unit"]
    return unit_rules.get("default", "units")


def parse_claim_text(
    claim_text: str,
    service_date: Union[date, str, None] = None,
    primary_diagnosis: Optional[str] = "",
) -> List[ParsedClaimItem]:
    """Split a treatment description into estimated claim items.

    Never fails: text that matches no keyword still yields an
    other_service item at the generic service cost.
    """
    if not claim_text or not claim_text.strip():
        return []
    if service_date is None:
        service_date = date.today()

    tokens = [token.strip() for token in SPLIT_PATTERN.split(claim_text)]
    tokens = [token for token in tokens if token and not SKIP_TOKEN_PATTERN.fullmatch(token)]

    parsed_items: List[ParsedClaimItem] = []
    for item_text in tokens:
        if len(item_text) < MIN_TOKEN_LENGTH:
            continue

        lower_text = item_text.lower()
        category = categorize_item(item_text)
        dosage = extract_dosage(item_text)
        frequency = extract_frequency(dosage["clean_name"])
        cost = estimate_cost(category["item_type"], item_text)
        final_name = " ".join(frequency["clean_name"].split())

        parsed_items.append(
            ParsedClaimItem(
                item_type=category["item_type"],
                item_category=category["item_category"],
                item_name=final_name or item_text,
                item_description=item_text if item_text != final_name else None,
                quantity=cost["quantity"],
                unit=_pick_unit(category["item_type"], lower_text),
                dosage=dosage["dosage"],
                duration=frequency["duration"],
                unit_cost=cost["unit_cost"],
                service_date=service_date,
                urgency=_pick_urgency(lower_text),
                indication=primary_diagnosis or None,
            )
        )

    logger.debug("Parsed %d claim items from %d tokens", len(parsed_items), len(tokens))
    return parsed_items


def parse_multiple_claim_texts(claims: Iterable[ClaimTextInput]) -> List[ParsedClaimText]:
    return [
        ParsedClaimText(
            claim_id=claim.claim_id,
            items=parse_claim_text(
                claim.treatment_procedure,
                claim.date_of_treatment or date.today(),
                claim.primary_diagnosis,
            ),
        )
        for claim in claims
    ]


def parse_sample_claim_data() -> List[ParsedClaimItem]:
    return parse_claim_text(SAMPLE_CLAIM_TEXT, date(2024, 1, 15), "Emergency Caesarean Section")
