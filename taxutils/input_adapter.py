# taxutils/input_adapter.py
"""
Builds the engine's frozen input objects from plain dictionaries (form posts,
JSON scenarios). Keys may be camelCase or snake_case; unknown keys are dropped.
"""
from dataclasses import fields
from typing import Any, Dict, List, Optional, Sequence, Tuple, Type
import logging
import re

from taxmodels import (
    AnnuityDetails,
    AnnuityIncome,
    AppSettings,
    DeductionSet,
    HousingInfo,
    INCOME_VARIANTS,
    IncomeSource,
    ItemizedDeductions,
    LifeInsuranceDetails,
    LifeInsuranceIncome,
    MedicareEnrollment,
    RothIncome,
    SpouseProfile,
    TaxpayerProfile,
)
from taxutils.currency import clean_currency, clean_percent

logger = logging.getLogger(__name__)

VARIANT_BY_TYPE: Dict[str, Type[IncomeSource]] = {
    income_type: variant for variant in INCOME_VARIANTS for income_type in variant.ALLOWED_TYPES
}

# Form spellings that differ from the field names after snake-casing
_KEY_ALIASES: Dict[str, str] = {
    "annuity_details": "details",
    "life_insurance_details": "details",
    "current_balance": "account_value",
    "prior_year_end_balance": "prior_year_value",
    "state_of_residence": "state",
}
_CURRENCY_FIELDS = frozenset({
    "amount", "account_value", "prior_year_value", "actual_rmd", "total_contributions",
    "basis_amount", "current_value", "expected_return", "basis_remaining",
    "total_premiums_paid", "current_cash_value", "existing_loans", "prior_withdrawals",
    "policy_face_amount", "property_taxes_paid", "property_taxable_value",
    "salt", "mortgage_interest", "charitable_giving", "medical_expenses", "other_deductions",
    "miscellaneous", "above_the_line", "state_other_credits",
})


def to_snake_case(key: str) -> str:
    """'accountValue' -> 'account_value', 'isMEC' -> 'is_mec', 'michiganResident6Months' -> 'michigan_resident_6_months'."""
    key = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", key)
    key = re.sub(r"(?<=[a-zA-Z])(?=[0-9])", "_", key)
    return key.replace("-", "_").lower()


def _normalize_keys(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {}
    for key, value in data.items():
        snake = to_snake_case(key)
        normalized[_KEY_ALIASES.get(snake, snake)] = value
    return normalized


def _build(cls, data: Optional[Dict[str, Any]]):
    """Instantiates `cls` from the keys of `data` that match its fields."""
    data = _normalize_keys(data or {})
    field_names = {f.name for f in fields(cls)}
    kwargs = {}
    for key, value in data.items():
        if key not in field_names:
            continue
        if key in _CURRENCY_FIELDS and value is not None:
            value = clean_currency(value)
        kwargs[key] = value
    return cls(**kwargs)


# ----------------------------------------------------------------------
# Income sources
# ----------------------------------------------------------------------

def build_income_source(row: Dict[str, Any]) -> IncomeSource:
    """
    Dispatches on the row's `type` to the matching IncomeSource variant.

    Unrecognised types come back as a bare IncomeSource, which the engine
    reports as unsupported and counts as $0.
    """
    data = _normalize_keys(row)
    income_type = str(data.get("type", "")).strip()
    data["type"] = income_type
    data.setdefault("id", data.get("name") or income_type or "unnamed")
    data.setdefault("amount", 0.0)

    variant = VARIANT_BY_TYPE.get(income_type)
    if variant is None:
        logger.warning(f"Unknown income type '{income_type}' for source '{data['id']}'.")
        return _build(IncomeSource, data)

    roth = data.pop("roth_details", None)
    if variant is RothIncome and isinstance(roth, dict):
        data.update(_normalize_keys(roth))

    details = data.get("details")
    if variant is AnnuityIncome and isinstance(details, dict):
        data["details"] = _build(AnnuityDetails, details)
    elif variant is LifeInsuranceIncome and isinstance(details, dict):
        details = _normalize_keys(details)
        if "access_method" in details:
            data.setdefault("access_method", details["access_method"])
        if "premium_payments" in details:
            details["premium_payments"] = tuple(clean_currency(p) for p in details["premium_payments"])
        data["details"] = _build(LifeInsuranceDetails, details)

    return _build(variant, data)


def build_income_sources(rows: Sequence[Dict[str, Any]]) -> Tuple[IncomeSource, ...]:
    return tuple(build_income_source(row) for row in rows or [])


# ----------------------------------------------------------------------
# Household, deductions and settings
# ----------------------------------------------------------------------

def build_taxpayer_profile(data: Dict[str, Any]) -> TaxpayerProfile:
    data = _normalize_keys(data)
    housing = data.get("housing")
    if isinstance(housing, dict):
        data["housing"] = _build(HousingInfo, housing)
    return _build(TaxpayerProfile, data)


def build_spouse_profile(data: Optional[Dict[str, Any]]) -> Optional[SpouseProfile]:
    if not data or data.get("age") is None:
        return None
    return _build(SpouseProfile, data)


def build_deductions(data: Optional[Dict[str, Any]]) -> DeductionSet:
    data = _normalize_keys(data or {})
    itemized = data.get("itemized")
    if isinstance(itemized, dict):
        data["itemized"] = _build(ItemizedDeductions, itemized)
    return _build(DeductionSet, data)


def build_settings(data: Optional[Dict[str, Any]]) -> AppSettings:
    data = _normalize_keys(data or {})
    medicare = data.get("medicare")
    if isinstance(medicare, dict):
        data["medicare"] = _build(MedicareEnrollment, medicare)
    if data.get("inflation_rate") is not None:
        data["inflation_rate"] = clean_percent(data["inflation_rate"])
    return _build(AppSettings, data)


def get_tax_inputs(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Converts one scenario payload into keyword arguments for
    calculate_comprehensive_taxes.

    Expected keys: taxpayer, spouse, incomeSources / income_sources,
    deductions, appSettings / settings, ficaEnabled / fica_enabled.
    """
    data = _normalize_keys(payload)
    sources: List[Dict[str, Any]] = data.get("income_sources") or []
    return {
        "taxpayer": build_taxpayer_profile(data.get("taxpayer") or {}),
        "spouse": build_spouse_profile(data.get("spouse")),
        "income_sources": build_income_sources(sources),
        "deductions": build_deductions(data.get("deductions")),
        "settings": build_settings(data.get("app_settings") or data.get("settings")),
        "fica_enabled": bool(data.get("fica_enabled", False)),
    }
