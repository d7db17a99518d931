"""Shared households and settings for the tax engine tests."""

import pytest

from taxmodels import (
    AppSettings,
    EarnedIncome,
    SpouseProfile,
    TaxpayerProfile,
)
from taxutils.tax_utils import get_indexed_federal_constants


@pytest.fixture
def settings_2025():
    return AppSettings(tax_year=2025)


@pytest.fixture
def single_worker():
    """Single Michigan filer, age 40."""
    return TaxpayerProfile(age=40, filing_status="single", state="MI")


@pytest.fixture
def single_worker_no_state():
    """Single filer in a state without an income tax module."""
    return TaxpayerProfile(age=40, filing_status="single", state="FL")


@pytest.fixture
def retired_single():
    return TaxpayerProfile(age=70, filing_status="single", state="MI", birth_year=1955)


@pytest.fixture
def married_couple():
    taxpayer = TaxpayerProfile(age=60, filing_status="married_filing_jointly", state="MI", spouse_age=58)
    return taxpayer, SpouseProfile(age=58)


@pytest.fixture
def wages_50k():
    return (EarnedIncome(id="job", type="wages", amount=50_000),)


@pytest.fixture
def single_constants_2025():
    return get_indexed_federal_constants(2025, "single")
