"""Statutory rates and withholding tables by tax year.

Federal tables follow IRS Publication 15-T (percentage method, annualized,
Form W-4 2020 or later). California tables follow EDD DE 44 Method B, kept
in annual form and de-annualized by the withholding calculator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from payroll_tax_engine.calculators.types import CaliforniaFilingStatus, FederalFilingStatus

D = Decimal


class TaxTableNotFoundError(Exception):
    """Raised when no rate table exists for the requested tax year."""

    def __init__(self, year: int):
        self.year = year
        super().__init__(f"No tax tables available for tax year {year}")


@dataclass(frozen=True)
class FederalBracket:
    """Pub 15-T annual percentage-method row."""

    min_amount: Decimal
    max_amount: Decimal | None
    tentative_amount: Decimal
    rate: Decimal


@dataclass(frozen=True)
class StateBracket:
    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal


@dataclass(frozen=True)
class FederalRates:
    social_security_wage_base: Decimal
    social_security_rate: Decimal
    medicare_rate: Decimal
    additional_medicare_rate: Decimal
    additional_medicare_threshold: Decimal
    futa_wage_base: Decimal
    futa_gross_rate: Decimal
    futa_credit_rate: Decimal
    futa_net_rate: Decimal
    futa_deposit_threshold: Decimal
    # Worksheet 1A step 1(g), applied when W-4 step 2 is not checked
    standard_deduction: dict[FederalFilingStatus, Decimal]
    # (filing status, step 2 checked) -> brackets
    brackets: dict[tuple[FederalFilingStatus, bool], tuple[FederalBracket, ...]]
    form941_deposit_threshold: Decimal = D("2500")
    lookback_threshold: Decimal = D("50000")
    next_day_deposit_threshold: Decimal = D("100000")


@dataclass(frozen=True)
class CaliforniaRates:
    sdi_rate: Decimal
    sui_wage_base: Decimal
    ett_wage_base: Decimal
    futa_credit_reduction_rate: Decimal
    # Annual DE 44 amounts. Keys: "single", "married_low", "married_high", "head_of_household";
    # married_low covers 0 or 1 allowances, married_high 2 or more.
    low_income_exemption: dict[str, Decimal]
    standard_deduction: dict[str, Decimal]
    estimated_deduction_per_allowance: Decimal
    exemption_allowance_credit: Decimal
    brackets: dict[CaliforniaFilingStatus, tuple[StateBracket, ...]] = field(default_factory=dict)


@dataclass(frozen=True)
class TaxRates:
    year: int
    federal: FederalRates
    california: CaliforniaRates


def _fed(*rows: tuple[int, int | None, str, str]) -> tuple[FederalBracket, ...]:
    return tuple(
        FederalBracket(D(lo), D(hi) if hi is not None else None, D(base), D(rate))
        for lo, hi, base, rate in rows
    )


def _ca(*rows: tuple[int, int | None, str]) -> tuple[StateBracket, ...]:
    return tuple(StateBracket(D(lo), D(hi) if hi is not None else None, D(rate)) for lo, hi, rate in rows)


_S = FederalFilingStatus.SINGLE
_MFJ = FederalFilingStatus.MARRIED_JOINTLY
_HOH = FederalFilingStatus.HEAD_OF_HOUSEHOLD

FEDERAL_BRACKETS_2025 = {
    (_S, False): _fed(
        (0, 6400, "0", "0"),
        (6400, 18325, "0", "0.10"),
        (18325, 54875, "1192.50", "0.12"),
        (54875, 109750, "5578.50", "0.22"),
        (109750, 203700, "17651.00", "0.24"),
        (203700, 256925, "40199.00", "0.32"),
        (256925, 632750, "57231.00", "0.35"),
        (632750, None, "188769.75", "0.37"),
    ),
    (_S, True): _fed(
        (0, 7500, "0", "0"),
        (7500, 13463, "0", "0.10"),
        (13463, 31738, "596.25", "0.12"),
        (31738, 59175, "2789.25", "0.22"),
        (59175, 106150, "8825.50", "0.24"),
        (106150, 132763, "20099.50", "0.32"),
        (132763, 320675, "28615.50", "0.35"),
        (320675, None, "94384.88", "0.37"),
    ),
    (_MFJ, False): _fed(
        (0, 17100, "0", "0"),
        (17100, 40950, "0", "0.10"),
        (40950, 114050, "2385.00", "0.12"),
        (114050, 223800, "11157.00", "0.22"),
        (223800, 411700, "35302.00", "0.24"),
        (411700, 518150, "80398.00", "0.32"),
        (518150, 768700, "114462.00", "0.35"),
        (768700, None, "202154.50", "0.37"),
    ),
    (_MFJ, True): _fed(
        (0, 15000, "0", "0"),
        (15000, 26925, "0", "0.10"),
        (26925, 63475, "1192.50", "0.12"),
        (63475, 118350, "5578.50", "0.22"),
        (118350, 212300, "17651.00", "0.24"),
        (212300, 265525, "40199.00", "0.32"),
        (265525, 390800, "57231.00", "0.35"),
        (390800, None, "101077.25", "0.37"),
    ),
    (_HOH, False): _fed(
        (0, 13900, "0", "0"),
        (13900, 30900, "0", "0.10"),
        (30900, 78750, "1700.00", "0.12"),
        (78750, 117250, "7442.00", "0.22"),
        (117250, 211200, "15912.00", "0.24"),
        (211200, 264400, "38460.00", "0.32"),
        (264400, 640250, "55484.00", "0.35"),
        (640250, None, "187031.50", "0.37"),
    ),
    (_HOH, True): _fed(
        (0, 11250, "0", "0"),
        (11250, 19750, "0", "0.10"),
        (19750, 43675, "850.00", "0.12"),
        (43675, 62925, "3721.00", "0.22"),
        (62925, 109900, "7956.00", "0.24"),
        (109900, 136500, "19230.00", "0.32"),
        (136500, 324425, "27742.00", "0.35"),
        (324425, None, "93515.75", "0.37"),
    ),
}

FEDERAL_BRACKETS_2026 = {
    (_S, False): _fed(
        (0, 7500, "0", "0"),
        (7500, 19900, "0", "0.10"),
        (19900, 57900, "1240.00", "0.12"),
        (57900, 113200, "5800.00", "0.22"),
        (113200, 209275, "17966.00", "0.24"),
        (209275, 263725, "41024.00", "0.32"),
        (263725, 648100, "58448.00", "0.35"),
        (648100, None, "192979.25", "0.37"),
    ),
    (_S, True): _fed(
        (0, 8050, "0", "0"),
        (8050, 14250, "0", "0.10"),
        (14250, 33250, "620.00", "0.12"),
        (33250, 60900, "2900.00", "0.22"),
        (60900, 108938, "8983.00", "0.24"),
        (108938, 136163, "20512.00", "0.32"),
        (136163, 328350, "29224.00", "0.35"),
        (328350, None, "96489.63", "0.37"),
    ),
    (_MFJ, False): _fed(
        (0, 19300, "0", "0"),
        (19300, 44100, "0", "0.10"),
        (44100, 120100, "2480.00", "0.12"),
        (120100, 230700, "11600.00", "0.22"),
        (230700, 422850, "35932.00", "0.24"),
        (422850, 531750, "82048.00", "0.32"),
        (531750, 788000, "116896.00", "0.35"),
        (788000, None, "206583.50", "0.37"),
    ),
    (_MFJ, True): _fed(
        (0, 16100, "0", "0"),
        (16100, 28500, "0", "0.10"),
        (28500, 66500, "1240.00", "0.12"),
        (66500, 121800, "5800.00", "0.22"),
        (121800, 217875, "17966.00", "0.24"),
        (217875, 272325, "41024.00", "0.32"),
        (272325, 400450, "58448.00", "0.35"),
        (400450, None, "103291.75", "0.37"),
    ),
    (_HOH, False): _fed(
        (0, 15550, "0", "0"),
        (15550, 33250, "0", "0.10"),
        (33250, 83000, "1770.00", "0.12"),
        (83000, 121250, "7740.00", "0.22"),
        (121250, 217300, "16155.00", "0.24"),
        (217300, 271750, "39207.00", "0.32"),
        (271750, 656150, "56631.00", "0.35"),
        (656150, None, "191171.00", "0.37"),
    ),
    (_HOH, True): _fed(
        (0, 12075, "0", "0"),
        (12075, 20925, "0", "0.10"),
        (20925, 45800, "885.00", "0.12"),
        (45800, 64925, "3870.00", "0.22"),
        (64925, 112950, "8077.50", "0.24"),
        (112950, 140175, "19603.50", "0.32"),
        (140175, 332375, "28315.50", "0.35"),
        (332375, None, "95585.50", "0.37"),
    ),
}

W4_STANDARD_DEDUCTION = {
    _S: D("8600"),
    _MFJ: D("12900"),
    _HOH: D("8600"),
}

CA_BRACKETS_2025 = {
    CaliforniaFilingStatus.SINGLE: _ca(
        (0, 11079, "0.011"),
        (11079, 26264, "0.022"),
        (26264, 41452, "0.044"),
        (41452, 57542, "0.066"),
        (57542, 72724, "0.088"),
        (72724, 371479, "0.1023"),
        (371479, 445771, "0.1133"),
        (445771, 742953, "0.1243"),
        (742953, 1000000, "0.1353"),
        (1000000, None, "0.1463"),
    ),
    CaliforniaFilingStatus.MARRIED_ONE_INCOME: _ca(
        (0, 22158, "0.011"),
        (22158, 52528, "0.022"),
        (52528, 82904, "0.044"),
        (82904, 115084, "0.066"),
        (115084, 145448, "0.088"),
        (145448, 742958, "0.1023"),
        (742958, 891542, "0.1133"),
        (891542, 1000000, "0.1243"),
        (1000000, 1485906, "0.1353"),
        (1485906, None, "0.1463"),
    ),
    CaliforniaFilingStatus.HEAD_OF_HOUSEHOLD: _ca(
        (0, 22173, "0.011"),
        (22173, 52530, "0.022"),
        (52530, 67716, "0.044"),
        (67716, 83805, "0.066"),
        (83805, 98990, "0.088"),
        (98990, 505208, "0.1023"),
        (505208, 606251, "0.1133"),
        (606251, 1000000, "0.1243"),
        (1000000, 1010417, "0.1353"),
        (1010417, None, "0.1463"),
    ),
}

_CA_LOW_INCOME_2025 = {
    "single": D("17992"),
    "married_low": D("17992"),
    "married_high": D("35984"),
    "head_of_household": D("35984"),
}

_CA_STANDARD_DEDUCTION_2025 = {
    "single": D("5540"),
    "married_low": D("5540"),
    "married_high": D("11080"),
    "head_of_household": D("11080"),
}


def _federal(brackets: dict, *, ss_wage_base: str) -> FederalRates:
    return FederalRates(
        social_security_wage_base=D(ss_wage_base),
        social_security_rate=D("0.062"),
        medicare_rate=D("0.0145"),
        additional_medicare_rate=D("0.009"),
        additional_medicare_threshold=D("200000"),
        futa_wage_base=D("7000"),
        futa_gross_rate=D("0.06"),
        futa_credit_rate=D("0.054"),
        futa_net_rate=D("0.006"),
        futa_deposit_threshold=D("500"),
        standard_deduction=W4_STANDARD_DEDUCTION,
        brackets=brackets,
    )


TAX_RATES: dict[int, TaxRates] = {
    2025: TaxRates(
        year=2025,
        federal=_federal(FEDERAL_BRACKETS_2025, ss_wage_base="176100"),
        california=CaliforniaRates(
            sdi_rate=D("0.012"),
            sui_wage_base=D("7000"),
            ett_wage_base=D("7000"),
            futa_credit_reduction_rate=D("0.012"),
            low_income_exemption=_CA_LOW_INCOME_2025,
            standard_deduction=_CA_STANDARD_DEDUCTION_2025,
            estimated_deduction_per_allowance=D("1000"),
            exemption_allowance_credit=D("154.00"),
            brackets=CA_BRACKETS_2025,
        ),
    ),
    2026: TaxRates(
        year=2026,
        federal=_federal(FEDERAL_BRACKETS_2026, ss_wage_base="184500"),
        california=CaliforniaRates(
            sdi_rate=D("0.013"),
            sui_wage_base=D("7000"),
            ett_wage_base=D("7000"),
            # Projected; finalized after Nov 10 of the tax year
            futa_credit_reduction_rate=D("0.015"),
            # 2025 DE 44 PIT amounts carried forward; no 2026 tables are published here
            low_income_exemption=_CA_LOW_INCOME_2025,
            standard_deduction=_CA_STANDARD_DEDUCTION_2025,
            estimated_deduction_per_allowance=D("1000"),
            exemption_allowance_credit=D("154.00"),
            brackets=CA_BRACKETS_2025,
        ),
    ),
}


def get_tax_rates(year: int) -> TaxRates:
    """Return the rate table for a tax year."""
    try:
        return TAX_RATES[year]
    except KeyError:
        raise TaxTableNotFoundError(year) from None


def supported_years() -> list[int]:
    return sorted(TAX_RATES)
