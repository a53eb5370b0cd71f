# SPDX-License-Identifier: Apache-2.0

"""
Means-test eligibility engine.

Scores a household's finances against fixed policy thresholds. The result
has three outcomes: PASSED, FAILED, and PENDING for everything in between
(a middle score band, or a low score with income or disposable income over
its threshold). PENDING cases are left for a reviewer to decide.
"""

from typing import Any, Dict, Iterable, Optional
from dataclasses import dataclass, field
from ..models.entities import Application, HouseholdMember
from ..models.enums import MeansTestStatus

INCOME_THRESHOLD = 3500
PER_CAPITA_THRESHOLD = 1000
DISPOSABLE_INCOME_THRESHOLD = 500

INCOME_WEIGHT = 3
PER_CAPITA_WEIGHT = 2
DISPOSABLE_INCOME_WEIGHT = 2

PASS_MAX_SCORE = 2
FAIL_MIN_SCORE = 5


@dataclass
class MeansTestResult:
    """Outcome of a means-test evaluation."""
    score: int
    status: MeansTestStatus
    details: Dict[str, Any] = field(default_factory=dict)


def calculate_total_income(
    monthly_income: float,
    members: Iterable[HouseholdMember]
) -> float:
    """Applicant income plus every member's income (absent counts as zero)."""
    return monthly_income + sum(member.monthly_income or 0 for member in members)


def score_household(
    total_income: float,
    per_capita_income: float,
    disposable_income: float
) -> int:
    """Accumulate threshold penalties; each threshold is exceeded strictly."""
    score = 0
    if total_income > INCOME_THRESHOLD:
        score += INCOME_WEIGHT
    if per_capita_income > PER_CAPITA_THRESHOLD:
        score += PER_CAPITA_WEIGHT
    if disposable_income > DISPOSABLE_INCOME_THRESHOLD:
        score += DISPOSABLE_INCOME_WEIGHT
    return score


def decide_status(
    score: int,
    total_income: float,
    disposable_income: float
) -> MeansTestStatus:
    """
    Map a score to a means-test status.

    Args:
        score: Accumulated threshold score (0-7)
        total_income: Household total monthly income
        disposable_income: Total income less expenses

    Returns:
        PASSED, FAILED, or PENDING when neither rule applies
    """
    if (
        score <= PASS_MAX_SCORE
        and total_income <= INCOME_THRESHOLD
        and disposable_income <= DISPOSABLE_INCOME_THRESHOLD
    ):
        return MeansTestStatus.PASSED
    if score >= FAIL_MIN_SCORE:
        return MeansTestStatus.FAILED
    return MeansTestStatus.PENDING


def evaluate(
    application: Application,
    household_members: Optional[Iterable[HouseholdMember]] = None
) -> MeansTestResult:
    """
    Run the means test for an application and its household.

    Expenses are not itemized per member; only the applicant's declared
    household expenses are used. Household size is validated as >= 1 when
    the application is captured.

    Args:
        application: Application with monthly income, expenses and household size
        household_members: Members whose incomes count toward the total

    Returns:
        MeansTestResult with score, status and calculation details
    """
    members = list(household_members or [])

    total_income = calculate_total_income(application.monthly_income, members)
    total_expenses = application.monthly_expenses
    disposable_income = total_income - total_expenses
    per_capita_income = total_income / application.household_size

    score = score_household(total_income, per_capita_income, disposable_income)
    status = decide_status(score, total_income, disposable_income)

    return MeansTestResult(
        score=score,
        status=status,
        details={
            "totalIncome": total_income,
            "totalExpenses": total_expenses,
            "disposableIncome": disposable_income,
            "perCapitaIncome": per_capita_income,
            "threshold": INCOME_THRESHOLD,
        }
    )
