"""
Certification credit matching.

Imported rating-system credits (GRIHA, IGBC, LEED ...) are linked to the
built-in green checks by keyword containment on the credit name.  The
keyword table is closed and versioned: a credit that matches no rule stays
pending, scores zero and is reported as unmatched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from siteplan.models.schemas import CheckStatus, ComplianceCheck, GreenCredit, GreenRuleSet

logger = logging.getLogger(__name__)

CREDIT_KEYWORDS_VERSION = "1"


@dataclass(frozen=True)
class CreditRule:
    keywords: tuple[str, ...]
    requires: tuple[str, ...]  # check ids that must all be achieved


CREDIT_RULES: tuple[CreditRule, ...] = (
    CreditRule(("ventilation", "wind"), ("ventilation",)),
    CreditRule(("daylight", "solar"), ("daylighting",)),
    CreditRule(("landscape", "green cover", "vegetation"), ("green_cover",)),
    CreditRule(("open space",), ("open_space",)),
    CreditRule(("heat island",), ("ventilation", "green_cover")),
    CreditRule(("transit", "connectivity"), ("transit_access",)),
    CreditRule(("amenit", "proximity"), ("amenity_proximity",)),
)

# Added when the rule set has no location category of its own
LOCATION_PLACEHOLDERS: tuple[GreenCredit, ...] = (
    GreenCredit(code="LOC-1", name="Access to Public Transit", category="Location", points=2),
    GreenCredit(code="LOC-2", name="Proximity to Amenities", category="Location", points=2),
)


@dataclass
class CreditEvaluation:
    credits: list[ComplianceCheck]
    achieved_points: int
    total_points: int
    unmatched: list[str]

    @property
    def score(self) -> int:
        if self.total_points <= 0:
            return 0
        return round(self.achieved_points / self.total_points * 100)


def matching_rules(credit_name: str) -> list[CreditRule]:
    name = credit_name.lower()
    return [rule for rule in CREDIT_RULES if any(k in name for k in rule.keywords)]


def _credit_status(rules: list[CreditRule], checks: dict[str, CheckStatus]) -> CheckStatus:
    if any(all(checks.get(c) == CheckStatus.ACHIEVED for c in r.requires) for r in rules):
        return CheckStatus.ACHIEVED
    if all(any(checks.get(c) == CheckStatus.FAILED for c in r.requires) for r in rules):
        return CheckStatus.FAILED
    return CheckStatus.PENDING


def evaluate_credits(rule_set: GreenRuleSet, checks: dict[str, CheckStatus]) -> CreditEvaluation:
    """Score each credit of ``rule_set`` from the built-in check statuses."""
    credits = list(rule_set.credits)
    if not any("location" in c.category.lower() for c in credits):
        credits += LOCATION_PLACEHOLDERS

    results: list[ComplianceCheck] = []
    unmatched: list[str] = []
    achieved = total = 0
    for credit in credits:
        rules = matching_rules(credit.name)
        if rules:
            status = _credit_status(rules, checks)
        else:
            status = CheckStatus.PENDING
            unmatched.append(credit.name)
        points = credit.points if status == CheckStatus.ACHIEVED else 0
        total += credit.points
        achieved += points
        results.append(ComplianceCheck(
            id=credit.code,
            category="green",
            label=credit.name,
            status=status,
            points=points,
            threshold=float(credit.points),
        ))

    if unmatched:
        logger.warning(
            "%d %s credit(s) match no check (keywords v%s): %s",
            len(unmatched), rule_set.certification_type, CREDIT_KEYWORDS_VERSION, unmatched,
        )
    return CreditEvaluation(results, achieved, total, unmatched)
