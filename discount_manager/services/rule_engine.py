from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfoNotFoundError

from discount_manager.core.clock import to_utc_naive
from discount_manager.core.config import settings
from discount_manager.core.exceptions import (
    InvalidFormula,
    RuleValidationError,
    ValidationIssue,
)
from discount_manager.enums.discounts import RuleKind, TargetScope
from discount_manager.services.expression import is_number, parse_formula

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


def to_money(value) -> Decimal:
    """Round to the currency's minor unit, half-up."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


# ===================== PRICE COMPUTATION =====================


def apply_discount(price: Decimal, rule) -> Decimal:
    """
    Transform `price` by one rule. Any object exposing `kind` and `value`
    works (ORM rules, schemas, preview specs).
    """
    kind = RuleKind(rule.kind)

    if kind == RuleKind.percentage:
        price = price * (1 - Decimal(str(rule.value)) / HUNDRED)
    elif kind == RuleKind.fixed:
        price = price - Decimal(str(rule.value))
    else:
        price = parse_formula(rule.value).evaluate(price)

    return max(price, ZERO)


def compute(base_price, rules: Sequence) -> Decimal:
    """
    Net price of `base_price` after the stack `rules`, in order.

    Pure: the same inputs always give the same output, and nothing is
    written back to the rules. Rounding happens once, at the end.
    """
    price = Decimal(str(base_price))
    for rule in rules:
        price = apply_discount(price, rule)
    return to_money(price)


def preview(rules: Sequence, prices: Iterable) -> List[Tuple[Decimal, Decimal]]:
    return [(to_money(p), compute(p, rules)) for p in prices]


# ===================== VALIDATION =====================


def _validate_number(kind: RuleKind, value) -> List[ValidationIssue]:
    if kind == RuleKind.percentage:
        if not is_number(value):
            return [ValidationIssue("value", "Percentage must be a number")]
        if not ZERO <= Decimal(str(value)) <= HUNDRED:
            return [ValidationIssue("value", "Percentage must be between 0 and 100")]
        return []

    if not is_number(value):
        return [ValidationIssue("value", "Fixed amount must be a number")]
    if Decimal(str(value)) < ZERO:
        return [ValidationIssue("value", "Fixed amount must not be negative")]
    return []


def check_formula(text: str) -> None:
    """Parse `text` and try it at the sample price; raises InvalidFormula."""
    sample = parse_formula(text).evaluate(settings.FORMULA_SAMPLE_PRICE)
    if sample < ZERO:
        raise InvalidFormula(
            text,
            f"formula gives a negative price ({sample}) at sample price "
            f"{settings.FORMULA_SAMPLE_PRICE}",
        )


def _validate_schedule(schedule) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    if schedule is None or schedule.start_at is None:
        return [ValidationIssue("schedule.start_at", "Start time is required")]

    try:
        start_at = to_utc_naive(schedule.start_at, schedule.timezone)
        end_at = (
            to_utc_naive(schedule.end_at, schedule.timezone)
            if schedule.end_at is not None
            else None
        )
    except (ZoneInfoNotFoundError, ValueError):
        return [ValidationIssue("schedule.timezone", f"Unknown timezone {schedule.timezone!r}")]

    if end_at is not None and end_at <= start_at:
        issues.append(ValidationIssue("schedule.end_at", "End time must be after start time"))
    return issues


def _check_value(kind: RuleKind, value) -> Tuple[List[ValidationIssue], Optional[InvalidFormula]]:
    if value is None or str(value).strip() == "":
        return [ValidationIssue("value", "Rule value is required")], None
    if kind == RuleKind.formula:
        try:
            check_formula(value)
        except InvalidFormula as exc:
            return [ValidationIssue("value", exc.reason)], exc
        return [], None
    return _validate_number(kind, value), None


def ensure_valid_value(kind, value) -> None:
    """Check a bare kind/value pair, as sent for a price preview."""
    issues, formula_error = _check_value(RuleKind(kind), value)
    if formula_error is not None:
        raise formula_error
    if issues:
        raise RuleValidationError(issues)


def _collect_issues(rule) -> Tuple[List[ValidationIssue], Optional[InvalidFormula]]:
    issues: List[ValidationIssue] = []
    formula_error: Optional[InvalidFormula] = None

    if not (rule.name or "").strip():
        issues.append(ValidationIssue("name", "Rule name is required"))

    try:
        kind = RuleKind(rule.kind)
    except ValueError:
        issues.append(ValidationIssue("kind", f"Unknown rule kind {rule.kind!r}"))
        kind = None

    if kind is not None:
        value_issues, formula_error = _check_value(kind, rule.value)
        issues.extend(value_issues)

    target = rule.target
    if target is None:
        issues.append(ValidationIssue("target", "Target is required"))
    else:
        try:
            TargetScope(target.scope)
        except ValueError:
            issues.append(ValidationIssue("target.scope", f"Unknown scope {target.scope!r}"))
        if not (target.scope_id or "").strip():
            issues.append(ValidationIssue("target.scope_id", "Target id is required"))

    issues.extend(_validate_schedule(rule.schedule))
    return issues, formula_error


def validate(rule) -> List[ValidationIssue]:
    """
    Check a rule definition (a DiscountRuleCreate/Update schema) and return
    every problem found; an empty list means the rule is valid.
    """
    issues, _ = _collect_issues(rule)
    return issues


def ensure_valid(rule) -> None:
    """Raise InvalidFormula or RuleValidationError listing every problem."""
    issues, formula_error = _collect_issues(rule)
    if formula_error is not None:
        raise InvalidFormula(formula_error.formula, formula_error.reason, issues)
    if issues:
        raise RuleValidationError(issues)
