from decimal import Decimal
from typing import List, NamedTuple, Optional


class ValidationIssue(NamedTuple):
    field: str
    message: str


class DiscountError(Exception):
    """Base class for every error raised by the discount core."""


class RuleValidationError(DiscountError):
    """A rule definition was rejected before anything was persisted."""

    def __init__(self, issues: List[ValidationIssue]):
        self.issues = list(issues)
        summary = "; ".join(f"{i.field}: {i.message}" for i in self.issues)
        super().__init__(f"Invalid discount rule ({summary})")


class InvalidFormula(RuleValidationError):
    """A formula failed to parse or could not be evaluated safely."""

    def __init__(self, formula: str, reason: str, issues: Optional[List[ValidationIssue]] = None):
        self.formula = formula
        self.reason = reason
        DiscountError.__init__(self, f"Invalid formula {formula!r}: {reason}")
        self.issues = list(issues) if issues else [ValidationIssue("value", reason)]


class RuleNotFound(DiscountError):
    def __init__(self, rule_id: str):
        self.rule_id = rule_id
        super().__init__(f"Discount rule {rule_id} not found")


class ItemNotFound(DiscountError):
    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"Item {item_id} not found")


class EntryNotFound(DiscountError):
    def __init__(self, item_id: str, entry_id: str):
        self.item_id = item_id
        self.entry_id = entry_id
        super().__init__(f"Ledger entry {entry_id} not found for item {item_id}")


class RuleStateError(DiscountError):
    """The requested operation is not allowed in the rule's current status."""

    def __init__(self, rule_id: str, status: str, message: str):
        self.rule_id = rule_id
        self.status = status
        super().__init__(f"Rule {rule_id} is {status}: {message}")


class ConcurrentItemUpdate(DiscountError):
    """Another writer changed the item state first; nothing was applied."""

    def __init__(self, item_ids: List[str]):
        self.item_ids = list(item_ids)
        super().__init__(f"Concurrent update on item(s) {', '.join(self.item_ids)}")


class SinkFailure(DiscountError):
    """
    Pushing a price to the commerce platform failed.

    Local state and the ledger already hold the intended price; the push
    must be retried by re-sending `price`, never by recomputing it.
    """

    def __init__(self, item_id: str, price: Decimal, cause: Optional[BaseException] = None):
        self.item_id = item_id
        self.price = price
        self.cause = cause
        super().__init__(f"Failed to push price {price} for item {item_id}: {cause}")
