from enum import Enum


class RuleKind(str, Enum):
    percentage = "percentage"
    fixed = "fixed"
    formula = "formula"


class TargetScope(str, Enum):
    product = "product"
    collection = "collection"
    vendor = "vendor"
    product_type = "product_type"


class RuleStatus(str, Enum):
    draft = "draft"
    scheduled = "scheduled"
    active = "active"
    completed = "completed"


class EventKind(str, Enum):
    activate = "activate"
    deactivate = "deactivate"


class LedgerReason(str, Enum):
    rule_applied = "rule_applied"
    rule_removed = "rule_removed"
    rule_updated = "rule_updated"
    manual_override = "manual_override"
    restore = "restore"
    restore_original = "restore_original"
