"""
Typed Exception Hierarchy for the Payroll Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Payroll errors are financial-correctness errors. Callers (HTTP handlers,
batch jobs, tests) must be able to react to them by TYPE and by a stable
machine-readable CODE, never by parsing message text.

Every exception in this module:
  1. Inherits from PayrollError (catch-all for the whole engine)
  2. Carries a `code` class attribute (API-safe, stable across releases)
  3. Stores the identifiers that explain it as attributes (structured data)

Example:
    try:
        service.transition(payroll_id, "mark_paid", actor_id)
    except InvalidTransitionError as e:
        api_response(code=e.code, state=e.current_state, action=e.action)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    PayrollError (base)
    |
    +-- NotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- CompanyNotFoundError
    |   +-- SettingNotFoundError
    |   +-- PayrollRecordNotFoundError
    |   +-- AdjustmentNotFoundError
    |
    +-- ConfigurationError
    |   +-- MissingPTKPError
    |   +-- UnknownTaxCategoryError
    |   +-- TaxTableGapError
    |
    +-- DuplicatePayrollError
    |
    +-- InvalidTransitionError
    |
    +-- AmortizationError
    |   +-- AlreadyAmortizedError
    |
    +-- PayrollValidationError
    |   +-- NegativeNetPayError
    |   +-- ContributionCapExceededError
    |   +-- RejectionReasonRequiredError
    |   +-- InvalidPeriodError
    |   +-- AdjustmentLockedError
    |
    +-- ImmutabilityError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Lookup          | EMPLOYEE_NOT_FOUND          | Employee collaborator has no such id
                | COMPANY_NOT_FOUND           | Company existence check failed
                | SETTING_NOT_FOUND           | No payroll setting for the company
                | PAYROLL_NOT_FOUND           | Payroll record id does not exist
                | ADJUSTMENT_NOT_FOUND        | Adjustment id does not exist
----------------|-----------------------------|-----------------------------------------
Configuration   | CONFIGURATION_ERROR         | Tax tables unusable (generic)
                | MISSING_PTKP                | No PTKP row for the employee's status
                | UNKNOWN_TAX_CATEGORY        | No TER bands for the PTKP category
                | TAX_TABLE_GAP               | No bracket/band covers the base, or
                |                             | the table is non-contiguous
----------------|-----------------------------|-----------------------------------------
Generation      | DUPLICATE_PAYROLL           | Record exists for (employee, period)
----------------|-----------------------------|-----------------------------------------
Lifecycle       | INVALID_TRANSITION          | Action not allowed from current state
                | IMMUTABILITY_VIOLATION      | Modifying a paid payroll record
----------------|-----------------------------|-----------------------------------------
Amortization    | ALREADY_AMORTIZED           | Loan/advance already fully paid
----------------|-----------------------------|-----------------------------------------
Validation      | VALIDATION_ERROR            | Generic sanity-check failure
                | NEGATIVE_NET_PAY            | Computed net pay below zero
                | CONTRIBUTION_CAP_EXCEEDED   | Contribution share above its cap
                | REJECTION_REASON_REQUIRED   | Reject called without a reason
                | INVALID_PERIOD              | Month outside 1..12
                | ADJUSTMENT_LOCKED           | Edit/delete of a processed adjustment

===============================================================================
HANDLING PATTERNS
===============================================================================

Batch generation catches PayrollError per employee and reports
`{employee_id, code, message}`; any other exception type is a programming
error and propagates.

Lifecycle and amortizer errors are never swallowed. Services roll back the
enclosing transaction and re-raise.
"""

from decimal import Decimal


class PayrollError(Exception):
    """Base exception for all payroll engine errors."""

    code: str = "PAYROLL_ERROR"


# Lookup exceptions


class NotFoundError(PayrollError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"{entity_type} not found: {entity_id}")


class EmployeeNotFoundError(NotFoundError):
    code: str = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str):
        super().__init__("Employee", employee_id)


class CompanyNotFoundError(NotFoundError):
    code: str = "COMPANY_NOT_FOUND"

    def __init__(self, company_id: str):
        super().__init__("Company", company_id)


class SettingNotFoundError(NotFoundError):
    code: str = "SETTING_NOT_FOUND"

    def __init__(self, company_id: str):
        super().__init__("PayrollSetting", company_id)


class PayrollRecordNotFoundError(NotFoundError):
    code: str = "PAYROLL_NOT_FOUND"

    def __init__(self, payroll_id: str):
        super().__init__("PayrollRecord", payroll_id)


class AdjustmentNotFoundError(NotFoundError):
    code: str = "ADJUSTMENT_NOT_FOUND"

    def __init__(self, adjustment_id: str):
        super().__init__("PayrollAdjustment", adjustment_id)


# Configuration exceptions


class ConfigurationError(PayrollError):
    """Tax tables or settings cannot support the calculation."""

    code: str = "CONFIGURATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)


class MissingPTKPError(ConfigurationError):
    """No PTKP row exists for the employee's marital/dependent status."""

    code: str = "MISSING_PTKP"

    def __init__(self, ptkp_status: str):
        self.ptkp_status = ptkp_status
        super().__init__(f"No PTKP configured for status {ptkp_status!r}")


class UnknownTaxCategoryError(ConfigurationError):
    """The TER category derived from PTKP has no bands."""

    code: str = "UNKNOWN_TAX_CATEGORY"

    def __init__(self, category: str):
        self.category = category
        super().__init__(f"No TER bands configured for category {category!r}")


class TaxTableGapError(ConfigurationError):
    """A table has a gap/overlap, or no row covers the computed base."""

    code: str = "TAX_TABLE_GAP"

    def __init__(self, table: str, amount: Decimal | None, detail: str):
        self.table = table
        self.amount = amount
        super().__init__(f"{table}: {detail}")


# Generation exceptions


class DuplicatePayrollError(PayrollError):
    """A payroll record already exists for the (employee, period) pair."""

    code: str = "DUPLICATE_PAYROLL"

    def __init__(self, employee_id: str, year: int, month: int):
        self.employee_id = str(employee_id)
        self.year = year
        self.month = month
        super().__init__(
            f"Payroll already exists for employee {employee_id} "
            f"in period {year}-{month:02d}"
        )


# Lifecycle exceptions


class InvalidTransitionError(PayrollError):
    """A lifecycle action is not allowed from the entity's current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, entity_id: str, current_state: str, action: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} {entity_id} in state {current_state!r}"
        )


class ImmutabilityError(PayrollError):
    """Attempted modification of a record that is permanently frozen."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(f"{entity_type} {entity_id} is immutable: {reason}")


# Amortization exceptions


class AmortizationError(PayrollError):
    """Base for loan/advance installment errors."""

    code: str = "AMORTIZATION_ERROR"


class AlreadyAmortizedError(AmortizationError):
    """Every installment of the loan/advance has already been processed."""

    code: str = "ALREADY_AMORTIZED"

    def __init__(self, adjustment_id: str, total_installments: int):
        self.adjustment_id = str(adjustment_id)
        self.total_installments = total_installments
        super().__init__(
            f"Adjustment {adjustment_id} is fully paid "
            f"({total_installments} of {total_installments} installments)"
        )


# Validation exceptions


class PayrollValidationError(PayrollError):
    """Computed figures or request data failed a sanity check."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str):
        super().__init__(message)


class NegativeNetPayError(PayrollValidationError):
    code: str = "NEGATIVE_NET_PAY"

    def __init__(self, payroll_id: str, net_salary: Decimal):
        self.payroll_id = str(payroll_id)
        self.net_salary = net_salary
        super().__init__(f"Payroll {payroll_id} has negative net pay {net_salary}")


class ContributionCapExceededError(PayrollValidationError):
    code: str = "CONTRIBUTION_CAP_EXCEEDED"

    def __init__(self, contribution: str, share: Decimal, limit: Decimal):
        self.contribution = contribution
        self.share = share
        self.limit = limit
        super().__init__(
            f"Contribution {contribution} share {share} exceeds capped maximum {limit}"
        )


class RejectionReasonRequiredError(PayrollValidationError):
    code: str = "REJECTION_REASON_REQUIRED"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        super().__init__(f"Rejecting {entity_type} {entity_id} requires a reason")


class InvalidPeriodError(PayrollValidationError):
    code: str = "INVALID_PERIOD"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"Invalid pay period {year}-{month}")


class AdjustmentLockedError(PayrollValidationError):
    """Adjustment can no longer be edited or deleted."""

    code: str = "ADJUSTMENT_LOCKED"

    def __init__(self, adjustment_id: str, status: str):
        self.adjustment_id = str(adjustment_id)
        self.status = status
        super().__init__(
            f"Adjustment {adjustment_id} in status {status!r} cannot be modified"
        )
