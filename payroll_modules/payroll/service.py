"""
Payroll Service (``payroll_modules.payroll.service``).

Responsibility
--------------
Calculate, generate and move payroll records through their lifecycle:
preview one employee's pay, generate records for a whole company and
period, and apply ``validate | submit | approve | reject | revise |
mark_paid`` transitions.  Approval amortizes every loan/advance installment
the record charged, in the same transaction.

Architecture position
---------------------
**Modules layer** -- the public entry point for payroll.  Gathers inputs
from injected collaborators (employee directory, work calendar, settings
resolver, tax table, allowance and adjustment repositories) and hands them
to the pure ``PayrollCalculator``.

Invariants enforced
-------------------
* Each public method owns the transaction boundary (``commit`` on success,
  ``rollback`` and re-raise on any exception).
* At most one record per (employee, period); generation re-runs report
  ``DuplicatePayrollError`` per employee and create nothing.
* Each employee in ``generate`` is isolated in a SAVEPOINT: one failure
  never aborts the batch.
* Record status and loan amortization commit together or not at all.
* Paid records are never modified (no workflow transition leaves ``paid``;
  the ORM listener is the backstop).

Failure modes
-------------
* Unknown employee/company/record  -> ``*NotFoundError``.
* Missing PTKP / TER category / uncovered base  -> ``ConfigurationError``.
* Action not allowed from the current status  -> ``InvalidTransitionError``.
* Validation failure  -> ``NegativeNetPayError`` / ``ContributionCapExceededError``.
* Rejection without a reason  -> ``RejectionReasonRequiredError``.
* Loan already fully paid at approval  -> ``AlreadyAmortizedError``; the
  approval rolls back.

Audit relevance
---------------
Every transition logs record id, action, resulting status and actor.
``approved_by_id`` / ``approved_at`` / ``paid_at`` are stored on the record;
the adjustment charges consumed by a record are stored with it.
"""

from __future__ import annotations

import time
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payroll_engines.proration import ProrateMethod
from payroll_kernel.domain.clock import Clock, SystemClock
from payroll_kernel.domain.values import PayPeriod
from payroll_kernel.exceptions import (
    CompanyNotFoundError,
    ContributionCapExceededError,
    DuplicatePayrollError,
    EmployeeNotFoundError,
    NegativeNetPayError,
    PayrollError,
    PayrollRecordNotFoundError,
)
from payroll_kernel.logging_config import LogContext, get_logger
from payroll_modules._transition_helpers import resolve_transition
from payroll_modules.adjustments.service import AdjustmentService
from payroll_modules.allowances.repository import AllowanceRepository, SqlAllowanceRepository
from payroll_modules.employees.directory import (
    CompanyDirectory,
    EmployeeDirectory,
    NullWorkCalendar,
    SqlEmployeeDirectory,
    WorkCalendar,
)
from payroll_modules.employees.models import Employee
from payroll_modules.payroll.calculation import PayrollCalculator, PayrollInputs
from payroll_modules.payroll.models import (
    GenerationDetail,
    GenerationResult,
    PayrollBreakdown,
    PayrollRecord,
    PayrollStatus,
)
from payroll_modules.payroll.orm import PayrollRecordModel
from payroll_modules.payroll.workflows import PAYROLL_RECORD_WORKFLOW
from payroll_modules.settings.config import PayrollSetting
from payroll_modules.settings.repositories import SqlTaxTableRepository, TaxTableRepository
from payroll_modules.settings.service import SettingsResolver

logger = get_logger("modules.payroll.service")


class PayrollService:
    """
    Orchestrates payroll calculation, generation and lifecycle.

    Contract
    --------
    * ``calculate`` persists no payroll record; repeated calls with the
      same data return equal breakdowns.
    * ``generate`` returns a ``GenerationResult`` with one detail per
      eligible employee.
    * ``transition`` returns the updated ``PayrollRecord``.

    Non-goals
    ---------
    * Does NOT render payslips or export files.
    * Does NOT schedule or queue runs.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        employees: EmployeeDirectory | None = None,
        companies: CompanyDirectory | None = None,
        calendar: WorkCalendar | None = None,
        settings: SettingsResolver | None = None,
        tax_tables: TaxTableRepository | None = None,
        allowances: AllowanceRepository | None = None,
        adjustments: AdjustmentService | None = None,
    ):
        self._session = session
        self._clock = clock or SystemClock()
        directory = SqlEmployeeDirectory(session)
        self._employees = employees or directory
        self._companies = companies or directory
        self._calendar = calendar or NullWorkCalendar()
        self._settings = settings or SettingsResolver(session, companies=self._companies, clock=self._clock)
        self._tax_tables = tax_tables or SqlTaxTableRepository(session)
        self._allowances = allowances or SqlAllowanceRepository(session)
        self._adjustments = adjustments or AdjustmentService(
            session, clock=self._clock, employees=self._employees
        )

    # =========================================================================
    # Calculation
    # =========================================================================

    def _get_employee(self, employee_id: UUID) -> Employee:
        employee = self._employees.get_employee(employee_id)
        if employee is None:
            raise EmployeeNotFoundError(str(employee_id))
        return employee

    def _gather_inputs(self, employee: Employee, period: PayPeriod, setting: PayrollSetting) -> PayrollInputs:
        window_start, window_end = period.cutoff_window(setting.payroll_cutoff_date)
        ptkp = self._tax_tables.ptkp(employee.ptkp_status)

        if setting.use_effective_rate_method:
            brackets = ()
            bands = self._tax_tables.ter_bands(ptkp.ter_category) if ptkp is not None else ()
        else:
            brackets = self._tax_tables.brackets(employee.company_id)
            bands = ()

        holidays = (
            self._calendar.holidays(employee.company_id, window_start, window_end)
            if setting.prorate_method == ProrateMethod.WORKING_DAYS.value
            else frozenset()
        )
        return PayrollInputs(
            employee=employee,
            period=period,
            ptkp=ptkp,
            brackets=brackets,
            ter_bands=bands,
            allowances=tuple(
                a.to_input()
                for a in self._allowances.for_period(
                    employee.company_id, employee.id, period, setting.payroll_cutoff_date
                )
            ),
            charges=tuple(self._adjustments.adjustments_for_payroll(employee.id, period)),
            holidays=holidays,
            unpaid_leave_days=self._calendar.unpaid_leave_days(employee.id, window_start, window_end),
            overtime_hours=self._calendar.overtime_hours(employee.id, window_start, window_end),
        )

    def _compute(self, employee: Employee, period: PayPeriod, setting: PayrollSetting) -> PayrollBreakdown:
        inputs = self._gather_inputs(employee, period, setting)
        return PayrollCalculator(setting).calculate(inputs)

    def calculate(self, employee_id: UUID, period: PayPeriod) -> PayrollBreakdown:
        """
        Preview one employee's payroll for ``period``.  Persists no record.

        Creates the company's default settings if they do not exist yet.

        Raises:
            EmployeeNotFoundError, CompanyNotFoundError, ConfigurationError.
        """
        with LogContext.bind(employee_id=str(employee_id)):
            try:
                employee = self._get_employee(employee_id)
                setting = self._settings.get_or_create(employee.company_id)
                breakdown = self._compute(employee, period, setting)
                self._session.commit()
                return breakdown
            except Exception:
                self._session.rollback()
                raise

    # =========================================================================
    # Generation
    # =========================================================================

    def _existing_record_id(self, employee_id: UUID, period: PayPeriod) -> UUID | None:
        return self._session.scalars(
            select(PayrollRecordModel.id).where(
                PayrollRecordModel.employee_id == employee_id,
                PayrollRecordModel.period_year == period.year,
                PayrollRecordModel.period_month == period.month,
            )
        ).one_or_none()

    def _generate_one(self, employee: Employee, period: PayPeriod, setting: PayrollSetting, actor_id: UUID) -> PayrollRecordModel:
        if self._existing_record_id(employee.id, period) is not None:
            raise DuplicatePayrollError(str(employee.id), period.year, period.month)
        breakdown = self._compute(employee, period, setting)
        model = PayrollRecordModel.from_breakdown(
            breakdown,
            status=PayrollStatus.CALCULATED.value,
            created_by_id=actor_id,
            calculated_at=self._clock.now(),
        )
        self._session.add(model)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise DuplicatePayrollError(str(employee.id), period.year, period.month) from exc
        return model

    def generate(self, company_id: UUID, period: PayPeriod, actor_id: UUID) -> GenerationResult:
        """
        Generate payroll records for every eligible employee of a company.

        Eligible: active, or resigned/terminated within the pay window;
        hired on or before the window end; not freelance or internship.
        Each employee runs in its own SAVEPOINT; a ``PayrollError`` is
        recorded in the result and the batch continues.

        Raises:
            CompanyNotFoundError: unknown company (nothing is generated).
        """
        t0 = time.monotonic()
        with LogContext.bind(company_id=str(company_id), actor_id=str(actor_id)):
            try:
                if not self._companies.company_exists(company_id):
                    raise CompanyNotFoundError(str(company_id))
                setting = self._settings.get_or_create(company_id, actor_id)
                window_start, window_end = period.cutoff_window(setting.payroll_cutoff_date)
                employees = [
                    e for e in self._employees.list_employees(company_id)
                    if e.is_payable_in(window_start, window_end)
                ]
                logger.info(
                    "payroll_generation_started",
                    extra={"period": str(period), "eligible_employees": len(employees)},
                )

                details: list[GenerationDetail] = []
                for employee in employees:
                    savepoint = self._session.begin_nested()
                    try:
                        model = self._generate_one(employee, period, setting, actor_id)
                        savepoint.commit()
                        details.append(
                            GenerationDetail(
                                employee_id=employee.id,
                                success=True,
                                payroll_id=model.id,
                                net_salary=model.net_salary,
                            )
                        )
                    except PayrollError as exc:
                        savepoint.rollback()
                        details.append(
                            GenerationDetail(
                                employee_id=employee.id,
                                success=False,
                                code=exc.code,
                                message=str(exc),
                            )
                        )
                        logger.warning(
                            "payroll_generation_employee_failed",
                            extra={
                                "employee_id": str(employee.id),
                                "error_code": exc.code,
                                "error_msg": str(exc),
                            },
                        )

                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            result = GenerationResult(company_id=company_id, period=period, details=tuple(details))
            logger.info(
                "payroll_generation_completed",
                extra={
                    "period": str(period),
                    "generated": result.generated,
                    "errors": result.errors,
                    "duration_ms": round((time.monotonic() - t0) * 1000, 2),
                },
            )
            return result

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _load_for_update(self, payroll_id: UUID) -> PayrollRecordModel:
        model = self._session.scalars(
            select(PayrollRecordModel)
            .where(PayrollRecordModel.id == payroll_id)
            .with_for_update()
        ).one_or_none()
        if model is None:
            raise PayrollRecordNotFoundError(str(payroll_id))
        return model

    def get(self, payroll_id: UUID) -> PayrollRecord:
        model = self._session.get(PayrollRecordModel, payroll_id)
        if model is None:
            raise PayrollRecordNotFoundError(str(payroll_id))
        return model.to_dto()

    def _check_figures(self, model: PayrollRecordModel, setting: PayrollSetting) -> None:
        """Net pay non-negative; every share within its program's capped maximum."""
        if model.net_salary < 0:
            raise NegativeNetPayError(str(model.id), model.net_salary)

        rounding = setting.rounding_policy()
        shares = model.contribution_shares()
        for rate in setting.contribution_rates():
            employee_share, employer_share = shares.get(rate.name, (Decimal("0"), Decimal("0")))
            max_employee = rate.max_employee_share()
            if max_employee is not None and employee_share > rounding.apply(max_employee):
                raise ContributionCapExceededError(rate.name, employee_share, rounding.apply(max_employee))
            max_employer = rate.max_employer_share()
            if max_employer is not None and employer_share > rounding.apply(max_employer):
                raise ContributionCapExceededError(rate.name, employer_share, rounding.apply(max_employer))

    def _amortize_charges(self, model: PayrollRecordModel, actor_id: UUID) -> None:
        """Process every installment and one-off adjustment this record charged."""
        for charge in model.to_dto().charges:
            if charge.is_installment:
                self._adjustments.record_installment(charge.adjustment_id, actor_id)
            elif not charge.is_recurring:
                self._adjustments.settle_charged(charge.adjustment_id, actor_id)

    def transition(
        self,
        payroll_id: UUID,
        action: str,
        actor_id: UUID,
        reason: str | None = None,
    ) -> PayrollRecord:
        """
        Apply a lifecycle action to a payroll record.

        Actions: calculate, validate, submit, approve, reject, revise,
        mark_paid.

        Raises:
            PayrollRecordNotFoundError, InvalidTransitionError,
            NegativeNetPayError, ContributionCapExceededError,
            RejectionReasonRequiredError, AlreadyAmortizedError.
        """
        with LogContext.bind(payroll_id=str(payroll_id), actor_id=str(actor_id)):
            try:
                model = self._load_for_update(payroll_id)
                previous = model.status
                transition = resolve_transition(
                    PAYROLL_RECORD_WORKFLOW,
                    "PayrollRecord",
                    model.id,
                    current_state=model.status,
                    action=action,
                    reason=reason,
                )
                now = self._clock.now()

                if action == "calculate":
                    employee = self._get_employee(model.employee_id)
                    setting = self._settings.get_or_create(model.company_id, actor_id)
                    breakdown = self._compute(
                        employee, PayPeriod(model.period_year, model.period_month), setting
                    )
                    model.apply_breakdown(breakdown, now)
                elif action == "validate":
                    self._check_figures(model, self._settings.get_or_create(model.company_id, actor_id))
                elif action == "reject":
                    model.rejection_reason = reason.strip()
                elif action == "mark_paid":
                    model.paid_at = now

                if transition.amortizes_loans:
                    self._amortize_charges(model, actor_id)
                    model.approved_by_id = actor_id
                    model.approved_at = now

                model.status = transition.to_state
                model.updated_by_id = actor_id
                self._session.flush()
                record = model.to_dto()
                self._session.commit()
            except Exception:
                self._session.rollback()
                raise

            logger.info(
                "payroll_transitioned",
                extra={
                    "action": action,
                    "from_status": previous,
                    "to_status": record.status.value,
                    "net_salary": str(record.net_salary),
                },
            )
            return record

    def recalculate(self, payroll_id: UUID, actor_id: UUID) -> PayrollRecord:
        """Recompute a draft or calculated record from current inputs."""
        return self.transition(payroll_id, "calculate", actor_id)

    def revise(self, payroll_id: UUID, actor_id: UUID) -> PayrollRecord:
        """Return a rejected record to draft so it can be recalculated."""
        return self.transition(payroll_id, "revise", actor_id)
