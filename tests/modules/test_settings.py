"""
Tests for company payroll settings and the persisted tax tables.

Covers:
- Default materialization on first access (get_or_create)
- Update / reset with validation
- PayrollSetting field validation and derived engine inputs
- Tax table seeding idempotence and company-scoped brackets
"""

from dataclasses import replace
from decimal import Decimal
from uuid import UUID

import pytest
from sqlalchemy import func, select

from payroll_config.schema import BracketDef
from payroll_engines.tax import TaxMethod
from payroll_kernel.exceptions import CompanyNotFoundError
from payroll_modules.settings.config import BPJS_KES, PayrollSetting
from payroll_modules.settings.orm import PayrollSettingModel
from payroll_modules.settings.repositories import (
    SqlTaxTableRepository,
    StaticTaxTableRepository,
    seed_tax_tables,
)

UNKNOWN_COMPANY_ID = UUID("00000000-0000-4000-a000-0000000000ff")


def _setting_rows(session) -> int:
    return session.scalars(select(func.count()).select_from(PayrollSettingModel)).one()


class TestSettingsResolver:

    def test_get_or_create_materializes_defaults(self, session, settings_resolver, company_id):
        setting = settings_resolver.get_or_create(company_id)

        assert setting.company_id == company_id
        assert setting.use_effective_rate_method is True
        assert setting.bpjs_kes_employee_rate == Decimal("0.01")
        assert setting.bpjs_jp_max_salary == Decimal("10042300")
        assert setting.payroll_cutoff_date == 25
        assert _setting_rows(session) == 1

    def test_get_or_create_is_idempotent(self, session, settings_resolver, company_id):
        first = settings_resolver.get_or_create(company_id)
        second = settings_resolver.get_or_create(company_id)

        assert first == second
        assert _setting_rows(session) == 1

    def test_unknown_company_raises(self, settings_resolver):
        with pytest.raises(CompanyNotFoundError):
            settings_resolver.get_or_create(UNKNOWN_COMPANY_ID)

    def test_update_persists_changes(self, settings_resolver, company_id, test_actor_id):
        updated = settings_resolver.update(
            company_id,
            {"use_effective_rate_method": False, "payroll_cutoff_date": 20, "position_cost_rate": "0.04"},
            test_actor_id,
        )

        assert updated.tax_method == TaxMethod.PROGRESSIVE
        assert updated.payroll_cutoff_date == 20
        assert updated.position_cost_rate == Decimal("0.04")
        assert settings_resolver.get_or_create(company_id).payroll_cutoff_date == 20

    def test_update_can_remove_a_cap(self, settings_resolver, company_id, test_actor_id):
        updated = settings_resolver.update(company_id, {"bpjs_kes_max_salary": None}, test_actor_id)
        assert updated.bpjs_kes_max_salary is None

    def test_update_rejects_unknown_field(self, settings_resolver, company_id, test_actor_id):
        settings_resolver.update(company_id, {"payroll_cutoff_date": 20}, test_actor_id)

        with pytest.raises(ValueError, match="Unknown payroll setting fields"):
            settings_resolver.update(company_id, {"tax_holiday": True}, test_actor_id)

        assert settings_resolver.get_or_create(company_id).payroll_cutoff_date == 20

    def test_update_rejects_out_of_range_rate(self, settings_resolver, company_id, test_actor_id):
        with pytest.raises(ValueError, match="bpjs_jht_employee_rate"):
            settings_resolver.update(company_id, {"bpjs_jht_employee_rate": "1.5"}, test_actor_id)

    def test_reset_to_default(self, settings_resolver, company_id, test_actor_id):
        settings_resolver.update(
            company_id, {"use_effective_rate_method": False, "rounding_method": "up"}, test_actor_id
        )

        reset = settings_resolver.reset_to_default(company_id, test_actor_id)

        assert reset == PayrollSetting.with_defaults(company_id)


class TestPayrollSetting:

    @pytest.mark.parametrize(
        "overrides",
        [
            {"payroll_cutoff_date": 0},
            {"payroll_cutoff_date": 32},
            {"payment_date": 0},
            {"prorate_method": "weekly"},
            {"rounding_method": "bankers"},
            {"rounding_precision": -1},
            {"currency": "RUPIAH"},
            {"bpjs_kes_max_salary": Decimal("0")},
            {"overtime_hourly_divisor": Decimal("0")},
            {"position_cost_max": Decimal("-1")},
        ],
    )
    def test_invalid_values_rejected(self, overrides):
        with pytest.raises(ValueError):
            PayrollSetting(**overrides)

    def test_from_dict_converts_numeric_strings(self):
        setting = PayrollSetting.from_dict({"bpjs_jht_employee_rate": "0.02", "bpjs_kes_max_salary": 12000000})

        assert setting.bpjs_jht_employee_rate == Decimal("0.02")
        assert isinstance(setting.bpjs_kes_max_salary, Decimal)

    def test_round_trips_through_dict(self):
        setting = PayrollSetting(payroll_cutoff_date=31, rounding_method="down")
        assert PayrollSetting.from_dict(setting.to_dict()) == setting

    def test_contribution_rates_follow_settings(self):
        rates = {r.name: r for r in PayrollSetting(bpjs_kes_max_salary=None).contribution_rates()}

        assert set(rates) == {"bpjs_kes", "bpjs_jht", "bpjs_jp", "bpjs_jkk", "bpjs_jkm"}
        assert rates[BPJS_KES].cap is None
        assert rates["bpjs_jkk"].employee_rate == Decimal("0")
        assert rates["bpjs_jkm"].employer_rate == Decimal("0.003")

    def test_rounding_policy_follows_settings(self):
        policy = PayrollSetting(rounding_method="up", rounding_precision=2).rounding_policy()
        assert policy.apply(Decimal("10.001")) == Decimal("10.01")


class TestTaxTableRepository:

    def test_seeded_ptkp_lookup(self, session, seeded_tax_tables):
        repository = SqlTaxTableRepository(session)

        entry = repository.ptkp("K/1")
        assert entry.amount == Decimal("63000000")
        assert entry.ter_category == "TER_B"
        assert repository.ptkp("Z/9") is None

    def test_seeded_bands_are_ordered(self, session, seeded_tax_tables):
        bands = SqlTaxTableRepository(session).ter_bands("TER_B")

        assert bands[0].min_income == Decimal("0")
        assert bands[0].max_income == Decimal("6200001")
        assert bands[-1].max_income is None
        assert SqlTaxTableRepository(session).ter_bands("TER_Z") == ()

    def test_reseeding_skips_existing_rows(self, session, seeded_tax_tables, test_actor_id):
        result = seed_tax_tables(session, seeded_tax_tables, created_by_id=test_actor_id)

        assert result.total_inserted == 0
        assert result.skipped == (
            len(seeded_tax_tables.ptkp)
            + len(seeded_tax_tables.brackets)
            + len(seeded_tax_tables.ter_bands)
        )

    def test_company_brackets_override_global(self, session, seeded_tax_tables, company_id, test_actor_id):
        custom = replace(
            seeded_tax_tables,
            brackets=(
                BracketDef(Decimal("0"), Decimal("100000000"), Decimal("0.05")),
                BracketDef(Decimal("100000000"), None, Decimal("0.20")),
            ),
        )
        result = seed_tax_tables(session, custom, created_by_id=test_actor_id, company_id=company_id)
        repository = SqlTaxTableRepository(session)

        assert result.brackets_inserted == 2
        assert [b.rate for b in repository.brackets(company_id)] == [Decimal("0.05"), Decimal("0.20")]
        assert len(repository.brackets(UNKNOWN_COMPANY_ID)) == 5
        assert len(repository.brackets()) == 5

    def test_static_lookup(self, tax_tables):
        repository = StaticTaxTableRepository(tax_tables)

        assert repository.ptkp("K/1").amount == Decimal("63000000")
        assert repository.ptkp("Z/9") is None
        assert repository.brackets()[0].rate == Decimal("0.05")
        assert repository.brackets()[-1].max_income is None
        assert repository.ter_bands("TER_B")[0].max_income == Decimal("6200001")
        assert repository.ter_bands("TER_Z") == ()

    def test_static_matches_seeded(self, session, seeded_tax_tables):
        static = StaticTaxTableRepository(seeded_tax_tables)
        stored = SqlTaxTableRepository(session)

        assert static.brackets() == stored.brackets()
        for category in seeded_tax_tables.categories:
            assert static.ter_bands(category) == stored.ter_bands(category)
        for entry in seeded_tax_tables.ptkp:
            assert static.ptkp(entry.status) == stored.ptkp(entry.status)
