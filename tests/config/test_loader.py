"""
Tests for the statutory tax-table loader and validator.

Covers:
- Bundled 2024 tables load and validate
- PTKP amounts and TER category mapping
- Structural validation: gaps, overlaps, missing open-ended row, bad rates
- Unreferenced categories produce warnings, not errors
"""

from copy import deepcopy
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from payroll_config.loader import (
    DEFAULT_TABLE_FILE,
    load_default_tables,
    load_table_set,
    load_yaml_file,
    parse_table_set,
)
from payroll_config.validator import validate_table_set
from payroll_kernel.exceptions import ConfigurationError


@pytest.fixture
def raw_tables() -> dict:
    return load_yaml_file(DEFAULT_TABLE_FILE)


class TestBundledTables:

    def test_loads(self, tax_tables):
        assert tax_tables.name == "pph21-2024"
        assert tax_tables.effective_from == date(2024, 1, 1)
        assert tax_tables.currency == "IDR"
        assert validate_table_set(tax_tables).is_valid

    def test_every_status_present(self, tax_tables):
        statuses = {e.status for e in tax_tables.ptkp}
        assert statuses == {
            "TK/0", "TK/1", "TK/2", "TK/3",
            "K/0", "K/1", "K/2", "K/3",
            "K/I/0", "K/I/1", "K/I/2", "K/I/3",
        }

    def test_ptkp_amounts(self, tax_tables):
        assert tax_tables.ptkp_for("TK/0").amount == Decimal("54000000")
        assert tax_tables.ptkp_for("K/3").amount == Decimal("72000000")
        assert tax_tables.ptkp_for("K/I/3").amount == Decimal("126000000")

    def test_categories(self, tax_tables):
        assert tax_tables.categories == ("TER_A", "TER_B", "TER_C")

    def test_ter_a_top_band(self, tax_tables):
        top = tax_tables.bands_for("TER_A")[-1]
        assert top.min_income == Decimal("1400000001")
        assert top.max_income is None
        assert top.rate == Decimal("0.34")

    def test_progressive_brackets(self, tax_tables):
        assert [b.rate for b in tax_tables.brackets] == [
            Decimal("0.05"), Decimal("0.15"), Decimal("0.25"), Decimal("0.30"), Decimal("0.35"),
        ]
        assert tax_tables.brackets[-1].max_income is None

    def test_default_loader_matches_explicit_path(self):
        assert load_default_tables() == load_table_set(DEFAULT_TABLE_FILE)


class TestValidation:

    def test_bracket_gap_rejected(self, raw_tables):
        data = deepcopy(raw_tables)
        data["progressive_brackets"][1]["min_income"] = 61000000
        with pytest.raises(ConfigurationError, match="gap"):
            parse_table_set(data)

    def test_bracket_overlap_rejected(self, raw_tables):
        data = deepcopy(raw_tables)
        data["progressive_brackets"][1]["min_income"] = 59000000
        with pytest.raises(ConfigurationError, match="overlap"):
            parse_table_set(data)

    def test_missing_open_ended_row_rejected(self, raw_tables):
        data = deepcopy(raw_tables)
        data["ter_bands"]["TER_B"][-1]["max_income"] = 2000000000
        with pytest.raises(ConfigurationError, match="open-ended"):
            parse_table_set(data)

    def test_rate_above_one_rejected(self, raw_tables):
        data = deepcopy(raw_tables)
        data["progressive_brackets"][0]["rate"] = "1.5"
        with pytest.raises(ConfigurationError):
            parse_table_set(data)

    def test_ptkp_without_bands_rejected(self, raw_tables):
        data = deepcopy(raw_tables)
        del data["ter_bands"]["TER_C"]
        with pytest.raises(ConfigurationError, match="TER_C"):
            parse_table_set(data)

    def test_duplicate_status_rejected(self, raw_tables):
        data = deepcopy(raw_tables)
        data["ptkp"].append(dict(data["ptkp"][0]))
        with pytest.raises(ConfigurationError, match="duplicate"):
            parse_table_set(data)

    def test_unreferenced_category_is_warning(self, raw_tables):
        data = deepcopy(raw_tables)
        data["ter_bands"]["TER_X"] = deepcopy(raw_tables["ter_bands"]["TER_A"])
        tables = parse_table_set(data)
        result = validate_table_set(tables)
        assert result.is_valid
        assert any("TER_X" in w for w in result.warnings)


class TestYamlFiles:

    def test_custom_file(self, tmp_path: Path, raw_tables):
        data = deepcopy(raw_tables)
        data["name"] = "pph21-custom"
        path = tmp_path / "custom.yaml"
        path.write_text(yaml.safe_dump(data), encoding="utf-8")

        tables = load_table_set(path)
        assert tables.name == "pph21-custom"

    def test_missing_file(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            load_table_set(tmp_path / "absent.yaml")
