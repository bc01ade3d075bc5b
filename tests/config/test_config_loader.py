"""
Tests for consol_config: the packaged defaults, YAML overrides and
validation failures.
"""

import textwrap

import pytest
import yaml

from consol_config import (
    DEFAULT_CONFIG_PATH,
    EngineConfig,
    compute_checksum,
    get_active_config,
    load_engine_config,
    load_yaml_file,
)
from consol_kernel.domain.entities import AccountType


def _write(tmp_path, body: str):
    path = tmp_path / "engine.yaml"
    path.write_text(textwrap.dedent(body))
    return path


class TestActiveConfig:

    def test_packaged_defaults_match_in_code_defaults(self):
        """defaults.yaml and EngineConfig.with_defaults() agree."""
        assert get_active_config() == EngineConfig.with_defaults()

    def test_trace_logged_with_checksum(self, captured_logs):
        """Each load emits CONSOL_CONFIG_TRACE with the document checksum."""
        get_active_config()

        (trace,) = [r for r in captured_logs() if r["message"] == "CONSOL_CONFIG_TRACE"]
        expected = compute_checksum(load_yaml_file(DEFAULT_CONFIG_PATH))
        assert trace["checksum"] == expected
        assert trace["config_path"] == str(DEFAULT_CONFIG_PATH)
        assert trace["similarity_threshold"] == 0.75

    def test_explicit_path(self, tmp_path):
        """An explicit path replaces the packaged defaults."""
        path = _write(tmp_path, """
            duplicate_detection:
              threshold: 0.9
        """)

        config = get_active_config(path)

        assert config.duplicate_detection.threshold == 0.9


class TestLoadEngineConfig:

    def test_overrides_and_fallbacks(self, tmp_path):
        """Sections and keys absent from the file keep their defaults."""
        path = _write(tmp_path, """
            duplicate_detection:
              threshold: 0.8
              normalization:
                sort_tokens: false
                synonyms:
                  - pattern: '\\bcash at bank\\b'
                    replacement: cash
            intercompany:
              description_patterns: ['shared services']
              elimination_debit_account: IC Payable
        """)

        config, checksum = load_engine_config(path)

        assert config.duplicate_detection.threshold == 0.8
        assert config.duplicate_detection.length_cutoff == 0.5
        rules = config.duplicate_detection.normalization
        assert rules.sort_tokens is False
        assert [s.replacement for s in rules.synonyms] == ["cash"]
        assert rules.leading_articles == ("the", "a", "an")
        assert config.intercompany.matching_pattern("Shared Services Q1") == "shared services"
        assert config.intercompany.matching_pattern("Management fee") is None
        assert config.intercompany.elimination_debit_account == "IC Payable"
        assert config.intercompany.elimination_credit_account == (
            "Intercompany Receivable (elimination)"
        )
        assert config.trial_balance == EngineConfig().trial_balance
        assert len(checksum) == 64

    def test_checksum_is_order_independent(self):
        """Key order does not change the checksum."""
        assert compute_checksum({"a": 1, "b": [1, 2]}) == compute_checksum({"b": [1, 2], "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_empty_file_gives_defaults(self, tmp_path):
        path = _write(tmp_path, "")

        config, _ = load_engine_config(path)

        assert config == EngineConfig()

    def test_trial_balance_swap(self, tmp_path):
        """Account types can move sides as long as every type has one."""
        path = _write(tmp_path, """
            trial_balance:
              debit_types: [asset, expense, cogs, other_expense, other_income]
              credit_types: [liability, equity, revenue]
        """)

        config, _ = load_engine_config(path)

        assert config.trial_balance.is_debit(AccountType.OTHER_INCOME)


class TestValidation:

    @pytest.mark.parametrize("body", [
        "duplicate_detection: {threshold: 1.5}",
        "duplicate_detection: {threshold: -0.1}",
        "duplicate_detection: {length_cutoff: 2}",
    ])
    def test_out_of_range(self, tmp_path, body):
        with pytest.raises(ValueError, match="must be in"):
            load_engine_config(_write(tmp_path, body))

    def test_bad_synonym_regex(self, tmp_path):
        path = _write(tmp_path, """
            duplicate_detection:
              normalization:
                synonyms:
                  - pattern: '(unclosed'
                    replacement: x
        """)

        with pytest.raises(ValueError, match="synonym"):
            load_engine_config(path)

    def test_bad_intercompany_regex(self, tmp_path):
        path = _write(tmp_path, """
            intercompany:
              description_patterns: ['[oops']
        """)

        with pytest.raises(ValueError, match="intercompany pattern"):
            load_engine_config(path)

    def test_unknown_account_type(self, tmp_path):
        path = _write(tmp_path, """
            trial_balance:
              debit_types: [asset, expense, cogs, other_expense, goodwill]
        """)

        with pytest.raises(ValueError, match="Unknown account type"):
            load_engine_config(path)

    def test_unclassified_account_type(self, tmp_path):
        path = _write(tmp_path, """
            trial_balance:
              debit_types: [asset]
        """)

        with pytest.raises(ValueError, match="not classified"):
            load_engine_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            load_engine_config(_write(tmp_path, "- just\n- a list\n"))

    def test_malformed_yaml(self, tmp_path):
        with pytest.raises(yaml.YAMLError):
            load_engine_config(_write(tmp_path, "duplicate_detection: [unclosed\n"))

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")
