"""Tests for configuration loading and validation."""

import pytest

from config import ConfigurationError, Settings, parse_suite_ids


class TestParseSuiteIds:
    """Tests for suite id parsing."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("3", 3),
            (" 7 ", 7),
            ("3,4", [3, 4]),
            ("[3, 4]", [3, 4]),
            ("[5]", [5]),
            ("", None),
        ],
    )
    def test_parses_single_and_list_values(self, raw, expected):
        """Test a plain number is one suite and commas/brackets make a list."""
        assert parse_suite_ids(raw) == expected

    def test_rejects_non_numeric(self):
        """Test non-numeric suite ids are a configuration error."""
        with pytest.raises(ConfigurationError, match="TESTRAIL_SUITE_ID"):
            parse_suite_ids("alpha,beta")


class TestSettingsFromEnv:
    """Tests for Settings.from_env."""

    def test_reads_all_options(self, clean_env):
        """Test every TESTRAIL_* variable lands on its field."""
        clean_env.setenv("TESTRAIL_DOMAIN", "acme.testrail.io")
        clean_env.setenv("TESTRAIL_USERNAME", "qa@acme.io")
        clean_env.setenv("TESTRAIL_PASSWORD", "secret")
        clean_env.setenv("TESTRAIL_PROJECT_ID", "2")
        clean_env.setenv("TESTRAIL_SUITE_ID", "4,5")
        clean_env.setenv("TESTRAIL_ASSIGNED_TO_ID", "9")
        clean_env.setenv("TESTRAIL_INCLUDE_ALL", "true")
        clean_env.setenv("TESTRAIL_UPDATE_RUN", "11")
        clean_env.setenv("TESTRAIL_UPDATE_PLAN", "12")
        clean_env.setenv("TESTRAIL_RUN_NAME", "Nightly")
        clean_env.setenv("TESTRAIL_ERRORSHOT_HOST", "https://shots.acme.io/")

        settings = Settings.from_env()

        assert settings.domain == "acme.testrail.io"
        assert settings.project_id == 2
        assert settings.suite_id == [4, 5]
        assert settings.is_multi_suite is True
        assert settings.assigned_to_id == 9
        assert settings.include_all_test is True
        assert settings.update_run == 11
        assert settings.update_plan == 12
        assert settings.run_name == "Nightly"
        assert settings.errorshot_host == "https://shots.acme.io"
        assert settings.base_url == "https://acme.testrail.io/index.php"

    def test_defaults_when_optional_values_absent(self, clean_env):
        """Test optional values default to off / empty."""
        clean_env.setenv("TESTRAIL_SUITE_ID", "3")

        settings = Settings.from_env()

        assert settings.suite_id == 3
        assert settings.is_multi_suite is False
        assert settings.suite_ids == [3]
        assert settings.update_run is None
        assert settings.update_plan is None
        assert settings.include_all_test is False

    def test_invalid_integer_is_configuration_error(self, clean_env):
        """Test a malformed project id fails fast."""
        clean_env.setenv("TESTRAIL_PROJECT_ID", "one")
        with pytest.raises(ConfigurationError, match="TESTRAIL_PROJECT_ID"):
            Settings.from_env()


class TestSettingsValidate:
    """Tests for Settings.validate."""

    def test_valid_settings_pass(self, settings):
        """Test complete settings validate silently."""
        settings.validate()

    def test_lists_every_missing_value(self):
        """Test the error names all missing options at once."""
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(domain="acme.testrail.io").validate()

        message = str(exc_info.value)
        assert "TESTRAIL_DOMAIN" not in message
        for name in (
            "TESTRAIL_USERNAME",
            "TESTRAIL_PASSWORD",
            "TESTRAIL_PROJECT_ID",
            "TESTRAIL_SUITE_ID",
        ):
            assert name in message

    def test_empty_suite_list_is_missing(self, settings):
        """Test an empty suite list counts as missing."""
        settings.suite_id = []
        with pytest.raises(ConfigurationError, match="TESTRAIL_SUITE_ID"):
            settings.validate()
