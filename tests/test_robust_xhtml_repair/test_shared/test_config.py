"""Tests for the configuration system."""

import json

import pytest

from robust_xhtml_repair.shared.config import (
    CANONICAL_PROLOG,
    CONTAINER_ELEMENTS,
    VOID_ELEMENTS,
    XHTML_NAMESPACE,
    AnalysisConfig,
    ConfigError,
    ConfigValidationError,
    EngineConfig,
    RepairConfig,
    ReportConfig,
    RunConfig,
    ScanConfig,
    VerificationConfig,
)


class TestComponentConfigs:
    """Test suite for the per-component configuration classes."""

    def test_default_values(self):
        """Test default component configuration values."""
        assert ScanConfig().void_elements == VOID_ELEMENTS
        assert ScanConfig().mask_comments is True

        analysis = AnalysisConfig()
        assert analysis.check_declarations is True
        assert analysis.flag_html_named_entities is False
        assert analysis.container_elements == CONTAINER_ELEMENTS
        assert analysis.xhtml_namespace == XHTML_NAMESPACE
        assert analysis.canonical_prolog == CANONICAL_PROLOG

        repair = RepairConfig()
        assert repair.enable_repair is True
        assert repair.dry_run is False
        assert repair.backup_suffix == ".backup"

        assert VerificationConfig().strict_parse is False
        assert RunConfig().extensions == (".xhtml",)
        assert RunConfig().max_workers == 1
        assert ReportConfig().max_issues_per_file == 3

    def test_names_are_normalized(self):
        """Test element names and extensions are lowercased."""
        assert ScanConfig(void_elements={"BR", "Img"}).void_elements == frozenset({"br", "img"})
        assert RunConfig(extensions=[".XHTML", ".html"]).extensions == (".xhtml", ".html")

    def test_validation_failures(self):
        """Test component validation failures."""
        with pytest.raises(ValueError, match="max_workers must be > 0"):
            RunConfig(max_workers=0)
        with pytest.raises(ValueError, match="extensions must start with"):
            RunConfig(extensions=("xhtml",))
        with pytest.raises(ValueError, match="extensions cannot be empty"):
            RunConfig(extensions=())
        with pytest.raises(ValueError, match="backup_suffix"):
            RepairConfig(backup_suffix="bak")
        with pytest.raises(ValueError, match="xhtml_namespace cannot be empty"):
            AnalysisConfig(xhtml_namespace="")
        with pytest.raises(ValueError, match="version 1.0"):
            AnalysisConfig(canonical_prolog="<?xml version='1.1'?>")
        with pytest.raises(ValueError, match="formats must be among"):
            ReportConfig(formats=("pdf",))
        with pytest.raises(ValueError, match="max_issues_per_file"):
            ReportConfig(max_issues_per_file=-1)


class TestEngineConfig:
    """Test suite for the composite engine configuration."""

    def test_default_configuration(self):
        """Test the default engine configuration."""
        config = EngineConfig()
        assert config.logging_level == "WARNING"
        assert config.repair.enable_repair is True
        assert config.name is None

    def test_invalid_logging_level(self):
        """Test logging level validation."""
        with pytest.raises(ConfigValidationError, match="logging_level"):
            EngineConfig(logging_level="LOUD")

    def test_dry_run_requires_repair(self):
        """Test the cross-component dry run check."""
        with pytest.raises(ConfigValidationError) as exc_info:
            EngineConfig(repair=RepairConfig(enable_repair=False, dry_run=True))
        assert exc_info.value.field_name == "repair.dry_run"
        assert exc_info.value.suggestions

    def test_validation_error_is_config_error(self):
        """Test the exception hierarchy."""
        assert issubclass(ConfigValidationError, ConfigError)

    def test_override_nested_fields(self):
        """Test overriding component fields."""
        config = EngineConfig()
        new_config = config.override(run__max_workers=4, repair__dry_run=True)

        assert new_config.run.max_workers == 4
        assert new_config.repair.dry_run is True
        assert config.run.max_workers == 1
        assert config.repair.dry_run is False

    def test_override_top_level_field(self):
        """Test overriding top-level fields."""
        config = EngineConfig().override(logging_level="DEBUG", name="custom")
        assert config.logging_level == "DEBUG"
        assert config.name == "custom"

    def test_override_validation(self):
        """Test overrides are validated."""
        config = EngineConfig()
        with pytest.raises(ConfigValidationError):
            config.override(run__max_workers=0)
        with pytest.raises(ConfigValidationError, match="Unknown configuration component"):
            config.override(bogus__value=1)
        with pytest.raises(ConfigValidationError):
            config.override(repair__no_such_field=True)

    def test_immutable(self):
        """Test the engine configuration is frozen."""
        config = EngineConfig()
        with pytest.raises(Exception):
            config.logging_level = "DEBUG"  # type: ignore[misc]

    def test_to_dict(self):
        """Test dictionary conversion."""
        data = EngineConfig().to_dict()
        assert data["run"]["max_workers"] == 1
        assert data["run"]["extensions"] == [".xhtml"]
        assert data["scan"]["void_elements"] == sorted(VOID_ELEMENTS)
        assert data["logging_level"] == "WARNING"
        json.dumps(data)

    def test_json_round_trip(self):
        """Test JSON serialization round trip for every preset."""
        for config in (EngineConfig(), EngineConfig.strict(), EngineConfig.audit_only()):
            assert EngineConfig.from_json(config.to_json()) == config

    def test_from_dict_partial(self):
        """Test partial dictionaries keep defaults for missing values."""
        config = EngineConfig.from_dict({
            "run": {"max_workers": 3, "extensions": [".xhtml", ".html"]},
            "repair": {"disabled_fixes": ["invalid_entity"]},
            "unknown_key": True,
        })
        assert config.run.max_workers == 3
        assert config.run.extensions == (".xhtml", ".html")
        assert config.repair.disabled_fixes == frozenset({"invalid_entity"})
        assert config.analysis == AnalysisConfig()

    def test_from_dict_failures(self):
        """Test invalid dictionaries."""
        with pytest.raises(ConfigValidationError, match="must be a JSON object"):
            EngineConfig.from_dict([])  # type: ignore[arg-type]
        with pytest.raises(ConfigValidationError, match="run must be an object"):
            EngineConfig.from_dict({"run": 5})
        with pytest.raises(ConfigValidationError, match="max_workers"):
            EngineConfig.from_dict({"run": {"max_workers": 0}})

    def test_from_json_invalid(self):
        """Test malformed JSON input."""
        with pytest.raises(ConfigValidationError, match="Invalid configuration JSON"):
            EngineConfig.from_json("{not json")


class TestPresets:
    """Test suite for configuration presets."""

    def test_audit_only(self):
        """Test the audit-only preset."""
        config = EngineConfig.audit_only()
        assert config.repair.enable_repair is False
        assert config.name == "audit_only"

    def test_balanced(self):
        """Test the balanced preset."""
        config = EngineConfig.balanced()
        assert config.repair.enable_repair is True
        assert config.verification.strict_parse is False

    def test_strict(self):
        """Test the strict preset."""
        config = EngineConfig.strict()
        assert config.verification.strict_parse is True
        assert config.analysis.flag_html_named_entities is True

    def test_preset_lookup(self):
        """Test preset lookup by name."""
        assert EngineConfig.preset("strict") == EngineConfig.strict()
        with pytest.raises(ConfigValidationError) as exc_info:
            EngineConfig.preset("aggressive")
        assert exc_info.value.suggestions == ["audit_only", "balanced", "strict"]
