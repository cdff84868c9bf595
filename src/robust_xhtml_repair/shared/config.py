"""Configuration classes for XHTML structural validation and repair.

This module provides configuration objects for every engine component, composed
into one immutable ``EngineConfig`` that can be loaded from and saved to JSON.
"""

import json
import typing
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

XHTML_NAMESPACE = "http://www.w3.org/1999/xhtml"
CANONICAL_PROLOG = '<?xml version="1.0" encoding="UTF-8"?>'
CANONICAL_DOCTYPE = "<!DOCTYPE html>"

VOID_ELEMENTS = frozenset({
    "img", "br", "hr", "meta", "link", "input", "area",
    "base", "col", "embed", "source", "track", "wbr",
})

# Elements that must not be written self-closed in an XHTML content document
CONTAINER_ELEMENTS = frozenset({
    "head", "title", "style", "script", "body", "html", "main", "section",
    "div", "p", "h1", "h2", "h3", "h4", "h5", "h6", "span",
})

VALID_LOGGING_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_REPORT_FORMATS = ["json", "text", "markdown"]


@dataclass
class ScanConfig:
    """Configuration for the lexical scanner."""

    void_elements: FrozenSet[str] = VOID_ELEMENTS
    mask_comments: bool = True
    mask_cdata: bool = True

    def __post_init__(self) -> None:
        """Validate scanner configuration."""
        self.void_elements = frozenset(name.lower() for name in self.void_elements)
        if not all(self.void_elements):
            raise ValueError("void_elements must not contain empty names")


@dataclass
class AnalysisConfig:
    """Configuration for structural analysis."""

    check_declarations: bool = True
    check_tags: bool = True
    check_attributes: bool = True
    check_entities: bool = True
    check_quotes: bool = True
    check_self_closing_containers: bool = True
    flag_html_named_entities: bool = False
    container_elements: FrozenSet[str] = CONTAINER_ELEMENTS
    xhtml_namespace: str = XHTML_NAMESPACE
    canonical_prolog: str = CANONICAL_PROLOG

    def __post_init__(self) -> None:
        """Validate analysis configuration."""
        self.container_elements = frozenset(
            name.lower() for name in self.container_elements
        )
        if not self.xhtml_namespace:
            raise ValueError("xhtml_namespace cannot be empty")
        if not self.canonical_prolog.startswith('<?xml version="1.0"'):
            raise ValueError("canonical_prolog must declare XML version 1.0")


@dataclass
class RepairConfig:
    """Configuration for repair planning and persistence."""

    enable_repair: bool = True
    dry_run: bool = False
    disabled_fixes: FrozenSet[str] = frozenset()
    backup_suffix: str = ".backup"

    def __post_init__(self) -> None:
        """Validate repair configuration."""
        self.disabled_fixes = frozenset(self.disabled_fixes)
        if not self.backup_suffix.startswith("."):
            raise ValueError("backup_suffix must start with '.'")


@dataclass
class VerificationConfig:
    """Configuration for the verification gate."""

    strict_parse: bool = False
    verify_after_write: bool = True


@dataclass
class RunConfig:
    """Configuration for file discovery and scheduling."""

    extensions: Tuple[str, ...] = (".xhtml",)
    recursive: bool = True
    max_workers: int = 1

    def __post_init__(self) -> None:
        """Validate run configuration."""
        self.extensions = tuple(ext.lower() for ext in self.extensions)
        if not self.extensions:
            raise ValueError("extensions cannot be empty")
        if any(not ext.startswith(".") for ext in self.extensions):
            raise ValueError("extensions must start with '.'")
        if self.max_workers <= 0:
            raise ValueError("max_workers must be > 0")


@dataclass
class ReportConfig:
    """Configuration for report rendering."""

    max_issues_per_file: int = 3
    report_dir: Optional[str] = None
    formats: Tuple[str, ...] = ("json", "markdown")

    def __post_init__(self) -> None:
        """Validate report configuration."""
        self.formats = tuple(self.formats)
        if self.max_issues_per_file < 0:
            raise ValueError("max_issues_per_file must be >= 0")
        unknown = [fmt for fmt in self.formats if fmt not in VALID_REPORT_FORMATS]
        if unknown:
            raise ValueError(f"formats must be among {VALID_REPORT_FORMATS}, got {unknown}")


class ConfigError(Exception):
    """Base exception for configuration errors."""


class ConfigValidationError(ConfigError):
    """Exception raised when configuration validation fails."""

    def __init__(self, message: str, field_name: Optional[str] = None,
                 suggestions: Optional[List[str]] = None):
        super().__init__(message)
        self.field_name = field_name
        self.suggestions = suggestions or []


_COMPONENTS = ("scan", "analysis", "repair", "verification", "run", "report")


@dataclass(frozen=True)
class EngineConfig:
    """Complete configuration for the validation-and-repair engine.

    Immutable once built, so one instance can be shared by every worker thread
    of a run.
    """

    scan: ScanConfig = field(default_factory=ScanConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    repair: RepairConfig = field(default_factory=RepairConfig)
    verification: VerificationConfig = field(default_factory=VerificationConfig)
    run: RunConfig = field(default_factory=RunConfig)
    report: ReportConfig = field(default_factory=ReportConfig)

    logging_level: str = "WARNING"
    name: Optional[str] = None
    description: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate the complete engine configuration."""
        try:
            for component in _COMPONENTS:
                post_init = getattr(getattr(self, component), "__post_init__", None)
                if post_init is not None:
                    post_init()
            if self.logging_level not in VALID_LOGGING_LEVELS:
                raise ValueError(f"logging_level must be one of {VALID_LOGGING_LEVELS}")
            self._validate_cross_component_dependencies()
        except ValueError as e:
            raise ConfigValidationError(str(e)) from e

    def _validate_cross_component_dependencies(self) -> None:
        if self.repair.dry_run and not self.repair.enable_repair:
            raise ConfigValidationError(
                "dry_run requires enable_repair",
                field_name="repair.dry_run",
                suggestions=["Enable repair.enable_repair", "Disable repair.dry_run"],
            )

    def override(self, **kwargs: Any) -> "EngineConfig":
        """Create a new configuration with specific overrides.

        Example:
            >>> config = EngineConfig()
            >>> new_config = config.override(run__max_workers=4, repair__dry_run=True)
        """
        nested_overrides: Dict[str, Dict[str, Any]] = {}
        top_level: Dict[str, Any] = {}
        for key, value in kwargs.items():
            if "__" in key:
                component, field_name = key.split("__", 1)
                if component not in _COMPONENTS:
                    raise ConfigValidationError(
                        f"Unknown configuration component: {component}",
                        field_name=key,
                    )
                nested_overrides.setdefault(component, {})[field_name] = value
            else:
                top_level[key] = value

        new_fields: Dict[str, Any] = {}
        try:
            for component in _COMPONENTS:
                current = getattr(self, component)
                if component in nested_overrides:
                    new_fields[component] = replace(current, **nested_overrides[component])
                else:
                    new_fields[component] = current
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(str(e)) from e
        new_fields.update(top_level)
        return replace(self, **new_fields)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a JSON-compatible dictionary."""
        def _to_plain(obj: Any) -> Any:
            if hasattr(obj, "__dataclass_fields__"):
                return {f.name: _to_plain(getattr(obj, f.name)) for f in fields(obj)}
            if isinstance(obj, frozenset):
                return sorted(obj)
            if isinstance(obj, (list, tuple)):
                return [_to_plain(item) for item in obj]
            return obj

        return _to_plain(self)

    def to_json(self, indent: int = 2) -> str:
        """Convert configuration to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Create configuration from a dictionary, ignoring unknown keys."""
        if not isinstance(data, dict):
            raise ConfigValidationError("Configuration must be a JSON object")

        def _coerce(value: Any, annotation: Any) -> Any:
            origin = typing.get_origin(annotation)
            if origin is frozenset and isinstance(value, (list, tuple, set)):
                return frozenset(value)
            if origin is tuple and isinstance(value, list):
                return tuple(value)
            return value

        def _build(target: type, values: Dict[str, Any]) -> Any:
            hints = typing.get_type_hints(target)
            kwargs: Dict[str, Any] = {}
            for f in fields(target):
                if f.name not in values:
                    continue
                value = values[f.name]
                hint = hints[f.name]
                if hasattr(hint, "__dataclass_fields__"):
                    if not isinstance(value, dict):
                        raise ConfigValidationError(
                            f"{f.name} must be an object", field_name=f.name
                        )
                    kwargs[f.name] = _build(hint, value)
                else:
                    kwargs[f.name] = _coerce(value, hint)
            try:
                return target(**kwargs)
            except (TypeError, ValueError) as e:
                if isinstance(e, ConfigValidationError):
                    raise
                raise ConfigValidationError(str(e)) from e

        return _build(cls, data)

    @classmethod
    def from_json(cls, json_str: str) -> "EngineConfig":
        """Create configuration from JSON string."""
        try:
            data = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ConfigValidationError(f"Invalid configuration JSON: {e}") from e
        return cls.from_dict(data)

    # Preset factory methods
    @classmethod
    def audit_only(cls) -> "EngineConfig":
        """Report issues without planning or writing any repair."""
        return cls(
            repair=RepairConfig(enable_repair=False),
            name="audit_only",
            description="Validate documents without modifying them",
        )

    @classmethod
    def balanced(cls) -> "EngineConfig":
        """Default configuration: repair fixable issues, gate on fatal issues."""
        return cls(name="balanced")

    @classmethod
    def strict(cls) -> "EngineConfig":
        """Also reject repairs an XML parser refuses and flag HTML-only entities."""
        return cls(
            analysis=AnalysisConfig(flag_html_named_entities=True),
            verification=VerificationConfig(strict_parse=True),
            name="strict",
            description="Repair with XML parser verification and entity normalization",
        )

    @classmethod
    def preset(cls, name: str) -> "EngineConfig":
        """Look up a preset by name."""
        presets = {
            "audit_only": cls.audit_only,
            "balanced": cls.balanced,
            "strict": cls.strict,
        }
        if name not in presets:
            raise ConfigValidationError(
                f"Unknown preset: {name}", suggestions=sorted(presets)
            )
        return presets[name]()
