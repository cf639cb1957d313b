"""Load behavior configuration documents from YAML."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

import yaml

from colderive.config.settings import HostSettings, parse_flag
from colderive.config.validator import validate_document
from colderive.core.types import BuiltinColumn, ColumnSpec, ViewKind
from colderive.errors import ConfigurationError

CUSTOM_COLUMN = "CustomColumn"

DERIVE_FIELDS = {
    "HansoftProject",
    "InvertedMatch",
    "RequireProject",
    "View",
    "Find",
    "Columns",
}


@dataclass
class DeriveConfig:
    """Configuration of one Derive behavior.

    Attributes:
        project_pattern: Regex selecting projects by name (HansoftProject)
        view: Which view of each project to recompute
        columns: Derived columns, in declared order
        inverted: Select projects NOT matching the pattern (InvertedMatch)
        find: Item query passed to the view, empty for all items
        require_project: Fail initialization when no project matches
    """

    project_pattern: str
    view: ViewKind
    columns: list[ColumnSpec]
    inverted: bool = False
    find: str = ""
    require_project: bool = False

    @property
    def title(self) -> str:
        inverted = "not " if self.inverted else ""
        return f"DeriveBehavior: {inverted}'{self.project_pattern}' ({self.view.value})"


@dataclass
class BehaviorConfig:
    """One entry of the ``behaviors:`` list: a registered behavior kind and its options."""

    kind: str
    options: dict[str, Any]


@dataclass
class HostConfig:
    settings: HostSettings = field(default_factory=HostSettings)
    behaviors: list[BehaviorConfig] = field(default_factory=list)


def load_config(path: Path | str, settings: HostSettings | None = None) -> HostConfig:
    """Load a configuration document from a YAML file.

    Args:
        path: YAML file
        settings: Base settings (e.g. HostSettings.from_env()); the document's
            ``settings:`` section overrides them

    Raises:
        ConfigurationError: If the file can't be read, is malformed or
            doesn't match the configuration schema
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Cannot read configuration {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e

    data = data or {}
    issues = validate_document(data, source=path)
    if issues:
        details = "\n".join(f"  - {issue}" for issue in issues)
        raise ConfigurationError(f"Invalid configuration {path}:\n{details}")

    return parse_config(data, settings)


def parse_config(data: Mapping[str, Any], settings: HostSettings | None = None) -> HostConfig:
    """Build a HostConfig from an already parsed document."""
    if not isinstance(data, Mapping):
        raise ConfigurationError("Configuration document must be a mapping")

    unknown = set(data) - {"settings", "behaviors"}
    if unknown:
        raise ConfigurationError(f"Unknown top-level keys: {', '.join(sorted(unknown))}")

    host_settings = (settings or HostSettings()).merged(data.get("settings"))

    behaviors = []
    for index, entry in enumerate(data.get("behaviors") or []):
        if not isinstance(entry, Mapping) or len(entry) != 1:
            raise ConfigurationError(
                f"Behavior #{index + 1} must be a mapping with exactly one behavior kind"
            )
        (kind, options), = entry.items()
        if options is not None and not isinstance(options, Mapping):
            raise ConfigurationError(f"Options of behavior '{kind}' must be a mapping")
        behaviors.append(BehaviorConfig(kind=str(kind), options=dict(options or {})))

    return HostConfig(settings=host_settings, behaviors=behaviors)


def parse_derive_config(data: Mapping[str, Any]) -> DeriveConfig:
    """Validate and convert the options of a Derive behavior.

    Raises:
        ConfigurationError: For missing required fields, an unsupported view,
            unknown options or unknown column elements
    """
    if not isinstance(data, Mapping):
        raise ConfigurationError("Derive behavior options must be a mapping")

    unknown = set(data) - DERIVE_FIELDS
    if unknown:
        raise ConfigurationError(
            f"Unknown Derive behavior options: {', '.join(sorted(unknown))}"
        )

    project_pattern = _required(data, "HansoftProject")
    view_name = _required(data, "View")
    try:
        view = ViewKind(view_name)
    except ValueError:
        allowed = ", ".join(v.value for v in ViewKind)
        raise ConfigurationError(
            f"Unsupported View '{view_name}' in Derive behavior (expected one of: {allowed})"
        ) from None

    columns_data = data.get("Columns")
    if not columns_data or not isinstance(columns_data, list):
        raise ConfigurationError("Derive behavior needs a non-empty 'Columns' list")

    return DeriveConfig(
        project_pattern=str(project_pattern),
        view=view,
        columns=[_parse_column(entry) for entry in columns_data],
        inverted=parse_flag(data.get("InvertedMatch", False), "InvertedMatch"),
        find=str(data.get("Find") or ""),
        require_project=parse_flag(data.get("RequireProject", False), "RequireProject"),
    )


def _required(data: Mapping[str, Any], name: str) -> Any:
    value = data.get(name)
    if value is None or value == "":
        raise ConfigurationError(f"Missing required field '{name}' in Derive behavior")
    return value


def _parse_column(entry: Any) -> ColumnSpec:
    """Convert one ``Columns`` element, e.g. ``{Risk: {Expression: ...}}``."""
    if not isinstance(entry, Mapping) or len(entry) != 1:
        raise ConfigurationError(
            f"Column element must be a mapping with exactly one column type, got {entry!r}"
        )

    (element, attributes), = entry.items()
    if isinstance(attributes, str):
        attributes = {"Expression": attributes}
    if not isinstance(attributes, Mapping):
        raise ConfigurationError(f"Attributes of column '{element}' must be a mapping")

    if element == CUSTOM_COLUMN:
        name = attributes.get("Name")
        if not name:
            raise ConfigurationError("CustomColumn element needs a 'Name'")
        return ColumnSpec.custom(str(name), _expression(element, attributes))

    column = BuiltinColumn.from_name(str(element))
    if column is None:
        raise ConfigurationError(f"Unknown column type specified in Derive behavior: {element}")
    return ColumnSpec.builtin(column, _expression(element, attributes))


def _expression(element: str, attributes: Mapping[str, Any]) -> str:
    expression = attributes.get("Expression")
    if expression is None or not str(expression).strip():
        raise ConfigurationError(f"Column '{element}' needs an 'Expression'")
    return str(expression)
