"""
Created: Oct 18, 2026
Objective: Request, option and result types for dacpac/bacpac exports.
"""
from dataclasses import dataclass, field, fields
from datetime import timedelta
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Union

from .errors import ExportConfigError
from .utils import format_elapsed


class PackageType(Enum):
    DACPAC = "Dacpac"
    BACPAC = "Bacpac"

    @property
    def extension(self) -> str:
        return self.value.lower()

    @property
    def action(self) -> str:
        """sqlpackage action for this package type."""
        return "Extract" if self is PackageType.DACPAC else "Export"

    @classmethod
    def parse(cls, value: Union[str, "PackageType", None]) -> "PackageType":
        if value is None:
            return cls.DACPAC
        if isinstance(value, cls):
            return value
        for member in cls:
            if member.value.lower() == str(value).strip().lower():
                return member
        raise ExportConfigError(f"Unknown package type '{value}', expected Dacpac or Bacpac")


class ExportStrategy(Enum):
    LIBRARY = "library"
    PROCESS = "process"

    @classmethod
    def parse(cls, value: Union[str, "ExportStrategy", None]) -> Optional["ExportStrategy"]:
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ExportConfigError(f"Unknown export strategy '{value}', expected library or process")


def _format_property(value) -> str:
    if isinstance(value, bool):
        return "True" if value else "False"
    return str(value)


@dataclass
class _PackageOptions:
    # Field name -> DacFx/sqlpackage property name
    _PROPERTY_NAMES = {}

    def properties(self) -> Dict[str, object]:
        """Returns the DacFx property values that were explicitly set."""
        props = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                props[self._PROPERTY_NAMES[f.name]] = value
        return props

    def sqlpackage_properties(self) -> List[str]:
        return [f"/p:{name}={_format_property(value)}" for name, value in self.properties().items()]


@dataclass
class DacpacOptions(_PackageOptions):
    """Subset of DacExtractOptions."""
    extract_all_table_data: Optional[bool] = None
    extract_application_scoped_objects_only: Optional[bool] = None
    extract_referenced_server_scoped_elements: Optional[bool] = None
    ignore_extended_properties: Optional[bool] = None
    ignore_permissions: Optional[bool] = None
    ignore_user_login_mappings: Optional[bool] = None
    verify_extraction: Optional[bool] = None
    command_timeout: Optional[int] = None
    storage: Optional[str] = None

    _PROPERTY_NAMES = {
        "extract_all_table_data": "ExtractAllTableData",
        "extract_application_scoped_objects_only": "ExtractApplicationScopedObjectsOnly",
        "extract_referenced_server_scoped_elements": "ExtractReferencedServerScopedElements",
        "ignore_extended_properties": "IgnoreExtendedProperties",
        "ignore_permissions": "IgnorePermissions",
        "ignore_user_login_mappings": "IgnoreUserLoginMappings",
        "verify_extraction": "VerifyExtraction",
        "command_timeout": "CommandTimeout",
        "storage": "Storage",
    }


@dataclass
class BacpacOptions(_PackageOptions):
    """Subset of DacExportOptions."""
    command_timeout: Optional[int] = None
    storage: Optional[str] = None
    target_engine_version: Optional[str] = None
    verify_extraction: Optional[bool] = None
    verify_full_text_document_types_supported: Optional[bool] = None

    _PROPERTY_NAMES = {
        "command_timeout": "CommandTimeout",
        "storage": "Storage",
        "target_engine_version": "TargetEngineVersion",
        "verify_extraction": "VerifyExtraction",
        "verify_full_text_document_types_supported": "VerifyFullTextDocumentTypesSupported",
    }


PackageOptions = Union[DacpacOptions, BacpacOptions]

OPTIONS_FOR_TYPE = {
    PackageType.DACPAC: DacpacOptions,
    PackageType.BACPAC: BacpacOptions,
}


def validate_options(package_type: PackageType, options: Optional[PackageOptions]) -> None:
    """Raises ExportConfigError if the options variant does not match the package type."""
    if options is None:
        return
    expected = OPTIONS_FOR_TYPE[package_type]
    if not isinstance(options, expected):
        raise ExportConfigError(
            f"{package_type.value} exports require {expected.__name__}, got {type(options).__name__}"
        )


def _coerce(value, current_type: str):
    if not isinstance(value, str):
        return value
    text = value.strip()
    if "bool" in current_type:
        if text.lower() in ("true", "1", "yes", "on"):
            return True
        if text.lower() in ("false", "0", "no", "off"):
            return False
        raise ExportConfigError(f"Expected a boolean, got '{value}'")
    if "int" in current_type:
        try:
            return int(text)
        except ValueError:
            raise ExportConfigError(f"Expected an integer, got '{value}'")
    return text


def options_from_mapping(package_type: PackageType, mapping: Optional[Mapping[str, object]]) -> Optional[PackageOptions]:
    """
    Builds the options variant for package_type from Name=Value pairs.
    Names may be given as the DacFx property name (ExtractAllTableData) or the field name.
    """
    if not mapping:
        return None
    cls = OPTIONS_FOR_TYPE[package_type]
    by_property = {prop.lower(): name for name, prop in cls._PROPERTY_NAMES.items()}
    field_types = {f.name: str(f.type) for f in fields(cls)}

    kwargs = {}
    for key, value in mapping.items():
        lookup = str(key).strip()
        name = by_property.get(lookup.lower())
        if name is None and lookup in field_types:
            name = lookup
        if name is None:
            raise ExportConfigError(f"Unknown {package_type.value} option '{key}'")
        kwargs[name] = _coerce(value, field_types[name])
    return cls(**kwargs)


@dataclass(frozen=True)
class TableFilterEntry:
    schema: str
    table: str

    def __str__(self) -> str:
        return f"[{self.schema}].[{self.table}]"


def parse_table_filter(names: Optional[Iterable[str]]) -> Optional[List[TableFilterEntry]]:
    """Splits 'Schema.Table' names; schema defaults to dbo. Returns None for no filter."""
    if not names:
        return None
    entries = []
    for name in names:
        if not name or not name.strip():
            continue
        parts = name.strip().split(".")
        table = parts[-1].strip()
        if not table:
            raise ExportConfigError(f"Table name missing in '{name}'")
        schema = parts[-2] if len(parts) > 1 and parts[-2] else "dbo"
        entries.append(TableFilterEntry(schema=schema, table=table))
    return entries or None


@dataclass
class SqlCredential:
    username: str
    password: str = field(default="", repr=False)


@dataclass
class ExportRequest:
    instances: List[str]
    credential: Optional[SqlCredential] = None
    databases: List[str] = field(default_factory=list)
    exclude_databases: List[str] = field(default_factory=list)
    all_user_databases: bool = False
    path: Optional[str] = None
    package_type: PackageType = PackageType.DACPAC
    options: Optional[PackageOptions] = None
    tables: List[str] = field(default_factory=list)
    extended_parameters: Optional[str] = None
    extended_properties: Optional[str] = None
    strategy: Optional[ExportStrategy] = None
    enable_exception: bool = False

    def has_database_selector(self) -> bool:
        return bool(self.databases or self.exclude_databases or self.all_user_databases)

    def resolve_strategy(self, default: Optional[ExportStrategy] = None) -> ExportStrategy:
        if self.strategy is not None:
            return self.strategy
        if self.extended_parameters or self.extended_properties:
            return ExportStrategy.PROCESS
        return default or ExportStrategy.LIBRARY


@dataclass
class ExportResult:
    computer_name: str
    instance_name: str
    sql_instance: str
    database: str
    path: str
    elapsed: timedelta
    result: str
    success: bool = True

    def to_dict(self) -> dict:
        return {
            "ComputerName": self.computer_name,
            "InstanceName": self.instance_name,
            "SqlInstance": self.sql_instance,
            "Database": self.database,
            "Path": self.path,
            "Elapsed": format_elapsed(self.elapsed),
            "Result": self.result,
            "Success": self.success,
        }

    def display(self) -> Dict[str, object]:
        full = self.to_dict()
        return {k: full[k] for k in ("SqlInstance", "Database", "Path", "Elapsed", "Result")}
