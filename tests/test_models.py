"""Unit tests for request/option types and table filter parsing."""

from datetime import timedelta

import pytest

from dacexport.core.errors import ExportConfigError
from dacexport.core.models import (
    BacpacOptions,
    DacpacOptions,
    ExportRequest,
    ExportResult,
    ExportStrategy,
    PackageType,
    TableFilterEntry,
    options_from_mapping,
    parse_table_filter,
    validate_options,
)

# ═══════════════════════════════════════════════════════════════════════════
# parse_table_filter
# ═══════════════════════════════════════════════════════════════════════════


class TestParseTableFilter:
    """Splitting schema-qualified table names."""

    def test_schema_and_table(self) -> None:
        assert parse_table_filter(["Schema1.Table3"]) == [TableFilterEntry("Schema1", "Table3")]

    def test_table_only_defaults_to_dbo(self) -> None:
        assert parse_table_filter(["Table2"]) == [TableFilterEntry("dbo", "Table2")]

    def test_three_part_name_uses_last_two_segments(self) -> None:
        assert parse_table_filter(["Sales.Orders.Lines"]) == [TableFilterEntry("Orders", "Lines")]

    def test_empty_schema_segment_defaults_to_dbo(self) -> None:
        assert parse_table_filter([".Table1"]) == [TableFilterEntry("dbo", "Table1")]

    def test_no_tables_means_no_filter(self) -> None:
        assert parse_table_filter(None) is None
        assert parse_table_filter([]) is None
        assert parse_table_filter(["", "  "]) is None

    def test_trailing_dot_without_table_rejected(self) -> None:
        with pytest.raises(ExportConfigError, match="Schema1\."):
            parse_table_filter(["Table1", "Schema1."])

    def test_entry_renders_bracketed(self) -> None:
        assert str(TableFilterEntry("dbo", "Table1")) == "[dbo].[Table1]"


# ═══════════════════════════════════════════════════════════════════════════
# Options variants
# ═══════════════════════════════════════════════════════════════════════════


class TestValidateOptions:
    """Options variant must match the package type."""

    def test_matching_variants_pass(self) -> None:
        validate_options(PackageType.DACPAC, DacpacOptions())
        validate_options(PackageType.BACPAC, BacpacOptions())
        validate_options(PackageType.BACPAC, None)

    def test_bacpac_options_for_dacpac_rejected(self) -> None:
        with pytest.raises(ExportConfigError, match="DacpacOptions"):
            validate_options(PackageType.DACPAC, BacpacOptions())

    def test_dacpac_options_for_bacpac_rejected(self) -> None:
        with pytest.raises(ExportConfigError, match="BacpacOptions"):
            validate_options(PackageType.BACPAC, DacpacOptions())


class TestOptionsFromMapping:
    """Building options from config/CLI pairs."""

    def test_property_names_and_coercion(self) -> None:
        opts = options_from_mapping(
            PackageType.DACPAC,
            {"ExtractAllTableData": "true", "CommandTimeout": "120", "Storage": "Memory"},
        )
        assert isinstance(opts, DacpacOptions)
        assert opts.extract_all_table_data is True
        assert opts.command_timeout == 120
        assert opts.storage == "Memory"

    def test_field_names_accepted(self) -> None:
        opts = options_from_mapping(PackageType.BACPAC, {"verify_extraction": False})
        assert isinstance(opts, BacpacOptions)
        assert opts.verify_extraction is False

    def test_property_lookup_is_case_insensitive(self) -> None:
        opts = options_from_mapping(PackageType.DACPAC, {"ignorepermissions": "yes"})
        assert opts.ignore_permissions is True

    def test_option_of_other_variant_rejected(self) -> None:
        with pytest.raises(ExportConfigError, match="Unknown Bacpac option"):
            options_from_mapping(PackageType.BACPAC, {"ExtractAllTableData": "true"})

    def test_bad_boolean_rejected(self) -> None:
        with pytest.raises(ExportConfigError, match="boolean"):
            options_from_mapping(PackageType.DACPAC, {"VerifyExtraction": "maybe"})

    def test_bad_integer_rejected(self) -> None:
        with pytest.raises(ExportConfigError, match="integer"):
            options_from_mapping(PackageType.DACPAC, {"CommandTimeout": "soon"})

    def test_empty_mapping_gives_none(self) -> None:
        assert options_from_mapping(PackageType.DACPAC, {}) is None

    def test_only_set_properties_exported(self) -> None:
        opts = DacpacOptions(extract_all_table_data=True, command_timeout=30)
        assert opts.properties() == {"ExtractAllTableData": True, "CommandTimeout": 30}
        assert opts.sqlpackage_properties() == ["/p:ExtractAllTableData=True", "/p:CommandTimeout=30"]


# ═══════════════════════════════════════════════════════════════════════════
# Enums and request
# ═══════════════════════════════════════════════════════════════════════════


class TestPackageType:
    def test_parse_is_case_insensitive(self) -> None:
        assert PackageType.parse("bacpac") is PackageType.BACPAC
        assert PackageType.parse(None) is PackageType.DACPAC

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ExportConfigError):
            PackageType.parse("zip")

    def test_extension_and_action(self) -> None:
        assert (PackageType.DACPAC.extension, PackageType.DACPAC.action) == ("dacpac", "Extract")
        assert (PackageType.BACPAC.extension, PackageType.BACPAC.action) == ("bacpac", "Export")


class TestExportRequest:
    def test_selector_required(self) -> None:
        assert not ExportRequest(instances=["sql1"]).has_database_selector()
        assert ExportRequest(instances=["sql1"], exclude_databases=["tempdb"]).has_database_selector()
        assert ExportRequest(instances=["sql1"], all_user_databases=True).has_database_selector()

    def test_strategy_defaults_to_library(self) -> None:
        assert ExportRequest(instances=["sql1"]).resolve_strategy() is ExportStrategy.LIBRARY

    def test_extended_arguments_select_process(self) -> None:
        req = ExportRequest(instances=["sql1"], extended_properties="/p:IgnorePermissions=True")
        assert req.resolve_strategy() is ExportStrategy.PROCESS

    def test_explicit_strategy_wins(self) -> None:
        req = ExportRequest(instances=["sql1"], extended_parameters="/Quiet:True", strategy=ExportStrategy.LIBRARY)
        assert req.resolve_strategy() is ExportStrategy.LIBRARY

    def test_unknown_strategy_rejected(self) -> None:
        with pytest.raises(ExportConfigError):
            ExportStrategy.parse("remote")


class TestExportResult:
    def test_default_display_hides_host_details(self) -> None:
        result = ExportResult(
            computer_name="SQL01",
            instance_name="MSSQLSERVER",
            sql_instance="sql01",
            database="db1",
            path="/tmp/sql01-db1.dacpac",
            elapsed=timedelta(seconds=61, milliseconds=250),
            result="done",
        )
        assert "ComputerName" not in result.display()
        assert "InstanceName" not in result.display()
        full = result.to_dict()
        assert full["ComputerName"] == "SQL01"
        assert full["Elapsed"] == "00:01:01.250"
