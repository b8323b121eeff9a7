"""
Created: Oct 18, 2026
Objective: Export dacpac/bacpac packages for one or more instances and databases.
"""
import time
from datetime import timedelta
from typing import Callable, List, Optional

from ..core import log
from ..core.auth import AuthManager
from ..core.connection import build_sqlclient_connection_string, connect_instance, select_databases
from ..core.errors import (
    DatabaseExportError,
    FATAL_ERRORS,
    ExportConfigError,
    InstanceConnectionError,
    PathCollisionError,
    stop_function,
)
from ..core.filesystem import resolve_export_target
from ..core.models import ExportRequest, ExportResult, ExportStrategy, parse_table_filter, validate_options
from ..core.utils import ExportSettings
from .dacfx import DacFxExporter, load_dac_library
from .sqlpackage import SqlPackageExporter, find_sqlpackage, run_sqlpackage


def _validate_request(request: ExportRequest) -> None:
    if not request.instances:
        raise ExportConfigError("No SQL Server instance specified")
    if not request.has_database_selector():
        raise ExportConfigError("You must specify databases to export: use a database list, an exclude list, or all user databases")
    validate_options(request.package_type, request.options)


def _build_exporter(strategy: ExportStrategy, settings: ExportSettings, load_library, run_process):
    if strategy is ExportStrategy.LIBRARY:
        return DacFxExporter(load_library(settings.dac_library_path, settings.dotnet_runtime))
    return SqlPackageExporter(find_sqlpackage(settings.sqlpackage_path), runner=run_process)


def export_dac_package(
    request: ExportRequest,
    settings: Optional[ExportSettings] = None,
    auth: Optional[AuthManager] = None,
    *,
    connect: Callable = connect_instance,
    load_library: Callable = load_dac_library,
    run_process: Callable = run_sqlpackage,
) -> List[ExportResult]:
    """
    Exports every selected database on every instance.

    Configuration problems (no database selector, options of the wrong variant,
    missing output directory, missing DacFx/sqlpackage) abort before any instance
    is contacted. Connection failures skip the instance; export failures skip the
    database. Unless request.enable_exception is set those are reported as
    warnings and the run continues.
    """
    settings = settings or ExportSettings()
    enable_exception = request.enable_exception
    results = []

    try:
        _validate_request(request)
        tables = parse_table_filter(request.tables)
        target = resolve_export_target(request.path, request.package_type, settings.default_path)
        if target.is_file and len(request.instances) > 1:
            raise ExportConfigError(
                f"{target.file_path} is a single file but {len(request.instances)} instances were given; use a directory"
            )
        strategy = request.resolve_strategy(ExportStrategy.parse(settings.strategy))
        exporter = _build_exporter(strategy, settings, load_library, run_process)
    except FATAL_ERRORS as e:
        stop_function(str(e), enable_exception, e)
        return results

    if tables:
        log.debug(f"Table filter: {', '.join(str(t) for t in tables)}")

    for instance in request.instances:
        log.debug(f"Processing instance: {instance}")
        try:
            server = connect(instance, credential=request.credential, auth=auth, driver=settings.driver)
        except InstanceConnectionError as e:
            stop_function(f"Failure connecting to {instance}", enable_exception, e)
            continue

        with server:
            try:
                identity = server.identity
                databases = select_databases(server.list_databases(), request.databases, request.exclude_databases)
            except InstanceConnectionError as e:
                stop_function(str(e), enable_exception, e)
                continue

            if not databases:
                stop_function(f"Databases not found or not accessible on {instance}", enable_exception)
                continue

            for db_name in databases:
                log.debug(f"Processing database: {db_name}")
                try:
                    file_path = target.path_for(instance, db_name)
                except PathCollisionError as e:
                    stop_function(str(e), enable_exception, e)
                    return results

                conn_str = build_sqlclient_connection_string(instance, db_name, request.credential, auth)
                started = time.monotonic()
                try:
                    if strategy is ExportStrategy.LIBRARY:
                        output = exporter.export(
                            conn_str, db_name, file_path, request.package_type, tables, request.options
                        )
                    else:
                        output = exporter.export(
                            conn_str,
                            db_name,
                            file_path,
                            request.package_type,
                            tables,
                            request.options,
                            request.extended_parameters,
                            request.extended_properties,
                        )
                    success = True
                except DatabaseExportError as e:
                    stop_function(str(e), enable_exception, e)
                    output = e.stderr or str(e)
                    success = False
                elapsed = timedelta(seconds=time.monotonic() - started)

                results.append(ExportResult(
                    computer_name=identity.computer_name,
                    instance_name=identity.instance_name,
                    sql_instance=identity.sql_instance,
                    database=db_name,
                    path=file_path,
                    elapsed=elapsed,
                    result=output,
                    success=success,
                ))
                if success:
                    log.debug(f"Exported {db_name} to {file_path} in {elapsed}")

    return results
