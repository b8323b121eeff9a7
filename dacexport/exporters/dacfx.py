"""
Created: Oct 18, 2026
Objective: In-process export through the DacFx library (Microsoft.SqlServer.Dac) hosted by pythonnet.
"""
import os
from typing import List, Optional

from ..core import log
from ..core.errors import DacLibraryError, DatabaseExportError
from ..core.models import BacpacOptions, DacpacOptions, PackageOptions, PackageType, TableFilterEntry

PACKAGE_VERSION = "1.0.0.0"


class DacFxLibrary:
    """Thin adapter over the loaded DacFx assembly; converts our types to .NET ones."""

    def __init__(self, dac, system, generic):
        self._dac = dac
        self._system = system
        self._generic = generic

    def services(self, connection_string: str):
        return self._dac.DacServices(connection_string)

    def version(self, value: str = PACKAGE_VERSION):
        return self._system.Version(value)

    def table_list(self, tables: Optional[List[TableFilterEntry]]):
        if not tables:
            return None
        String, Tuple = self._system.String, self._system.Tuple
        result = self._generic.List[Tuple[String, String]]()
        for entry in tables:
            result.Add(Tuple.Create(entry.schema, entry.table))
        return result

    def _apply(self, target, options: Optional[PackageOptions]):
        if options is None:
            return target
        for name, value in options.properties().items():
            if name == "Storage":
                value = getattr(self._dac.DacSchemaModelStorageType, str(value))
            elif name == "TargetEngineVersion":
                value = getattr(self._dac.EngineVersion, str(value))
            setattr(target, name, value)
        return target

    def extract_options(self, options: Optional[DacpacOptions]):
        return self._apply(self._dac.DacExtractOptions(), options)

    def export_options(self, options: Optional[BacpacOptions]):
        return self._apply(self._dac.DacExportOptions(), options)


def load_dac_library(path: str, runtime: Optional[str] = None) -> DacFxLibrary:
    """
    Loads Microsoft.SqlServer.Dac.dll into the CLR.
    Any failure here is fatal for the run.
    """
    if not path or not os.path.isfile(path):
        raise DacLibraryError(f"DacFx library not found at {path}")

    try:
        import pythonnet
        if runtime:
            pythonnet.load(runtime)
        import clr
    except (ImportError, RuntimeError) as e:
        raise DacLibraryError(f"Unable to start the .NET runtime: {e}") from e

    try:
        clr.AddReference(os.path.abspath(path))
        import System
        import System.Collections.Generic as generic
        import Microsoft.SqlServer.Dac as dac
    except Exception as e:
        # CLR load failures surface as System.Exception subclasses, not Python ones
        raise DacLibraryError(f"Failed to load DacFx library {path}: {e}") from e

    log.debug(f"Loaded DacFx library from {path}")
    return DacFxLibrary(dac, System, generic)


class DacFxExporter:
    """Library strategy: DacServices.Extract / DacServices.ExportBacpac."""

    def __init__(self, library: DacFxLibrary):
        self.library = library

    def export(
        self,
        connection_string: str,
        database: str,
        file_path: str,
        package_type: PackageType,
        tables: Optional[List[TableFilterEntry]] = None,
        options: Optional[PackageOptions] = None,
    ) -> str:
        """Runs one extract/export and returns the messages DacFx emitted during the call."""
        messages = []

        def on_message(sender, args):
            messages.append(str(args.Message))

        try:
            services = self.library.services(connection_string)
        except Exception as e:
            raise DatabaseExportError(database, f"Failed to create DacServices for {database}: {e}") from e

        services.Message += on_message
        try:
            table_list = self.library.table_list(tables)
            if package_type is PackageType.DACPAC:
                services.Extract(
                    file_path,
                    database,
                    database,
                    self.library.version(),
                    None,
                    table_list,
                    self.library.extract_options(options),
                    None,
                )
            else:
                services.ExportBacpac(
                    file_path,
                    database,
                    self.library.export_options(options),
                    table_list,
                    None,
                )
        except Exception as e:
            captured = "\n".join(messages)
            raise DatabaseExportError(database, f"{package_type.value} export of {database} failed: {e}", captured) from e
        finally:
            services.Message -= on_message

        return "\n".join(messages)
