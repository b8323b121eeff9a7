"""
Created: Oct 18, 2026
Objective: Error types and the warn-or-raise helper used by the export loop.
"""
import traceback
from typing import Optional

from . import log


class DacExportError(Exception):
    """Base class for all export failures."""


class ExportConfigError(DacExportError):
    """Invalid request. Aborts the whole run before any instance is contacted."""


class PathCollisionError(ExportConfigError):
    """Two databases would be written to the same explicit file."""


class DacLibraryError(DacExportError):
    """The DacFx library is missing or could not be loaded."""


class SqlPackageNotFoundError(DacExportError):
    """The sqlpackage executable could not be located."""


class InstanceConnectionError(DacExportError):
    """Connecting to an instance failed. Only that instance is skipped."""

    def __init__(self, instance: str, message: str):
        super().__init__(message)
        self.instance = instance


class DatabaseExportError(DacExportError):
    """Extract/export of a single database failed."""

    def __init__(self, database: str, message: str, stderr: str = ""):
        super().__init__(message)
        self.database = database
        self.stderr = stderr


FATAL_ERRORS = (ExportConfigError, DacLibraryError, SqlPackageNotFoundError)


def stop_function(message: str, enable_exception: bool = False, exc: Optional[BaseException] = None) -> None:
    """
    Reports a failure. Prints a warning by default; raises when enable_exception is set.
    The original exception is re-raised if one is given, otherwise a DacExportError.
    """
    if enable_exception:
        if exc is not None:
            raise exc
        raise DacExportError(message)

    if exc is not None and str(exc) and str(exc) not in message:
        message = f"{message} | {exc}"
    log.warn(message)
    if exc is not None and log.is_verbose():
        traceback.print_exception(type(exc), exc, exc.__traceback__)
