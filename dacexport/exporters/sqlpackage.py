"""
Created: Oct 18, 2026
Objective: Out-of-process export through the sqlpackage command line tool.
"""
import os
import shlex
import shutil
import subprocess
from typing import Callable, List, Optional, Tuple

from ..core import log
from ..core.connection import mask_connection_string
from ..core.errors import DatabaseExportError, SqlPackageNotFoundError
from ..core.models import PackageOptions, PackageType, TableFilterEntry

EXECUTABLE_NAMES = ("sqlpackage", "sqlpackage.exe", "SqlPackage", "SqlPackage.exe")


def find_sqlpackage(configured: Optional[str] = None) -> str:
    if configured:
        if os.path.isfile(configured):
            return configured
        found = shutil.which(configured)
        if found:
            return found
        raise SqlPackageNotFoundError(f"sqlpackage not found at {configured}")

    for name in EXECUTABLE_NAMES:
        found = shutil.which(name)
        if found:
            return found
    raise SqlPackageNotFoundError("sqlpackage not found on PATH; set export.sqlpackage_path or DACEXPORT_SQLPACKAGE_PATH")


def split_extended(value: Optional[str], posix: Optional[bool] = None) -> List[str]:
    """Splits raw pass-through flags the way a shell would."""
    if not value:
        return []
    if posix is None:
        posix = os.name != "nt"
    if posix:
        return shlex.split(value)
    # Windows command lines: double quotes group and are not part of the value, backslashes are literal
    lexer = shlex.shlex(value, posix=True)
    lexer.whitespace_split = True
    lexer.quotes = '"'
    lexer.escape = ""
    lexer.commenters = ""
    return list(lexer)


def build_sqlpackage_arguments(
    connection_string: str,
    file_path: str,
    package_type: PackageType,
    tables: Optional[List[TableFilterEntry]] = None,
    options: Optional[PackageOptions] = None,
    extended_parameters: Optional[str] = None,
    extended_properties: Optional[str] = None,
) -> List[str]:
    args = [
        f"/action:{package_type.action}",
        f"/tf:{file_path}",
        f"/SourceConnectionString:{connection_string}",
    ]
    if options is not None:
        args.extend(options.sqlpackage_properties())
    for entry in tables or ():
        args.append(f"/p:TableData={entry}")
    args.extend(split_extended(extended_parameters))
    args.extend(split_extended(extended_properties))
    return args


def run_sqlpackage(executable: str, args: List[str]) -> Tuple[int, str, str]:
    """
    Runs sqlpackage and waits for it to exit.
    communicate() drains stdout and stderr together so a chatty tool cannot fill a pipe and stall.
    """
    proc = subprocess.Popen(
        [executable, *args],
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        text=True,
        encoding="utf-8",
        errors="replace",
    )
    stdout, stderr = proc.communicate()
    return proc.returncode, stdout or "", stderr or ""


class SqlPackageExporter:
    """Process strategy: sqlpackage /action:Extract or /action:Export."""

    def __init__(self, executable: str, runner: Callable[[str, List[str]], Tuple[int, str, str]] = run_sqlpackage):
        self.executable = executable
        self.runner = runner

    def export(
        self,
        connection_string: str,
        database: str,
        file_path: str,
        package_type: PackageType,
        tables: Optional[List[TableFilterEntry]] = None,
        options: Optional[PackageOptions] = None,
        extended_parameters: Optional[str] = None,
        extended_properties: Optional[str] = None,
    ) -> str:
        args = build_sqlpackage_arguments(
            connection_string, file_path, package_type, tables, options, extended_parameters, extended_properties
        )
        log.debug(f"Running {self.executable} {mask_connection_string(' '.join(args))}")

        try:
            exit_code, stdout, stderr = self.runner(self.executable, args)
        except OSError as e:
            raise DatabaseExportError(database, f"Failed to start {self.executable}: {e}") from e

        if exit_code != 0:
            raise DatabaseExportError(
                database,
                f"sqlpackage exited with code {exit_code} for {database}: {stderr.strip()}",
                stderr,
            )
        return stdout.strip()
