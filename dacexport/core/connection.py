import re
from dataclasses import dataclass
from typing import Iterable, List, Optional

from azure.core.exceptions import AzureError

from . import log
from .auth import AuthManager
from .errors import InstanceConnectionError
from .models import SqlCredential

LOGIN_TIMEOUT = 15


def ensure_driver_available(driver_name: str) -> str:
    """Checks if the requested driver is available, or finds a suitable fallback."""
    import pyodbc

    installed = pyodbc.drivers()
    if driver_name in installed:
        return driver_name

    low_installed = [d.lower() for d in installed]
    if driver_name and driver_name.lower() in low_installed:
        return installed[low_installed.index(driver_name.lower())]

    for d in installed:
        if "18" in d and "SQL Server" in d:
            return d
    for d in installed:
        if "17" in d and "SQL Server" in d:
            return d

    raise InstanceConnectionError("", f"Requested ODBC driver {driver_name} not found, available drivers: {installed}")


def build_connection_string(
    instance: str,
    database: Optional[str] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
    credential: Optional[SqlCredential] = None,
    auth_sp: bool = False,
) -> str:
    """Builds an ODBC connection string for the instance connection."""
    use_driver = ensure_driver_available(driver)
    db_part = f"DATABASE={database};" if database else ""
    base = f"DRIVER={{{use_driver}}};SERVER={instance};{db_part}"

    if auth_sp:
        # Access token is passed through attrs_before
        return base + "Encrypt=yes;TrustServerCertificate=no;"
    if credential is not None:
        return base + f"UID={credential.username};PWD={{{credential.password.replace('}', '}}')}}};Encrypt=yes;TrustServerCertificate=yes;"
    return base + "Trusted_Connection=yes;Encrypt=yes;TrustServerCertificate=yes;"


def _quote_sqlclient_value(value: str) -> str:
    value = str(value)
    if ";" in value or "=" in value or value != value.strip() or value.startswith(("'", '"')):
        return '"' + value.replace('"', '""') + '"'
    return value


def build_sqlclient_connection_string(
    instance: str,
    database: str,
    credential: Optional[SqlCredential] = None,
    auth: Optional[AuthManager] = None,
) -> str:
    """Builds the SqlClient (ADO.NET) connection string handed to DacFx and sqlpackage."""
    parts = [("Data Source", instance), ("Initial Catalog", database)]
    if auth is not None and auth.has_sp_credentials():
        parts.extend(auth.sqlclient_keywords().items())
        parts.append(("Encrypt", "True"))
    elif credential is not None:
        parts.extend([("User ID", credential.username), ("Password", credential.password)])
        parts.extend([("Encrypt", "True"), ("TrustServerCertificate", "True")])
    else:
        parts.extend([("Integrated Security", "True"), ("Encrypt", "True"), ("TrustServerCertificate", "True")])
    parts.append(("Application Name", "dacexport"))
    return "".join(f"{k}={_quote_sqlclient_value(v)};" for k, v in parts)


def mask_connection_string(conn: str) -> str:
    """Hides passwords for log output."""
    return re.sub(r'(?i)\b(pwd|password)\s*=\s*("(?:[^"]|"")*"|\{(?:[^}]|\}\})*\}|[^;]*)', r'\1=***', conn)


@dataclass
class InstanceIdentity:
    computer_name: str
    instance_name: str
    sql_instance: str


IDENTITY_QUERY = r"""
    SELECT
        CAST(SERVERPROPERTY('MachineName') AS nvarchar(128)) AS ComputerName,
        CAST(COALESCE(SERVERPROPERTY('InstanceName'), 'MSSQLSERVER') AS nvarchar(128)) AS InstanceName,
        CAST(SERVERPROPERTY('ServerName') AS nvarchar(256)) AS SqlInstance;
"""

DATABASES_QUERY = r"""
    SELECT name
    FROM sys.databases
    WHERE database_id > 4 --- skips system databases
        AND state = 0 --- skips offline databases
        AND HAS_DBACCESS(name) = 1
    ORDER BY name;
"""


class InstanceConnection:
    """Open connection to one instance; used to identify it and enumerate its databases."""

    def __init__(self, instance: str, conn):
        self.instance = instance
        self._conn = conn
        self._identity = None

    @property
    def identity(self) -> InstanceIdentity:
        import pyodbc

        if self._identity is None:
            try:
                cur = self._conn.cursor()
                cur.execute(IDENTITY_QUERY)
                row = cur.fetchone()
            except pyodbc.Error as e:
                raise InstanceConnectionError(self.instance, f"Failed to identify {self.instance}: {e}") from e
            computer, instance_name, server_name = (row[0], row[1], row[2]) if row else (None, None, None)
            self._identity = InstanceIdentity(
                computer_name=computer or self.instance.split("\\")[0].split(",")[0],
                instance_name=instance_name or "MSSQLSERVER",
                sql_instance=server_name or self.instance,
            )
        return self._identity

    def list_databases(self) -> List[str]:
        """Lists accessible, online user databases."""
        import pyodbc

        try:
            cur = self._conn.cursor()
            cur.execute(DATABASES_QUERY)
            rows = cur.fetchall()
        except pyodbc.Error as e:
            raise InstanceConnectionError(self.instance, f"Failed to list databases on {self.instance}: {e}") from e
        return [row[0] for row in rows]

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False


def connect_instance(
    instance: str,
    credential: Optional[SqlCredential] = None,
    auth: Optional[AuthManager] = None,
    driver: str = "ODBC Driver 18 for SQL Server",
) -> InstanceConnection:
    """Connects to master on the instance. Raises InstanceConnectionError on failure."""
    import pyodbc

    use_sp = auth is not None and auth.has_sp_credentials()
    try:
        conn_str = build_connection_string(instance, "master", driver=driver, credential=credential, auth_sp=use_sp)
        log.debug(f"Connecting to {instance} using: {mask_connection_string(conn_str)}")

        connect_args = {"autocommit": True, "timeout": LOGIN_TIMEOUT}
        if use_sp:
            attrs = auth.odbc_connect_attrs()
            if attrs:
                connect_args["attrs_before"] = attrs
        conn = pyodbc.connect(conn_str, **connect_args)
    except InstanceConnectionError as e:
        raise InstanceConnectionError(instance, str(e)) from e
    except (pyodbc.Error, AzureError) as e:
        raise InstanceConnectionError(instance, f"Failure connecting to {instance}: {e}") from e
    return InstanceConnection(instance, conn)


def select_databases(available: Iterable[str], include: Iterable[str] = (), exclude: Iterable[str] = ()) -> List[str]:
    """Filters the instance's databases by the include and exclude lists (case-insensitive)."""
    include_set = {d.lower() for d in include or ()}
    exclude_set = {d.lower() for d in exclude or ()}
    selected = []
    for name in available:
        low = name.lower()
        if include_set and low not in include_set:
            continue
        if low in exclude_set:
            continue
        selected.append(name)
    return selected
