"""Shared fakes for the export test suite.

The instance connection, the DacFx library and the sqlpackage runner are
all injected into ``export_dac_package``, so no SQL Server, .NET runtime or
sqlpackage binary is needed.
"""

from __future__ import annotations

from typing import Any

import pytest

from dacexport.core import log
from dacexport.core.connection import InstanceIdentity
from dacexport.core.errors import InstanceConnectionError
from dacexport.core.utils import ExportSettings

# ---------------------------------------------------------------------------
# Instance connection
# ---------------------------------------------------------------------------


class FakeInstance:
    def __init__(self, instance: str, databases: list[str]) -> None:
        self.instance = instance
        self.databases = databases
        self.closed = False
        host, _, name = instance.partition("\\")
        self.identity = InstanceIdentity(
            computer_name=host.upper(),
            instance_name=name or "MSSQLSERVER",
            sql_instance=instance,
        )

    def list_databases(self) -> list[str]:
        return list(self.databases)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeInstance:
        return self

    def __exit__(self, *exc: object) -> bool:
        self.close()
        return False


class FakeConnector:
    """Callable standing in for connect_instance; records every instance contacted."""

    def __init__(self, servers: dict[str, list[str]], unreachable: tuple[str, ...] = ()) -> None:
        self.servers = servers
        self.unreachable = unreachable
        self.contacted: list[str] = []
        self.opened: list[FakeInstance] = []

    def __call__(self, instance: str, **_: Any) -> FakeInstance:
        self.contacted.append(instance)
        if instance in self.unreachable:
            raise InstanceConnectionError(instance, f"Login timeout expired for {instance}")
        server = FakeInstance(instance, self.servers.get(instance, []))
        self.opened.append(server)
        return server


# ---------------------------------------------------------------------------
# DacFx
# ---------------------------------------------------------------------------


class FakeEvent:
    def __init__(self) -> None:
        self.handlers: list[Any] = []

    def __iadd__(self, handler: Any) -> FakeEvent:
        self.handlers.append(handler)
        return self

    def __isub__(self, handler: Any) -> FakeEvent:
        self.handlers.remove(handler)
        return self

    def fire(self, text: str) -> None:
        args = type("DacMessageEventArgs", (), {"Message": text})()
        for handler in list(self.handlers):
            handler(self, args)


class FakeServices:
    def __init__(self, connection_string: str, fail_on: tuple[str, ...] = ()) -> None:
        self.connection_string = connection_string
        self.fail_on = fail_on
        self.Message = FakeEvent()
        self.calls: list[tuple[Any, ...]] = []

    def Extract(self, path, name, app_name, version, description, tables, options, token):  # noqa: N802
        self.calls.append(("Extract", path, name, app_name, version, description, tables, options, token))
        self.Message.fire(f"Extracting schema from {name}")
        if name in self.fail_on:
            raise RuntimeError(f"Login failed for database {name}")
        self.Message.fire("Extraction complete")

    def ExportBacpac(self, path, name, options, tables, token):  # noqa: N802
        self.calls.append(("ExportBacpac", path, name, options, tables, token))
        self.Message.fire(f"Exporting {name}")
        if name in self.fail_on:
            raise RuntimeError(f"Export of {name} failed")


class FakeDacLibrary:
    def __init__(self, fail_on: tuple[str, ...] = ()) -> None:
        self.fail_on = fail_on
        self.services_created: list[FakeServices] = []

    def services(self, connection_string: str) -> FakeServices:
        services = FakeServices(connection_string, self.fail_on)
        self.services_created.append(services)
        return services

    def version(self, value: str = "1.0.0.0") -> str:
        return value

    def table_list(self, tables: Any) -> Any:
        return tables

    def extract_options(self, options: Any) -> Any:
        return ("DacExtractOptions", options)

    def export_options(self, options: Any) -> Any:
        return ("DacExportOptions", options)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_log() -> None:
    log.set_verbose(False)


@pytest.fixture
def settings(tmp_path) -> ExportSettings:
    return ExportSettings(
        default_path=str(tmp_path / "exports"),
        sqlpackage_path=None,
        dac_library_path=str(tmp_path / "Microsoft.SqlServer.Dac.dll"),
    )


@pytest.fixture
def dac_library() -> FakeDacLibrary:
    return FakeDacLibrary()
