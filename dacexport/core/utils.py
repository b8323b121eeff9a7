"""
Created: Oct 18, 2026
Objective: Configuration loading (.env, config.yaml, DACEXPORT_* overrides) and small helpers.
"""
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Mapping, Optional

import yaml

DEFAULT_DRIVER = "ODBC Driver 18 for SQL Server"
DEFAULT_EXPORT_PATH = os.path.join(os.path.expanduser("~"), "dacexport")
# DacFx is not shipped with the package; drop Microsoft.SqlServer.Dac.dll here or configure the path.
DEFAULT_DAC_LIBRARY = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "bin", "dac", "Microsoft.SqlServer.Dac.dll"
)


def load_dotenv(path: str = ".env") -> None:
    """Loads KEY=VALUE lines from a .env file without overriding the environment."""
    if not os.path.exists(path):
        return
    with open(path, "r", encoding="utf-8") as f:
        for ln in f:
            ln = ln.strip()
            if not ln or ln.startswith("#") or "=" not in ln:
                continue
            if ln.startswith("export "):
                ln = ln[len("export "):]
            k, v = ln.split("=", 1)
            k = k.strip()
            v = v.strip().strip("'\"")
            if k and k not in os.environ:
                os.environ[k] = v


def load_config(path: str = "config.yaml") -> dict:
    if path and os.path.exists(path):
        with open(path, "r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    return {}


@dataclass
class ExportSettings:
    default_path: str = DEFAULT_EXPORT_PATH
    sqlpackage_path: Optional[str] = None
    dac_library_path: str = DEFAULT_DAC_LIBRARY
    dotnet_runtime: Optional[str] = None
    driver: str = DEFAULT_DRIVER
    strategy: Optional[str] = None

    @classmethod
    def from_config(cls, config: Optional[dict] = None, environ: Optional[Mapping[str, str]] = None) -> "ExportSettings":
        """Reads the 'export' section of config.yaml; DACEXPORT_* variables win."""
        section = (config or {}).get("export", {}) or {}
        env = os.environ if environ is None else environ

        def pick(key: str, default):
            value = env.get(f"DACEXPORT_{key.upper()}") or section.get(key)
            if value is None or value == "":
                return default
            return os.path.expanduser(str(value)) if key.endswith("path") else str(value)

        return cls(
            default_path=pick("default_path", DEFAULT_EXPORT_PATH),
            sqlpackage_path=pick("sqlpackage_path", None),
            dac_library_path=pick("dac_library_path", DEFAULT_DAC_LIBRARY),
            dotnet_runtime=pick("dotnet_runtime", None),
            driver=pick("driver", DEFAULT_DRIVER),
            strategy=pick("strategy", None),
        )


def format_elapsed(elapsed: timedelta) -> str:
    """Formats a duration as HH:MM:SS.fff."""
    total_ms = int(round(elapsed.total_seconds() * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    seconds, ms = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}.{ms:03d}"
