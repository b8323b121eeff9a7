import argparse
import json
import os
import sys

from .core import log
from .core.auth import AuthManager
from .core.errors import DacExportError
from .core.models import ExportRequest, ExportStrategy, PackageType, SqlCredential, options_from_mapping
from .core.utils import ExportSettings, load_config, load_dotenv
from .exporters.export import export_dac_package


def parse_option_pairs(pairs) -> dict:
    options = {}
    for pair in pairs or []:
        if "=" not in pair:
            raise DacExportError(f"Invalid --option '{pair}', expected NAME=VALUE")
        k, v = pair.split("=", 1)
        options[k.strip()] = v.strip()
    return options


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export SQL Server databases to dacpac or bacpac packages.")

    parser.add_argument("--config", default="config.yaml", help="Path to config.yaml (default: config.yaml)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging.")
    parser.add_argument("--json", action="store_true", help="Print results as JSON.")

    # Targets
    parser.add_argument("--sql-instance", "-S", nargs="+", dest="instances", help="SQL Server instance(s) to export from.")
    parser.add_argument("--database", "-d", nargs="+", dest="databases", default=[], help="Databases to export.")
    parser.add_argument("--exclude-database", nargs="+", dest="exclude_databases", default=[], help="Databases to skip.")
    parser.add_argument("--all-user-databases", action="store_true", help="Export all user databases.")

    # Auth
    parser.add_argument("--driver", help="ODBC Driver to use for the instance connection.")
    parser.add_argument("--sql-user", help="SQL login; password from --sql-password or DACEXPORT_SQL_PASSWORD.")
    parser.add_argument("--sql-password", help="SQL login password.")
    parser.add_argument("--sp-tenant", help="Service Principal Tenant ID.")
    parser.add_argument("--sp-client-id", help="Service Principal Client ID.")
    parser.add_argument("--sp-client-secret", help="Service Principal Client Secret.")

    # Package
    parser.add_argument("--path", help="Output directory or file. Defaults to the configured export directory.")
    parser.add_argument("--type", default="Dacpac", choices=["Dacpac", "Bacpac", "dacpac", "bacpac"], help="Package type.")
    parser.add_argument("--option", action="append", dest="options", metavar="NAME=VALUE", help="DacFx option, repeatable.")
    parser.add_argument("--table", nargs="+", dest="tables", default=[], help="Tables to include, as schema.table or table.")
    parser.add_argument("--extended-parameters", help="Raw sqlpackage parameters, e.g. '/OverwriteFiles:True'.")
    parser.add_argument("--extended-properties", help="Raw sqlpackage properties, e.g. '/p:IgnorePermissions=True'.")
    parser.add_argument("--strategy", choices=[s.value for s in ExportStrategy], help="library (DacFx) or process (sqlpackage).")
    parser.add_argument("--enable-exception", action="store_true", help="Raise on the first failure instead of warning.")
    return parser


def build_request(args: argparse.Namespace, config: dict) -> ExportRequest:
    instances = list(args.instances or [])
    if not instances:
        instances.extend(config.get("instances") or [])

    credential = None
    if args.sql_user:
        password = args.sql_password or os.environ.get("DACEXPORT_SQL_PASSWORD", "")
        credential = SqlCredential(args.sql_user, password)

    package_type = PackageType.parse(args.type)
    configured = (config.get("export", {}) or {}).get("options") or {}
    option_map = dict(configured.get(package_type.extension) or {})
    option_map.update(parse_option_pairs(args.options))

    return ExportRequest(
        instances=instances,
        credential=credential,
        databases=args.databases,
        exclude_databases=args.exclude_databases,
        all_user_databases=args.all_user_databases,
        path=args.path,
        package_type=package_type,
        options=options_from_mapping(package_type, option_map),
        tables=args.tables,
        extended_parameters=args.extended_parameters,
        extended_properties=args.extended_properties,
        strategy=ExportStrategy.parse(args.strategy),
        enable_exception=args.enable_exception,
    )


def print_results(results, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return
    for r in results:
        shown = r.display()
        width = max(len(k) for k in shown)
        for k, v in shown.items():
            print(f"{k.ljust(width)} : {v}")
        print()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log.set_verbose(args.verbose)

    load_dotenv()
    config_path = args.config
    config = load_config(config_path)
    log.debug(f"Using configuration from: {config_path if os.path.exists(config_path) else 'Defaults (empty)'}")

    settings = ExportSettings.from_config(config)
    if args.driver:
        settings.driver = args.driver

    auth = AuthManager(
        tenant_id=args.sp_tenant,
        client_id=args.sp_client_id,
        client_secret=args.sp_client_secret,
    )

    try:
        request = build_request(args, config)
        results = export_dac_package(request, settings, auth if auth.has_sp_credentials() else None)
    except DacExportError as e:
        log.error(str(e))
        return 1

    print_results(results, args.json)
    if not results:
        return 1
    if any(not r.success for r in results):
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
