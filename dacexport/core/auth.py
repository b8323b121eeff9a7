"""
Created: Oct 18, 2026
Objective: Service principal authentication for Azure SQL targets.
"""
import os
import struct
from typing import Dict, Optional

from azure.identity import ClientSecretCredential

from . import log

# Environment variable keys
ENV_TENANT = ["DACEXPORT_SP_TENANT", "AZURE_TENANT_ID"]
ENV_CLIENT = ["DACEXPORT_SP_CLIENT_ID", "AZURE_CLIENT_ID"]
ENV_SECRET = ["DACEXPORT_SP_CLIENT_SECRET", "AZURE_CLIENT_SECRET"]

SQL_RESOURCE = "https://database.windows.net/.default"
# pyodbc pre-connect attribute for an access token
SQL_COPT_SS_ACCESS_TOKEN = 1256


def get_env_value(keys):
    for k in keys:
        if os.environ.get(k):
            return os.environ.get(k)
    return None


class AuthManager:
    def __init__(self, tenant_id: str = None, client_id: str = None, client_secret: str = None):
        self.tenant_id = tenant_id or get_env_value(ENV_TENANT)
        self.client_id = client_id or get_env_value(ENV_CLIENT)
        self.client_secret = client_secret or get_env_value(ENV_SECRET)
        self.credential = None

        if self.has_sp_credentials():
            try:
                self.credential = ClientSecretCredential(self.tenant_id, self.client_id, self.client_secret)
            except ValueError as e:
                log.warn(f"Failed to create ClientSecretCredential: {e}")

    def has_sp_credentials(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)

    def get_access_token(self, resource: str = SQL_RESOURCE) -> Optional[bytes]:
        if self.credential:
            token = self.credential.get_token(resource).token
            # ODBC expects a length-prefixed UTF-16LE token
            raw = token.encode("utf-16-le")
            return struct.pack(f"<I{len(raw)}s", len(raw), raw)
        return None

    def odbc_connect_attrs(self) -> Dict[int, bytes]:
        token = self.get_access_token()
        return {SQL_COPT_SS_ACCESS_TOKEN: token} if token else {}

    def sqlclient_keywords(self) -> Dict[str, str]:
        """SqlClient keywords used by DacFx and sqlpackage for service principal logins."""
        if not self.has_sp_credentials():
            return {}
        return {
            "Authentication": "Active Directory Service Principal",
            "User ID": self.client_id,
            "Password": self.client_secret,
        }
