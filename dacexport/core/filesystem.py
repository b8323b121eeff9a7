import os
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

from .errors import ExportConfigError, PathCollisionError
from .models import PackageType

_INVALID_CHARS = r'[<>:"/\\|?*\x00-\x1f]'


def sanitise_filename(name: str) -> str:
    """Replaces characters that are not allowed in file names."""
    name = re.sub(_INVALID_CHARS, "_", name).strip().rstrip(".")
    return name or "unnamed"


def instance_file_prefix(instance: str) -> str:
    """sql01\\SHAREPOINT -> sql01-SHAREPOINT"""
    return sanitise_filename(instance.replace("\\", "-"))


def package_filename(instance: str, database: str, package_type: PackageType) -> str:
    return f"{instance_file_prefix(instance)}-{sanitise_filename(database)}.{package_type.extension}"


@dataclass
class ExportTarget:
    """
    Where packages are written. In directory mode every database gets
    <instance>-<database>.<ext>; in file mode a single fixed file is used.
    """
    package_type: PackageType
    directory: Optional[str] = None
    file_path: Optional[str] = None
    _claimed: Dict[str, Tuple[str, str]] = field(default_factory=dict, repr=False)

    @property
    def is_file(self) -> bool:
        return self.file_path is not None

    def path_for(self, instance: str, database: str) -> str:
        if self.is_file:
            path = self.file_path
        else:
            path = os.path.join(self.directory, package_filename(instance, database, self.package_type))

        key = os.path.normcase(os.path.abspath(path))
        owner = self._claimed.get(key)
        if owner is not None and owner != (instance, database):
            raise PathCollisionError(
                f"{instance}/{database} would overwrite {path}, already written for {owner[0]}/{owner[1]}"
            )
        self._claimed[key] = (instance, database)
        return path


def resolve_export_target(path: Optional[str], package_type: PackageType, default_path: str) -> ExportTarget:
    """
    Resolves the requested path to a directory or a single output file.
    The default export directory is created if missing; an explicit file path
    needs an existing parent directory.
    """
    if not path:
        os.makedirs(default_path, exist_ok=True)
        return ExportTarget(package_type=package_type, directory=default_path)

    path = os.path.expanduser(path)
    if os.path.isdir(path):
        return ExportTarget(package_type=package_type, directory=path)

    parent = os.path.dirname(os.path.abspath(path))
    if not os.path.isdir(parent):
        raise ExportConfigError(f"Parent directory {parent} does not exist")
    return ExportTarget(package_type=package_type, file_path=path)
