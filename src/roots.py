"""
Project roots: named Salesforce project directories commands can run in.
"""

import logging
from pathlib import Path
from typing import Optional

from models import ProjectRoot

logger = logging.getLogger(__name__)


class RootValidationError(ValueError):
    """A directory cannot be used as a project root."""


class ProjectRootManager:
    """
    In-memory set of project roots with exactly one default.

    Roots live for the lifetime of the process. Every mutation ends with an
    invariant check: when roots exist, exactly one of them is the default.
    """

    def __init__(self, marker_file: str = "sfdx-project.json"):
        self.marker_file = marker_file
        self._roots: list[ProjectRoot] = []

    def validate(self, path: str) -> Path:
        """Resolve a candidate directory, raising if it is not a project."""
        directory = Path(path).expanduser().absolute()
        if not directory.is_dir():
            raise RootValidationError(f"Directory does not exist: {directory}")
        if not (directory / self.marker_file).is_file():
            raise RootValidationError(f"Directory does not contain {self.marker_file}: {directory}")
        return directory

    def set_root(
        self,
        path: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        is_default: Optional[bool] = None,
    ) -> ProjectRoot:
        """
        Add a root or update the one registered for the same path.

        On update, only the values given override what is stored. A new
        root is named after its directory and becomes the default when it
        is the first one. Raises RootValidationError without touching any
        state when the path is not a valid project.
        """
        directory = str(self.validate(path))

        if name is not None and any(r.name == name and r.path != directory for r in self._roots):
            raise RootValidationError(f"Another project root is already named '{name}'")

        root = next((r for r in self._roots if r.path == directory), None)
        if root is None:
            root = ProjectRoot(
                path=directory,
                name=name or self._unique_name(Path(directory).name),
                description=description,
                is_default=is_default if is_default is not None else not self._roots,
            )
            self._roots.append(root)
            logger.info(f"Added project root {root.name}: {directory}")
        else:
            if name is not None:
                root.name = name
            if description is not None:
                root.description = description
            if is_default is not None:
                root.is_default = is_default
            logger.info(f"Updated project root {root.name}: {directory}")

        if root.is_default:
            for other in self._roots:
                if other is not root:
                    other.is_default = False

        self._ensure_default()
        return root.model_copy()

    def _unique_name(self, base: str) -> str:
        names = {r.name for r in self._roots}
        name, n = base, 2
        while name in names:
            name = f"{base}-{n}"
            n += 1
        return name

    def _ensure_default(self) -> None:
        if self._roots and not any(r.is_default for r in self._roots):
            self._roots[0].is_default = True
            logger.info(f"Promoted {self._roots[0].name} to default project root")

    def list_roots(self) -> list[ProjectRoot]:
        return [r.model_copy() for r in self._roots]

    def get(self, name: str) -> Optional[ProjectRoot]:
        root = next((r for r in self._roots if r.name == name), None)
        return root.model_copy() if root else None

    def default_root(self) -> Optional[ProjectRoot]:
        root = next((r for r in self._roots if r.is_default), None)
        return root.model_copy() if root else None

    def default_path(self) -> Optional[str]:
        root = self.default_root()
        return root.path if root else None

    def resolve(self, name: Optional[str] = None) -> Optional[ProjectRoot]:
        """Root to run in: the named one if known, else the default."""
        if name:
            root = self.get(name)
            if root:
                return root
            logger.warning(f"Unknown project root '{name}', falling back to the default root")
        return self.default_root()
