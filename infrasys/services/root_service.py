from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from infrasys.errors import InfraFileError, RootRoleExistsError
from infrasys.services.tuftool_service import TuftoolService


logger = logging.getLogger(__name__)


class RootRoleService:
    """Local root.json lifecycle: existence check, init/expire, digest."""

    def __init__(self, *, tuftool: TuftoolService, expiration: str) -> None:
        self._tuftool = tuftool
        self._expiration = expiration

    @staticmethod
    def check_root(path: Path) -> None:
        if path.is_file():
            logger.warning("Please delete file at %s", path)
            raise RootRoleExistsError(path)

    def create_root(self, path: Path) -> None:
        """Create the parent directory and an initialized, expiring root.json at `path`."""

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise InfraFileError(f"Failed to create directory {path.parent}: {exc}") from exc

        self._tuftool.init_root(path)
        self._tuftool.expire_root(path, self._expiration)

    @staticmethod
    def root_digest(path: Path) -> str:
        """Hex SHA-512 of the file, as recorded in `root_role_sha512`."""

        try:
            data = path.read_bytes()
        except OSError as exc:
            raise InfraFileError(f"Failed to read {path}: {exc}") from exc
        return hashlib.sha512(data).hexdigest()
