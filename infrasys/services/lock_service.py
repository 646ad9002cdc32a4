from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from infrasys.errors import InfraFileError
from infrasys.models.infra import InfraConfig


logger = logging.getLogger(__name__)


class LockService:
    """Writes Infra.lock next to Infra.toml and checks an existing lock against it."""

    LOCK_FILE_NAME = "Infra.lock"
    REPO_OUTPUT_FIELDS = ("metadata_base_url", "targets_url", "root_role_url", "root_role_sha512")

    @classmethod
    def lock_path(cls, infra_config_path: Path) -> Path:
        return infra_config_path.resolve().parent / cls.LOCK_FILE_NAME

    def write_lock(self, infra_config: InfraConfig, infra_config_path: Path) -> Path:
        lock_path = self.lock_path(infra_config_path)
        try:
            lock_path.write_text(infra_config.to_lock_yaml(), encoding="utf-8")
        except OSError as exc:
            raise InfraFileError(f"Failed to write {lock_path}: {exc}") from exc

        logger.info("Wrote %s", lock_path)
        return lock_path

    def check_infra_lock(self, infra_config_path: Path) -> list[str]:
        """Compare Infra.lock with Infra.toml.

        Returns:
            Human-readable problems; empty when every value set in Infra.toml is
            carried unchanged in Infra.lock and every repo has its outputs recorded.
        """

        lock_path = self.lock_path(infra_config_path)
        if not lock_path.is_file():
            raise InfraFileError(f"No {self.LOCK_FILE_NAME} found at {lock_path}")

        infra_config = InfraConfig.from_path(infra_config_path)
        lock = InfraConfig.from_lock_path(lock_path)

        problems = self._diff(infra_config.to_lock_dict(), lock.to_lock_dict(), path="")
        for repo_name, repo_config in (lock.repo or {}).items():
            for field in self.REPO_OUTPUT_FIELDS:
                if getattr(repo_config, field) is None:
                    problems.append(f"repo.{repo_name}.{field} is not set in {self.LOCK_FILE_NAME}")
        return problems

    @classmethod
    def _diff(cls, expected: Any, actual: Any, *, path: str) -> list[str]:
        if isinstance(expected, dict) and isinstance(actual, dict):
            problems: list[str] = []
            for key, value in expected.items():
                child = f"{path}.{key}" if path else str(key)
                if key not in actual:
                    problems.append(f"{child} is missing from {cls.LOCK_FILE_NAME}")
                    continue
                problems.extend(cls._diff(value, actual[key], path=child))
            return problems

        if expected != actual:
            return [f"{path} is {actual!r} in {cls.LOCK_FILE_NAME} but {expected!r} in Infra.toml"]
        return []
