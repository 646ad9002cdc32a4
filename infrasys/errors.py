from __future__ import annotations

from pathlib import Path
from typing import Union


class InfrasysError(RuntimeError):
    pass


class MissingConfigError(InfrasysError):
    def __init__(self, missing: str) -> None:
        super().__init__(f"Infra.toml is missing {missing}")
        self.missing = missing


class InvalidThresholdError(InfrasysError):
    def __init__(self, *, threshold: str, num_keys: int) -> None:
        super().__init__(
            f"Invalid threshold {threshold!r}: threshold must be a positive number "
            f"no greater than the number of available keys ({num_keys})"
        )
        self.threshold = threshold
        self.num_keys = num_keys


class ConfigParseError(InfrasysError):
    pass


class RootRoleExistsError(InfrasysError):
    def __init__(self, path: Union[str, Path]) -> None:
        super().__init__(f"Root role already exists at {path}")
        self.path = Path(path)


class InfraFileError(InfrasysError):
    pass
