from __future__ import annotations

import logging
import os
import shlex
import subprocess
from pathlib import Path
from typing import Mapping, Protocol, Sequence, Union

from infrasys.errors import InfrasysError


logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class TuftoolError(InfrasysError):
    pass


class CommandRunner(Protocol):
    def run(self, args: Sequence[str], *, env: Mapping[str, str]) -> int:
        """Run `args` with `env` layered over the process environment; return the exit code."""
        ...


class SubprocessCommandRunner:
    def run(self, args: Sequence[str], *, env: Mapping[str, str]) -> int:
        # Blocks the event loop; create-infra runs one step at a time, so nothing waits on it
        try:
            completed = subprocess.run(list(args), env={**os.environ, **env}, check=False)
        except OSError as exc:
            raise TuftoolError(f"Failed to start {args[0]!r}: {exc}") from exc
        return completed.returncode


class TuftoolService:
    """Drives `tuftool root ...` to build and sign root.json.

    Every call is one subprocess with AWS_REGION set, so KMS keys are reached in the
    region they were created in. Arguments are shell-quoted into a command string and
    split back into tokens before running; any non-zero exit raises TuftoolError.
    """

    _INIT = "root init {path}"
    _EXPIRE = "root expire {path} {expiration}"
    _SET_THRESHOLD = "root set-threshold {path} {role} {threshold}"
    _ADD_KEY = "root add-key {path} aws-kms:///{key_id}"
    _SIGN = "root sign {path} -k aws-kms:///{key_id}"

    def __init__(self, *, runner: CommandRunner, default_region: str, tuftool_path: str = "tuftool") -> None:
        self._runner = runner
        self._default_region = default_region
        self._tuftool_path = tuftool_path

    @property
    def default_region(self) -> str:
        return self._default_region

    @staticmethod
    def build_command(template: str, **args: object) -> tuple[str, list[str]]:
        """Format `template` with shell-quoted `args` and split it into argv tokens."""

        command = template.format(**{name: shlex.quote(str(value)) for name, value in args.items()})
        try:
            tokens = shlex.split(command)
        except ValueError as exc:
            raise TuftoolError(f"Failed to split tuftool command {command!r}: {exc}") from exc
        return (command, tokens)

    def _tuftool(self, region: str, template: str, **args: object) -> None:
        command, tokens = self.build_command(template, **args)
        logger.debug("tuftool arg string: %s", command)
        logger.debug("tuftool split args: %r", tokens)

        code = self._runner.run([self._tuftool_path, *tokens], env={"AWS_REGION": region})
        if code != 0:
            raise TuftoolError(f"tuftool command failed (exit code {code}): tuftool {command}")

    def init_root(self, path: PathLike) -> None:
        self._tuftool(self._default_region, self._INIT, path=path)

    def expire_root(self, path: PathLike, expiration: str) -> None:
        self._tuftool(self._default_region, self._EXPIRE, path=path, expiration=expiration)

    def set_threshold(self, path: PathLike, role: str, threshold: Union[int, str]) -> None:
        # Region is not used by set-threshold
        self._tuftool(self._default_region, self._SET_THRESHOLD, path=path, role=role, threshold=threshold)

    def add_key(self, path: PathLike, *, key_id: str, region: str, roles: Sequence[str]) -> None:
        if not roles:
            raise ValueError("at least one role is required to add a key")
        role_flags = " ".join(f"--role {shlex.quote(role)}" for role in roles)
        self._tuftool(region, f"{self._ADD_KEY} {role_flags}", path=path, key_id=key_id)

    def sign_root(self, path: PathLike, *, key_id: str, region: str) -> None:
        self._tuftool(region, self._SIGN, path=path, key_id=key_id)
