from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Optional


@dataclass(frozen=True)
class InfrasysConfig:
    """Runtime configuration resolved once at startup and passed to the services.

    `tools_dir` is the build tools root; CloudFormation templates are read from
    `<tools_dir>/infrasys/cloudformation-templates/`.
    """

    tools_dir: Path
    _DEFAULT_REGION: ClassVar[str] = "us-east-1"
    _DEFAULT_POLL_INTERVAL_SECONDS: ClassVar[float] = 20.0
    _DEFAULT_ROOT_EXPIRATION: ClassVar[str] = "in 52 weeks"
    default_region: str = _DEFAULT_REGION
    poll_interval_seconds: float = _DEFAULT_POLL_INTERVAL_SECONDS
    tuftool_path: str = "tuftool"
    root_expiration: str = _DEFAULT_ROOT_EXPIRATION

    @property
    def templates_dir(self) -> Path:
        return self.tools_dir / "infrasys" / "cloudformation-templates"

    @staticmethod
    def from_env(
        *,
        tools_dir_env: str = "BUILDSYS_TOOLS_DIR",
        poll_interval_env: str = "INFRASYS_POLL_INTERVAL_SECONDS",
        tuftool_env: str = "TUFTOOL_PATH",
        root_expiration: Optional[str] = None,
    ) -> "InfrasysConfig":
        tools_dir = os.getenv(tools_dir_env)
        if not tools_dir:
            raise ValueError(f"Missing required environment variable: {tools_dir_env}")

        # Same lookup order botocore uses for the default region
        default_region = os.getenv("AWS_REGION") or os.getenv("AWS_DEFAULT_REGION") or InfrasysConfig._DEFAULT_REGION

        poll_raw = os.getenv(poll_interval_env)
        poll_interval_seconds = InfrasysConfig._DEFAULT_POLL_INTERVAL_SECONDS
        if poll_raw:
            try:
                poll_interval_seconds = float(poll_raw)
            except ValueError as exc:
                raise ValueError(f"Invalid {poll_interval_env}; must be a number") from exc
            if poll_interval_seconds < 0:
                raise ValueError(f"Invalid {poll_interval_env}; must not be negative")

        return InfrasysConfig(
            tools_dir=Path(tools_dir),
            default_region=default_region,
            poll_interval_seconds=poll_interval_seconds,
            tuftool_path=os.getenv(tuftool_env) or "tuftool",
            root_expiration=root_expiration or InfrasysConfig._DEFAULT_ROOT_EXPIRATION,
        )
