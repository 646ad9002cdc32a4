from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Optional, Union

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_serializer, field_validator

from infrasys.errors import ConfigParseError, InfraFileError
from infrasys.models.keys import SigningKeyConfig, tag_signing_key, untag_signing_key


class S3Config(BaseModel):
    """One `[aws.s3.<name>]` entry; the name doubles as the CloudFormation stack name."""

    model_config = ConfigDict(extra="allow")

    region: Optional[str] = None
    s3_prefix: str = ""
    vpc_endpoint_id: Optional[str] = None

    # Filled in by create-infra
    stack_arn: Optional[str] = None
    bucket_name: Optional[str] = None


class AwsConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    s3: Optional[dict[str, S3Config]] = None


class RepoConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    file_hosting_config_name: Optional[str] = None
    signing_keys: Optional[SigningKeyConfig] = None
    root_keys: Optional[SigningKeyConfig] = None
    root_key_threshold: Optional[str] = None
    pub_key_threshold: Optional[str] = None

    # Filled in by create-infra, never overwritten once set
    metadata_base_url: Optional[str] = None
    targets_url: Optional[str] = None
    root_role_url: Optional[str] = None
    root_role_sha512: Optional[str] = None

    @field_validator("signing_keys", "root_keys", mode="before")
    @classmethod
    def _untag_keys(cls, value: Any) -> Any:
        return untag_signing_key(value)

    @field_validator("root_key_threshold", "pub_key_threshold", mode="before")
    @classmethod
    def _threshold_as_str(cls, value: Any) -> Any:
        # TOML thresholds are usually written as integers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_serializer("signing_keys", "root_keys")
    def _tag_keys(self, value: Any) -> Any:
        if value is None:
            return None
        return tag_signing_key(value)


class InfraConfig(BaseModel):
    """Parsed Infra.toml (input) or Infra.lock (output) contents."""

    model_config = ConfigDict(extra="allow")

    repo: Optional[dict[str, RepoConfig]] = None
    aws: Optional[AwsConfig] = None

    @staticmethod
    def _read_text(path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise InfraFileError(f"Failed to read {path}: {exc}") from exc

    @staticmethod
    def _validate(data: Any, *, source: Path) -> "InfraConfig":
        try:
            return InfraConfig.model_validate(data or {})
        except ValidationError as exc:
            raise ConfigParseError(f"Invalid infra config in {source}: {exc}") from exc

    @staticmethod
    def from_path(path: Union[str, Path]) -> "InfraConfig":
        """Load an Infra.toml file."""

        source = Path(path)
        try:
            data = tomllib.loads(InfraConfig._read_text(source))
        except tomllib.TOMLDecodeError as exc:
            raise ConfigParseError(f"Invalid TOML in {source}: {exc}") from exc
        return InfraConfig._validate(data, source=source)

    @staticmethod
    def from_lock_path(path: Union[str, Path]) -> "InfraConfig":
        """Load an Infra.lock file."""

        source = Path(path)
        try:
            data = yaml.safe_load(InfraConfig._read_text(source))
        except yaml.YAMLError as exc:
            raise ConfigParseError(f"Invalid YAML in {source}: {exc}") from exc
        return InfraConfig._validate(data, source=source)

    def to_lock_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    def to_lock_yaml(self) -> str:
        return yaml.safe_dump(self.to_lock_dict(), sort_keys=False, default_flow_style=False)
