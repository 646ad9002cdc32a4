from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class KeyRole(str, Enum):
    """Signing responsibility a key config is used for in root.json."""

    ROOT = "root"
    PUBLICATION = "publication"

    @property
    def tuf_roles(self) -> tuple[str, ...]:
        if self is KeyRole.ROOT:
            return ("root",)
        return ("snapshot", "targets", "timestamp")


class KmsKeyConfig(BaseModel):
    model_config = ConfigDict(extra="allow")

    available_keys: dict[str, str] = Field(default_factory=dict, description="KMS key id -> region")
    key_alias: Optional[str] = None
    regions: list[str] = Field(default_factory=list)
    key_stack_arns: dict[str, str] = Field(default_factory=dict, description="region -> stack ARN")


class FileSigningKey(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["file"] = "file"
    path: Path


class KmsSigningKey(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["kms"] = "kms"
    key_id: Optional[str] = None
    config: Optional[KmsKeyConfig] = None


class SsmSigningKey(BaseModel):
    model_config = ConfigDict(extra="allow")

    kind: Literal["ssm"] = "ssm"
    parameter: str


SigningKeyConfig = Annotated[
    Union[FileSigningKey, KmsSigningKey, SsmSigningKey],
    Field(discriminator="kind"),
]

_KMS_CONFIG_FIELDS = tuple(KmsKeyConfig.model_fields)


def untag_signing_key(value: Any) -> Any:
    """Convert the on-disk ``{"kms": {...}}`` form into the internal ``{"kind": "kms", ...}`` form.

    On disk the KMS key details sit next to ``key_id``; internally they are grouped
    under ``config``.
    """

    if not isinstance(value, dict) or "kind" in value:
        return value
    if len(value) != 1:
        raise ValueError(f"signing key config must have exactly one of file, kms, ssm (got {sorted(value)!r})")

    kind, body = next(iter(value.items()))
    fields = dict(body or {})
    if kind == "kms":
        config = {name: fields.pop(name) for name in _KMS_CONFIG_FIELDS if name in fields}
        if config:
            fields["config"] = config
    return {"kind": kind, **fields}


def tag_signing_key(key: Union[FileSigningKey, KmsSigningKey, SsmSigningKey]) -> dict[str, Any]:
    # model_dump carries unknown fields along, so they survive into Infra.lock
    body = key.model_dump(mode="json", exclude_none=True, exclude={"kind"})
    if isinstance(key, KmsSigningKey):
        body.update(body.pop("config", {}))
    return {key.kind: body}
