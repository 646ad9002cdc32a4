from infrasys.models.infra import AwsConfig, InfraConfig, RepoConfig, S3Config
from infrasys.models.keys import (
    FileSigningKey,
    KeyRole,
    KmsKeyConfig,
    KmsSigningKey,
    SigningKeyConfig,
    SsmSigningKey,
)
from infrasys.models.stack import StackOutput

__all__ = [
    "AwsConfig",
    "FileSigningKey",
    "InfraConfig",
    "KeyRole",
    "KmsKeyConfig",
    "KmsSigningKey",
    "RepoConfig",
    "S3Config",
    "SigningKeyConfig",
    "SsmSigningKey",
    "StackOutput",
]
