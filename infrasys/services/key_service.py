from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Union

from infrasys.errors import ConfigParseError, InfrasysError, InvalidThresholdError, MissingConfigError
from infrasys.models.keys import (
    FileSigningKey,
    KeyRole,
    KmsKeyConfig,
    KmsSigningKey,
    SsmSigningKey,
)
from infrasys.services.setup.stack_setup_service import StackSetupService
from infrasys.services.tuftool_service import TuftoolService


logger = logging.getLogger(__name__)

AnySigningKey = Union[FileSigningKey, KmsSigningKey, SsmSigningKey]


class KeyServiceError(InfrasysError):
    pass


class KeyService:
    """Signing key handling for root.json.

    Only KMS keys are managed here. `file` and `ssm` key configs pass validation and are
    skipped when adding keys and signing.
    """

    def __init__(self, *, tuftool: TuftoolService, stacks: StackSetupService) -> None:
        self._tuftool = tuftool
        self._stacks = stacks

    @staticmethod
    def _unmanaged(key_config: AnySigningKey) -> bool:
        if isinstance(key_config, (FileSigningKey, SsmSigningKey)):
            return True
        if isinstance(key_config, KmsSigningKey):
            return False
        raise KeyServiceError(f"Unsupported signing key config: {type(key_config)!r}")

    @staticmethod
    def _kms_config(key_config: KmsSigningKey) -> KmsKeyConfig:
        if key_config.config is None:
            raise MissingConfigError("config field for a kms key")
        return key_config.config

    @staticmethod
    def check_signing_key_config(key_config: AnySigningKey) -> None:
        """A kms key config must either list its keys or name an alias to create them under.

        An alias together with `available_keys` is the state `create_keys` leaves behind
        (and Infra.lock records), so it is accepted as keys that already exist.
        """

        if KeyService._unmanaged(key_config):
            return

        config = KeyService._kms_config(key_config)
        if config.available_keys:
            return
        if not config.key_alias:
            raise MissingConfigError("available_keys or key_alias for a kms key")
        if not config.regions:
            raise MissingConfigError(f"regions for kms key alias '{config.key_alias}'")

    @staticmethod
    def parse_threshold(threshold: str, *, num_keys: int) -> int:
        try:
            value = int(str(threshold).strip())
        except ValueError as exc:
            raise ConfigParseError(f"Failed to parse threshold {threshold!r} as an integer") from exc
        if value < 0:
            raise ConfigParseError(f"Failed to parse threshold {threshold!r} as a non-negative integer")

        if value == 0 or num_keys < value:
            raise InvalidThresholdError(threshold=str(threshold), num_keys=num_keys)
        return value

    @staticmethod
    def _stack_name(key_alias: str) -> str:
        # CloudFormation stack names only allow letters, digits and hyphens
        return "TUF-KMS-" + re.sub(r"[^A-Za-z0-9-]", "-", key_alias)

    async def create_keys(self, key_config: AnySigningKey) -> None:
        """Create one KMS key per configured region when the config only names an alias."""

        if self._unmanaged(key_config):
            return

        config = self._kms_config(key_config)
        if config.available_keys or not config.key_alias:
            return

        stack_name = self._stack_name(config.key_alias)
        for region in config.regions:
            logger.info("Creating KMS key '%s' in %s...", config.key_alias, region)
            stack_arn, key_id = await self._stacks.create_kms_key(
                region=region,
                stack_name=stack_name,
                key_alias=config.key_alias,
            )
            config.available_keys[key_id] = region
            config.key_stack_arns[region] = stack_arn

    def add_keys(self, key_config: AnySigningKey, role: KeyRole, threshold: str, root_role_path: Path) -> None:
        """Set the role threshold(s) in root.json and add every available key for the role.

        For the publication role, `key_id` is pointed at an available key if it is not
        set yet. It is never changed once set.
        """

        if self._unmanaged(key_config):
            return

        config = self._kms_config(key_config)
        available_keys = config.available_keys
        value = self.parse_threshold(threshold, num_keys=len(available_keys))

        for tuf_role in role.tuf_roles:
            self._tuftool.set_threshold(root_role_path, tuf_role, value)
        for key_id, region in available_keys.items():
            self._tuftool.add_key(root_role_path, key_id=key_id, region=region, roles=role.tuf_roles)

        # Only publication keys get a key_id, root keys are never used outside root.json
        if role is KeyRole.PUBLICATION and key_config.key_id is None:
            key_config.key_id = next(iter(available_keys))

    def sign_root(self, key_config: AnySigningKey, root_role_path: Path) -> None:
        if self._unmanaged(key_config):
            return

        for key_id, region in self._kms_config(key_config).available_keys.items():
            self._tuftool.sign_root(root_role_path, key_id=key_id, region=region)
