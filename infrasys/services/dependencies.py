from __future__ import annotations

from typing import Any, Optional

import aioboto3

from infrasys.services.config import InfrasysConfig
from infrasys.services.infra_service import InfraService
from infrasys.services.key_service import KeyService
from infrasys.services.lock_service import LockService
from infrasys.services.root_service import RootRoleService
from infrasys.services.s3_service import S3Service
from infrasys.services.setup.stack_setup_service import StackSetupService
from infrasys.services.tuftool_service import CommandRunner, SubprocessCommandRunner, TuftoolService


def get_tuftool_service(config: InfrasysConfig, *, runner: Optional[CommandRunner] = None) -> TuftoolService:
    return TuftoolService(
        runner=runner or SubprocessCommandRunner(),
        default_region=config.default_region,
        tuftool_path=config.tuftool_path,
    )


def get_stack_setup_service(config: InfrasysConfig, *, session: Optional[Any] = None) -> StackSetupService:
    return StackSetupService(config=config, session=session)


def get_lock_service() -> LockService:
    return LockService()


def get_infra_service(
    config: InfrasysConfig,
    *,
    session: Optional[Any] = None,
    runner: Optional[CommandRunner] = None,
) -> InfraService:
    """Provider for the create-infra pipeline; one AWS session is shared by all services."""

    aws_session = session if session is not None else aioboto3.Session()
    tuftool = get_tuftool_service(config, runner=runner)
    stacks = get_stack_setup_service(config, session=aws_session)

    return InfraService(
        stacks=stacks,
        s3=S3Service(session=aws_session),
        keys=KeyService(tuftool=tuftool, stacks=stacks),
        root=RootRoleService(tuftool=tuftool, expiration=config.root_expiration),
        lock=get_lock_service(),
    )
