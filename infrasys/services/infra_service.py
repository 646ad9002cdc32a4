from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, TypeVar

from pydantic import AnyUrl, TypeAdapter, ValidationError

from infrasys.errors import ConfigParseError, MissingConfigError
from infrasys.models.infra import InfraConfig, RepoConfig
from infrasys.models.keys import KeyRole
from infrasys.services.key_service import KeyService
from infrasys.services.lock_service import LockService
from infrasys.services.root_service import RootRoleService
from infrasys.services.s3_service import S3Service
from infrasys.services.setup.stack_setup_service import StackSetupService


logger = logging.getLogger(__name__)

T = TypeVar("T")

_URL_ADAPTER: TypeAdapter[AnyUrl] = TypeAdapter(AnyUrl)


def _require(value: Optional[T], missing: str) -> T:
    if value is None:
        raise MissingConfigError(missing)
    return value


def _parse_url(value: str, *, bucket_url: str) -> str:
    try:
        return str(_URL_ADAPTER.validate_python(value))
    except ValidationError as exc:
        raise ConfigParseError(f"Failed to build a URL from bucket url {bucket_url!r}: {value!r}") from exc


def assign_output_urls(repo_config: RepoConfig, *, bucket_url: str, prefix: str, root_role_path: Path) -> None:
    """Fill in the repo's output URLs (and root.json digest) that are not set yet.

    Values that are already set are left alone, so re-running against a config that
    carries outputs keeps them stable.
    """

    base = f"{bucket_url.rstrip('/')}{prefix}"
    if repo_config.metadata_base_url is None:
        repo_config.metadata_base_url = _parse_url(f"{base}/metadata/", bucket_url=bucket_url)
    if repo_config.targets_url is None:
        repo_config.targets_url = _parse_url(f"{base}/targets/", bucket_url=bucket_url)
    if repo_config.root_role_url is None:
        repo_config.root_role_url = _parse_url(f"{base}/root.json", bucket_url=bucket_url)
        repo_config.root_role_sha512 = RootRoleService.root_digest(root_role_path)


class InfraService:
    """Sets up the infrastructure for every repo in Infra.toml and writes Infra.lock.

    Steps per repo, each finished before the next starts:
    1) Resolve required config and validate both signing key configs.
    2) Refuse to run if root.json already exists locally.
    3) Create the S3 bucket stack and add the VPC-scoped bucket policy.
    4) Create KMS keys where the config only names an alias.
    5) Create root.json, add publication and root keys, sign with the root keys.
    6) Upload root.json and fill in the output URLs that are not set yet.

    Any error stops the whole run. Cloud resources already created are left in place
    and Infra.lock is not written.
    """

    def __init__(
        self,
        *,
        stacks: StackSetupService,
        s3: S3Service,
        keys: KeyService,
        root: RootRoleService,
        lock: LockService,
    ) -> None:
        self._stacks = stacks
        self._s3 = s3
        self._keys = keys
        self._root = root
        self._lock = lock

    async def create_infra(self, *, infra_config_path: Path, root_role_path: Path) -> InfraConfig:
        logger.info("Parsing Infra.toml...")
        infra_config = InfraConfig.from_path(infra_config_path)
        repos = _require(infra_config.repo, "repo")

        for repo_name, repo_config in repos.items():
            logger.info("Setting up infrastructure for repo '%s'...", repo_name)
            await self._create_repo_infra(
                infra_config=infra_config,
                repo_name=repo_name,
                repo_config=repo_config,
                root_role_path=root_role_path,
            )

        logger.info("Writing Infra.lock...")
        self._lock.write_lock(infra_config, infra_config_path)
        logger.info("Complete!")
        return infra_config

    async def _create_repo_infra(
        self,
        *,
        infra_config: InfraConfig,
        repo_name: str,
        repo_config: RepoConfig,
        root_role_path: Path,
    ) -> None:
        stack_name = _require(repo_config.file_hosting_config_name, "file_hosting_config_name")
        aws = _require(infra_config.aws, "aws")
        s3_configs = _require(aws.s3, "aws.s3")
        s3_info = _require(s3_configs.get(stack_name), f"aws.s3 config with name {stack_name}")
        region = _require(s3_info.region, f"region for '{stack_name}' s3 config")
        vpc_endpoint_id = _require(s3_info.vpc_endpoint_id, f"vpc_endpoint_id for '{stack_name}' s3 config")
        prefix = S3Service.format_prefix(s3_info.s3_prefix)
        signing_keys = _require(repo_config.signing_keys, f"signing_keys for '{repo_name}' repo config")
        root_keys = _require(repo_config.root_keys, f"root_keys for '{repo_name}' repo config")

        self._keys.check_signing_key_config(signing_keys)
        self._keys.check_signing_key_config(root_keys)
        self._root.check_root(root_role_path)

        logger.info("Creating S3 bucket...")
        stack_arn, bucket_name, bucket_url = await self._stacks.create_s3_bucket(region=region, stack_name=stack_name)
        s3_info.stack_arn = stack_arn
        s3_info.bucket_name = bucket_name

        logger.info("Adding bucket policy to %s...", bucket_name)
        await self._s3.add_bucket_policy(
            region=region,
            bucket_name=bucket_name,
            prefix=prefix,
            vpc_endpoint_id=vpc_endpoint_id,
        )

        logger.info("Creating KMS Keys...")
        await self._keys.create_keys(signing_keys)
        await self._keys.create_keys(root_keys)

        logger.info("Creating and signing root.json...")
        self._root.create_root(root_role_path)
        self._keys.add_keys(
            signing_keys,
            KeyRole.PUBLICATION,
            _require(repo_config.pub_key_threshold, f"pub_key_threshold for '{repo_name}' repo config"),
            root_role_path,
        )
        self._keys.add_keys(
            root_keys,
            KeyRole.ROOT,
            _require(repo_config.root_key_threshold, f"root_key_threshold for '{repo_name}' repo config"),
            root_role_path,
        )
        self._keys.sign_root(root_keys, root_role_path)

        logger.info("Uploading root.json to S3 bucket...")
        await self._s3.upload_file(region=region, bucket_name=bucket_name, prefix=prefix, path=root_role_path)

        assign_output_urls(repo_config, bucket_url=bucket_url, prefix=prefix, root_role_path=root_role_path)
