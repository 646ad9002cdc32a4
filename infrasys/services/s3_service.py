from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

import aioboto3
from botocore.exceptions import ClientError

from infrasys.errors import InfraFileError, InfrasysError
from infrasys.services.regions import parse_region


logger = logging.getLogger(__name__)


class S3ServiceError(InfrasysError):
    pass


class S3Service:
    """Bucket policy and object upload calls against the TUF repo bucket."""

    ROOT_ROLE_KEY = "root.json"
    _NO_POLICY_ERROR_CODE = "NoSuchBucketPolicy"

    def __init__(self, *, session: Optional[Any] = None) -> None:
        self._session = session if session is not None else aioboto3.Session()

    def _client(self, *, region: str) -> Any:
        return self._session.client("s3", region_name=parse_region(region))

    @staticmethod
    def format_prefix(prefix: str) -> str:
        """Normalize an `s3_prefix` to the "/<folder>" form used in ARNs and URLs.

        "tuf", "/tuf/" and "/tuf/*" all become "/tuf"; an empty prefix stays empty.
        """

        formatted = prefix if prefix.startswith("/") else f"/{prefix}"
        if formatted.endswith("/"):
            formatted = formatted[:-1]
        if formatted.endswith("/*"):
            formatted = formatted[:-2]
        return formatted

    @staticmethod
    def object_key(prefix: str, name: str) -> str:
        return f"{prefix}/{name}".lstrip("/")

    @staticmethod
    def read_access_statement(*, bucket_name: str, prefix: str, vpc_endpoint_id: str) -> dict[str, Any]:
        """GetObject grant for everything under `prefix`, limited to one VPC endpoint."""

        return {
            "Effect": "Allow",
            "Principal": "*",
            "Action": "s3:GetObject",
            "Resource": f"arn:aws:s3:::{bucket_name}{prefix}/*",
            "Condition": {"StringEquals": {"aws:sourceVpce": vpc_endpoint_id}},
        }

    @staticmethod
    def _empty_policy() -> dict[str, Any]:
        return {"Version": "2008-10-17", "Statement": []}

    async def get_bucket_policy(self, *, region: str, bucket_name: str) -> dict[str, Any]:
        """Return the bucket's current policy, or an empty one if it has none."""

        s3_client: Any = self._client(region=region)
        try:
            async with s3_client as s3:
                response = await s3.get_bucket_policy(Bucket=bucket_name)
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == self._NO_POLICY_ERROR_CODE:
                return self._empty_policy()
            logger.exception("S3 get_bucket_policy failed (bucket=%s)", bucket_name)
            raise S3ServiceError(f"Failed to get bucket policy for {bucket_name}") from exc
        except Exception as exc:
            logger.exception("S3 get_bucket_policy failed (bucket=%s)", bucket_name)
            raise S3ServiceError(f"Failed to get bucket policy for {bucket_name}") from exc

        raw = response.get("Policy")
        if not raw:
            raise S3ServiceError(f"Empty policy returned for bucket {bucket_name}")
        try:
            policy = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise S3ServiceError(f"Retrieved bucket policy for {bucket_name} is not valid JSON") from exc
        if not isinstance(policy, dict):
            raise S3ServiceError(f"Retrieved bucket policy for {bucket_name} is not a JSON object")
        return policy

    async def add_bucket_policy(
        self,
        *,
        region: str,
        bucket_name: str,
        prefix: str,
        vpc_endpoint_id: str,
    ) -> dict[str, Any]:
        """Append a VPC-scoped read statement to the bucket policy and write it back.

        Existing statements are kept as they are; the full policy document is replaced
        with the extended one.

        Args:
            region: Bucket region.
            bucket_name: Bucket name (no ARN prefix).
            prefix: Formatted prefix ("/<folder>" or "").
            vpc_endpoint_id: VPC endpoint the grant is restricted to.

        Returns:
            The policy document that was written.
        """

        policy = await self.get_bucket_policy(region=region, bucket_name=bucket_name)
        statements = policy.get("Statement")
        if not isinstance(statements, list):
            raise S3ServiceError(f"Unable to get the statement list of the bucket policy for {bucket_name}")

        statements.append(
            self.read_access_statement(bucket_name=bucket_name, prefix=prefix, vpc_endpoint_id=vpc_endpoint_id)
        )

        s3_client: Any = self._client(region=region)
        try:
            async with s3_client as s3:
                await s3.put_bucket_policy(Bucket=bucket_name, Policy=json.dumps(policy))
        except Exception as exc:
            logger.exception("S3 put_bucket_policy failed (bucket=%s)", bucket_name)
            raise S3ServiceError(f"Failed to put bucket policy for {bucket_name}") from exc

        return policy

    async def upload_file(self, *, region: str, bucket_name: str, prefix: str, path: Path) -> str:
        """Upload a local root.json under `<prefix>/root.json`.

        Returns:
            The uploaded object key.
        """

        try:
            body = path.read_bytes()
        except OSError as exc:
            raise InfraFileError(f"Failed to read {path}: {exc}") from exc

        key = self.object_key(prefix, self.ROOT_ROLE_KEY)
        s3_client: Any = self._client(region=region)
        try:
            async with s3_client as s3:
                await s3.put_object(
                    Bucket=bucket_name,
                    Key=key,
                    Body=body,
                    ContentType="application/json",
                )
        except Exception as exc:
            logger.exception("S3 put_object failed (bucket=%s key=%s)", bucket_name, key)
            raise S3ServiceError(f"Failed to upload {path} to s3://{bucket_name}/{key}") from exc

        return key
