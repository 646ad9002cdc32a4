from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, cast

import aioboto3

from infrasys.errors import InfraFileError, InfrasysError
from infrasys.models.stack import StackOutput
from infrasys.services.config import InfrasysConfig
from infrasys.services.regions import parse_region


logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


class StackSetupError(InfrasysError):
    pass


class StackSetupService:
    """Provisioning helper for the CloudFormation stacks behind a TUF repo.

    `create_stack` hands back the stack ARN as soon as the request is accepted, but
    stack outputs (bucket name, bucket URL, key id) only exist once the stack reaches
    CREATE_COMPLETE. Every create call therefore blocks on `wait_for_stack_outputs`,
    which polls `describe_stacks` on a fixed interval.

    Notes:
    - There is no timeout; a stack stuck in an in-progress state keeps the caller waiting.
    - Failure and rollback statuses stop the wait with a StackSetupError. Nothing is
      cleaned up, the failed stack is left for the operator to inspect and delete.
    """

    _READY_STATUS = "CREATE_COMPLETE"
    _FAILED_STATUSES = frozenset(
        {
            "CREATE_FAILED",
            "ROLLBACK_IN_PROGRESS",
            "ROLLBACK_FAILED",
            "ROLLBACK_COMPLETE",
            "DELETE_IN_PROGRESS",
            "DELETE_FAILED",
            "DELETE_COMPLETE",
            "UPDATE_ROLLBACK_IN_PROGRESS",
            "UPDATE_ROLLBACK_FAILED",
            "UPDATE_ROLLBACK_COMPLETE",
            "IMPORT_ROLLBACK_FAILED",
            "IMPORT_ROLLBACK_COMPLETE",
        }
    )
    _S3_TEMPLATE = "s3_setup.yml"
    _KMS_TEMPLATE = "kms_key_setup.yml"

    def __init__(
        self,
        *,
        config: InfrasysConfig,
        session: Optional[Any] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self._config = config
        self._session = session if session is not None else aioboto3.Session()
        self._sleep = sleep

    def _client(self, *, region: str) -> Any:
        return self._session.client("cloudformation", region_name=region)

    def _read_template(self, name: str) -> str:
        path = self._config.templates_dir / name
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            raise InfraFileError(f"Failed to read CloudFormation template {path}: {exc}") from exc

    async def create_s3_bucket(self, *, region: str, stack_name: str) -> tuple[str, str, str]:
        """Create a private S3 bucket from `s3_setup.yml`.

        Returns:
            (stack_arn, bucket_name, bucket_url). The template declares the bucket name
            and the bucket URL as its first and second outputs.
        """

        stack_arn, outputs = await self._create_stack(
            region=region,
            stack_name=stack_name,
            template_name=self._S3_TEMPLATE,
        )
        if len(outputs) < 2:
            raise StackSetupError(
                f"Expected bucket name and bucket URL outputs from stack {stack_name}, got {len(outputs)}"
            )

        bucket_name = self._output_value(outputs, 0, what="bucket name", stack_name=stack_name)
        bucket_url = self._output_value(outputs, 1, what="bucket url", stack_name=stack_name)
        return (stack_arn, bucket_name, bucket_url)

    async def create_kms_key(self, *, region: str, stack_name: str, key_alias: str) -> tuple[str, str]:
        """Create an asymmetric signing key from `kms_key_setup.yml`.

        Returns:
            (stack_arn, key_id)
        """

        stack_arn, outputs = await self._create_stack(
            region=region,
            stack_name=stack_name,
            template_name=self._KMS_TEMPLATE,
            parameters={"Alias": key_alias},
        )
        if not outputs:
            raise StackSetupError(f"Expected a key id output from stack {stack_name}, got none")

        return (stack_arn, self._output_value(outputs, 0, what="key id", stack_name=stack_name))

    async def wait_for_stack_outputs(self, *, client: Any, stack_name: str, region: str) -> list[StackOutput]:
        """Poll until the stack is CREATE_COMPLETE, then return its outputs."""

        stack = await self._describe_stack(client=client, stack_name=stack_name, region=region)
        status = str(stack.get("StackStatus") or "")
        while status != self._READY_STATUS:
            if status in self._FAILED_STATUSES:
                reason = stack.get("StackStatusReason") or "no reason given"
                raise StackSetupError(
                    f"Stack {stack_name} in {region} failed to create (status={status}): {reason}"
                )

            logger.info("Waiting for stack resources to be ready, current status is '%s'...", status)
            await self._sleep(self._config.poll_interval_seconds)
            stack = await self._describe_stack(client=client, stack_name=stack_name, region=region)
            status = str(stack.get("StackStatus") or "")

        outputs = stack.get("Outputs")
        if outputs is None:
            raise StackSetupError(f"Stack {stack_name} is ready but has no outputs")
        return [StackOutput.from_cfn_output(o) for o in outputs]

    # -----------------
    # Private helpers
    # -----------------

    async def _create_stack(
        self,
        *,
        region: str,
        stack_name: str,
        template_name: str,
        parameters: Optional[dict[str, str]] = None,
    ) -> tuple[str, list[StackOutput]]:
        region = parse_region(region)
        kwargs: dict[str, Any] = {
            "StackName": stack_name,
            "TemplateBody": self._read_template(template_name),
        }
        if parameters:
            kwargs["Parameters"] = [{"ParameterKey": k, "ParameterValue": v} for k, v in parameters.items()]

        client_cm = self._client(region=region)
        async with cast(Any, client_cm) as client:
            try:
                response = await client.create_stack(**kwargs)
            except Exception as exc:
                logger.exception("CloudFormation create_stack failed (stack=%s region=%s)", stack_name, region)
                raise StackSetupError(f"Failed to create stack {stack_name} in {region}") from exc

            stack_arn = response.get("StackId")
            if not stack_arn:
                raise StackSetupError(f"create_stack response for {stack_name} has no StackId")

            outputs = await self.wait_for_stack_outputs(client=client, stack_name=stack_name, region=region)

        return (stack_arn, outputs)

    async def _describe_stack(self, *, client: Any, stack_name: str, region: str) -> dict[str, Any]:
        try:
            response = await client.describe_stacks(StackName=stack_name)
        except Exception as exc:
            logger.exception("CloudFormation describe_stacks failed (stack=%s region=%s)", stack_name, region)
            raise StackSetupError(f"Failed to describe stack {stack_name} in {region}") from exc

        stacks = response.get("Stacks") or []
        if not stacks:
            raise StackSetupError(f"describe_stacks returned no stacks for {stack_name}")
        return stacks[0]

    @staticmethod
    def _output_value(outputs: list[StackOutput], index: int, *, what: str, stack_name: str) -> str:
        value = outputs[index].value
        if not value:
            raise StackSetupError(f"Stack {stack_name} output {index} ({what}) has no value")
        return value
