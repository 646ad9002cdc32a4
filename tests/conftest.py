"""
Shared pytest fixtures for infrasys.

Provides:
- Fake aioboto3 sessions with CloudFormation / S3 clients
- A fake tuftool runner that keeps a JSON stand-in of root.json
- A recording sleep for the stack wait loop
- A sample Infra.toml
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence

import pytest
from botocore.exceptions import ClientError

from infrasys.services.config import InfrasysConfig

PROJECT_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = Path(__file__).resolve().parent / "data"

PUB_KEY_1 = "e4a8f7fe-2272-4e51-bc3e-3f719c77eb31"
PUB_KEY_2 = "3a6b3a70-4a0c-4f7f-9c6e-7f6c1e8d2a11"
ROOT_KEY = "a1b2c3d4-0000-4000-8000-000000000001"

SAMPLE_INFRA_TOML = f"""
[repo.default]
file_hosting_config_name = "TUF-Repo-S3-Buck"
root_key_threshold = 1
pub_key_threshold = 2

[repo.default.signing_keys.kms]
available_keys = {{ "{PUB_KEY_1}" = "us-west-1", "{PUB_KEY_2}" = "us-west-2" }}

[repo.default.root_keys.kms]
available_keys = {{ "{ROOT_KEY}" = "us-east-1" }}

[aws.s3.TUF-Repo-S3-Buck]
region = "us-west-2"
vpc_endpoint_id = "vpce-12345"
s3_prefix = "/my-tuf-repo"
"""


# ============================================================================
# AWS fakes
# ============================================================================


class FakeClientContext:
    def __init__(self, client: Any) -> None:
        self._client = client

    async def __aenter__(self) -> Any:
        return self._client

    async def __aexit__(self, *exc: object) -> bool:
        return False


class FakeSession:
    """Stand-in for aioboto3.Session; hands out the same fake client per service."""

    def __init__(self, **clients: Any) -> None:
        self.clients = clients
        self.client_calls: list[tuple[str, Optional[str]]] = []

    def client(self, service_name: str, region_name: Optional[str] = None, **_: Any) -> FakeClientContext:
        self.client_calls.append((service_name, region_name))
        return FakeClientContext(self.clients[service_name])


def client_error(code: str, operation: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeCloudFormation:
    """Returns `statuses` in order from describe_stacks (the last one repeats)."""

    def __init__(
        self,
        *,
        statuses: Sequence[str] = ("CREATE_COMPLETE",),
        outputs: Optional[Mapping[str, list[dict[str, Any]]]] = None,
        default_outputs: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        self._statuses = list(statuses)
        self._outputs = dict(outputs or {})
        self._default_outputs = default_outputs
        self.created: list[dict[str, Any]] = []
        self.describe_calls = 0

    async def create_stack(self, **kwargs: Any) -> dict[str, Any]:
        self.created.append(kwargs)
        name = kwargs["StackName"]
        return {"StackId": f"arn:aws:cloudformation:us-west-2:123456789012:stack/{name}/{len(self.created)}"}

    async def describe_stacks(self, *, StackName: str) -> dict[str, Any]:
        self.describe_calls += 1
        status = self._statuses.pop(0) if len(self._statuses) > 1 else self._statuses[0]
        stack: dict[str, Any] = {"StackName": StackName, "StackStatus": status}
        if status == "CREATE_COMPLETE":
            outputs = self._outputs.get(StackName, self._default_outputs)
            if outputs is not None:
                stack["Outputs"] = outputs
        else:
            stack["StackStatusReason"] = "Resource creation cancelled"
        return {"Stacks": [stack]}


class FakeS3:
    def __init__(self, *, policy: Optional[dict[str, Any]] = None) -> None:
        self.policy = json.dumps(policy) if policy is not None else None
        self.put_policies: list[tuple[str, dict[str, Any]]] = []
        self.objects: dict[tuple[str, str], bytes] = {}

    async def get_bucket_policy(self, *, Bucket: str) -> dict[str, Any]:
        if self.policy is None:
            raise client_error("NoSuchBucketPolicy", "GetBucketPolicy")
        return {"Policy": self.policy}

    async def put_bucket_policy(self, *, Bucket: str, Policy: str) -> dict[str, Any]:
        self.put_policies.append((Bucket, json.loads(Policy)))
        self.policy = Policy
        return {}

    async def put_object(self, *, Bucket: str, Key: str, Body: bytes, **_: Any) -> dict[str, Any]:
        self.objects[(Bucket, Key)] = Body
        return {"ETag": '"etag"'}


def bucket_outputs(bucket_name: str = "tuf-repo-bucket") -> list[dict[str, Any]]:
    return [
        {"OutputKey": "BucketName", "OutputValue": bucket_name},
        {"OutputKey": "BucketURL", "OutputValue": f"https://{bucket_name}.s3.us-west-2.amazonaws.com"},
    ]


# ============================================================================
# tuftool fake
# ============================================================================


class FakeTuftool:
    """CommandRunner that records calls and edits a JSON root.json like tuftool would."""

    def __init__(self, *, returncode: int = 0, fail_on: Optional[str] = None) -> None:
        self.calls: list[tuple[list[str], dict[str, str]]] = []
        self.returncode = returncode
        self.fail_on = fail_on

    @property
    def commands(self) -> list[list[str]]:
        return [args[1:] for args, _ in self.calls]

    def run(self, args: Sequence[str], *, env: Mapping[str, str]) -> int:
        self.calls.append((list(args), dict(env)))
        _, _group, command, path, *rest = args
        if self.returncode != 0 or command == self.fail_on:
            return self.returncode or 1

        root_path = Path(path)
        if command == "init":
            root_path.write_text(json.dumps({"signed": {"roles": {}}, "signatures": []}))
            return 0

        doc = json.loads(root_path.read_text())
        roles = doc["signed"]["roles"]
        if command == "expire":
            doc["signed"]["expires"] = rest[0]
        elif command == "set-threshold":
            role, threshold = rest
            roles.setdefault(role, {"keyids": []})["threshold"] = int(threshold)
        elif command == "add-key":
            key_uri, flags = rest[0], rest[1:]
            for role in flags[1::2]:
                roles.setdefault(role, {"keyids": []})["keyids"].append(key_uri)
        elif command == "sign":
            doc["signatures"].append({"keyid": rest[1], "region": env["AWS_REGION"]})
        root_path.write_text(json.dumps(doc, sort_keys=True))
        return 0


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def infrasys_config() -> InfrasysConfig:
    return InfrasysConfig(tools_dir=PROJECT_ROOT, default_region="us-west-2")


@pytest.fixture
def fake_tuftool() -> FakeTuftool:
    return FakeTuftool()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def infra_toml(tmp_path: Path) -> Path:
    path = tmp_path / "Infra.toml"
    path.write_text(SAMPLE_INFRA_TOML)
    return path


@pytest.fixture
def sample_toml_path() -> Path:
    return DATA_DIR / "Infra.toml"
