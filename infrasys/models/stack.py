from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class StackOutput(BaseModel):
    key: str = Field(..., description="CloudFormation output key")
    value: Optional[str] = None
    description: Optional[str] = None

    @staticmethod
    def from_cfn_output(obj: dict[str, Any]) -> "StackOutput":
        return StackOutput(
            key=obj.get("OutputKey") or "",
            value=obj.get("OutputValue"),
            description=obj.get("Description"),
        )
