"""Portainer API payload models"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ServerStatus(BaseModel):
    """Response of ``GET /api/status``"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: str = Field(alias="Version")
    instance_id: str = Field(default="", alias="InstanceID")


class Stack(BaseModel):
    """One entry of ``GET /api/stacks``"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: Any = Field(alias="Id")
    name: str = Field(alias="Name")


class StackFile(BaseModel):
    """Response of ``GET /api/stacks/{id}/file``"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    content: str = Field(alias="StackFileContent")
