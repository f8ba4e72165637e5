"""Deployment stub data models"""

from __future__ import annotations

from pydantic import BaseModel

from .generation import GeneratedFile


class DeployRequest(BaseModel):
    """Project snapshot handed to a deploy target"""

    projectName: str
    html: str | None = None
    files: list[GeneratedFile] = []
    description: str | None = None


class PushResponse(BaseModel):
    ok: bool = True
    message: str
    projectName: str
    files: list[str]


class AutoDeployResponse(BaseModel):
    ok: bool = True
    saveId: str
    status: str
