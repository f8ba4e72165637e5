"""Deployment API endpoints

Both targets are placeholders: they acknowledge the project snapshot and
report what would be published, without contacting any hosting provider.
"""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter

from models.deploy import AutoDeployResponse, DeployRequest, PushResponse
from models.generation import GeneratedFile
from services.errors import InvalidRequestError

logger = logging.getLogger(__name__)

router = APIRouter()


def collect_files(request: DeployRequest) -> list[GeneratedFile]:
    """Files to publish; a lone HTML document becomes index.html"""
    if not request.projectName.strip():
        raise InvalidRequestError("Missing required field: projectName")
    if request.files:
        return list(request.files)
    if request.html and request.html.strip():
        return [GeneratedFile(language="html", filename="index.html", content=request.html)]
    raise InvalidRequestError("Nothing to deploy: provide html or files")


@router.post("/push-to-hf", response_model=PushResponse)
async def push_to_hf(request: DeployRequest) -> PushResponse:
    files = collect_files(request)
    logger.info("Prepared %s for Hugging Face Spaces (%d files)", request.projectName, len(files))
    return PushResponse(
        message="Project prepared for Hugging Face Spaces",
        projectName=request.projectName,
        files=[f.filename for f in files],
    )


@router.post("/auto-deploy", response_model=AutoDeployResponse)
async def auto_deploy(request: DeployRequest) -> AutoDeployResponse:
    files = collect_files(request)
    save_id = f"deploy_{uuid.uuid4().hex[:12]}"
    logger.info("Auto-deploy %s as %s (%d files)", request.projectName, save_id, len(files))
    return AutoDeployResponse(saveId=save_id, status="ready")
