from fastapi import APIRouter, Depends
from app.config import settings
from app.modules.ai.schemas import ProjectDescriptionRequest, ProjectDescriptionResponse
from app.modules.ai.service import AIService
from app.core.dependencies import get_current_user
from typing import Dict
import httpx

router = APIRouter(prefix="/ai", tags=["ai"])


async def get_ai_service():
    async with httpx.AsyncClient(timeout=60.0) as client:
        yield AIService(client, settings.ollama_url, settings.ollama_model)


@router.post("/project-description", response_model=ProjectDescriptionResponse)
async def generate_project_description(
    request: ProjectDescriptionRequest,
    user_data: Dict = Depends(get_current_user),
    service: AIService = Depends(get_ai_service)
):
    """Draft a project description from its name and type"""
    description = await service.generate_project_description(request.project_name, request.project_type)
    return {"success": True, "description": description}
