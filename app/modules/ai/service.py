import logging

import httpx
from fastapi import HTTPException

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_TYPE = "Web application"

PROMPT_TEMPLATE = """Project name: {name}
Project type: {project_type}

Write a concise, professional project description (3-4 sentences). Focus on the problem it solves and its key features. Avoid repetition and buzzwords."""


def build_prompt(project_name: str, project_type: str = None) -> str:
    return PROMPT_TEMPLATE.format(name=project_name, project_type=project_type or DEFAULT_PROJECT_TYPE)


class AIService:
    """Generates short project descriptions with a local Ollama model"""

    def __init__(self, client: httpx.AsyncClient, base_url: str, model: str):
        self.client = client
        self.base_url = base_url.rstrip("/")
        self.model = model

    async def generate_project_description(self, project_name: str, project_type: str = None) -> str:
        logger.info(f"Generating description for project '{project_name}'")
        try:
            response = await self.client.post(
                f"{self.base_url}/api/generate",
                json={
                    "model": self.model,
                    "prompt": build_prompt(project_name, project_type),
                    "stream": False,
                    "options": {"temperature": 0.7, "num_predict": 150},
                },
            )
        except httpx.ConnectError as e:
            logger.error(f"Ollama connection error: {e}")
            raise HTTPException(
                status_code=500,
                detail="Cannot connect to Ollama. Make sure Ollama is running with 'ollama serve'",
            )
        except httpx.HTTPError as e:
            logger.error(f"Ollama request failed: {e}")
            raise HTTPException(status_code=500, detail="Failed to generate project description")

        if response.status_code == 404:
            logger.error(f"Ollama model {self.model} not found: {response.text}")
            raise HTTPException(
                status_code=500,
                detail=f"Model not found. Please install the model with 'ollama pull {self.model}'",
            )
        if response.is_error:
            logger.error(f"Ollama API error: {response.status_code} {response.text}")
            raise HTTPException(status_code=500, detail=f"Ollama API error: {response.status_code}")

        description = (response.json().get("response") or "").strip()
        if not description:
            raise HTTPException(status_code=500, detail="AI generated empty response")
        return description
