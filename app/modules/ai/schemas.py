from pydantic import BaseModel, Field
from typing import Optional


class ProjectDescriptionRequest(BaseModel):
    project_name: str = Field(alias="projectName", min_length=1)
    project_type: Optional[str] = Field(default=None, alias="projectType")

    class Config:
        populate_by_name = True


class ProjectDescriptionResponse(BaseModel):
    success: bool = True
    description: str
