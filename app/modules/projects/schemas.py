from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import date

from app.modules.projects.models import ProjectStatus, ProjectPriority


class ProjectCreate(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    status: ProjectStatus = ProjectStatus.ON_TRACK
    priority: ProjectPriority = ProjectPriority.MEDIUM
    start_date: date
    end_date: date
    member_emails: Optional[List[str]] = Field(default=None, alias="memberEmails")

    class Config:
        populate_by_name = True


class ProjectUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    priority: Optional[ProjectPriority] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    member_emails: Optional[List[str]] = Field(default=None, alias="memberEmails")

    class Config:
        populate_by_name = True


class ProjectBulkDelete(BaseModel):
    project_ids: List[str] = Field(default_factory=list, alias="projectIds")

    class Config:
        populate_by_name = True


class ProjectInvites(BaseModel):
    member_emails: List[str] = Field(alias="memberEmails", min_length=1)

    class Config:
        populate_by_name = True
