from pydantic import BaseModel, Field
from typing import List

from app.modules.projects.models import MemberRole


class MemberAdd(BaseModel):
    member_email: str
    role: MemberRole = MemberRole.VIEWER


class MemberBulkAdd(BaseModel):
    member_emails: List[str] = Field(alias="memberEmails", min_length=1)
    default_role: MemberRole = Field(default=MemberRole.VIEWER, alias="defaultRole")

    class Config:
        populate_by_name = True


class MemberRoleUpdate(BaseModel):
    role: MemberRole

