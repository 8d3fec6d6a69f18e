# Supabase tables: projects, project_members
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

from enum import Enum


class ProjectStatus(str, Enum):
    ON_TRACK = "On track"
    OFF_TRACK = "Off track"
    AT_RISK = "At risk"
    COMPLETED = "Completed"


class ProjectPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class MemberRole(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


"""
Expected Supabase table structure:

projects:
- project_id: bigint (primary key, identity) - kept for legacy joins
- project_uuid: uuid (unique, default: gen_random_uuid()) - the public identifier
- name: text (not null)
- description: text (nullable)
- status: text (default: 'On track')
- priority: text (default: 'Medium')
- start_date: date
- end_date: date
- owner_id: bigint (references users.user_id)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

project_members:
- id: bigint (primary key, identity)
- project_uuid: uuid (references projects.project_uuid)
- user_id: bigint (nullable, references users.user_id) - null until the invitee registers
- member_email: text (not null, lower-cased)
- role: text (owner | admin | editor | viewer, default: 'viewer')
- added_at: timestamptz (default: now())
- unique (project_uuid, member_email)

The owner never gets a project_members row; ownership alone grants full access.
Deleting a project deletes its task_assignments, tasks and project_members first.
"""
