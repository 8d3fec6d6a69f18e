# Supabase tables: tasks, task_assignments
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py

"""
Expected Supabase table structure:

tasks:
- task_id: bigint (primary key, identity)
- project_uuid: uuid (references projects.project_uuid)
- title: text (not null)
- description: text (nullable)
- status: text (same values as projects.status, default: 'On track')
- priority: text (same values as projects.priority, default: 'Medium')
- due_date: date (nullable) - tasks without one never count as upcoming
- created_by: bigint (nullable, references users.user_id)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

task_assignments:
- task_id: bigint (references tasks.task_id)
- user_id: bigint (references users.user_id)
- assigned_at: timestamptz (default: now())
- primary key (task_id, user_id)
"""
