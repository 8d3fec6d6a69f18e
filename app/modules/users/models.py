# Supabase table: users
# This file documents the expected database schema
# Actual operations are handled via Supabase SDK in service.py
# Authentication is handled by Clerk; rows are created on first sign-in

"""
Expected Supabase table structure:

users:
- user_id: bigint (primary key, identity)
- clerk_user_id: text (unique, not null) - subject of the Clerk session token
- name: text (not null)
- email: text (unique, not null) - always stored lower-cased
- avatar_url: text (nullable)
- created_at: timestamptz (default: now())
- updated_at: timestamptz (default: now())

Deleting a user removes their task_assignments and project_members rows first.
Projects owned by the user are left to the store's referential rules.
"""
