# Supabase table: project_members
# Schema is documented with the projects tables in app/modules/projects/models.py
#
# A member row points at a registered user (user_id set) or at a bare email
# (user_id null) for someone invited before they signed up. Only rows with a
# user_id take part in access checks; email-only rows are claimed on the
# invitee's first sign-in.
