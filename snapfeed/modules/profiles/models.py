# Supabase tables: profiles, auth.users
# This file documents the expected database schema
# Actual operations are handled via the backend client in snapfeed/backend

"""
Expected Supabase table structure:

profiles:
- id: uuid (primary key, references auth.users.id)
- username: text (unique, not null) - lower-case [a-z0-9_], min 3 chars
- full_name: text (nullable)
- bio: text (nullable, max 150 chars)
- avatar_url: text (nullable)
- is_setup_complete: boolean (default: false) - set once by profile setup, never reset
- created_at: timestamp (default: now())

A row is created with defaults (username user_<first 8 chars of id>, generated
avatar) the first time a user signs in.
"""
