# Supabase table: posts, storage bucket: post-media
# This file documents the expected database schema

"""
Expected Supabase table structure:

posts:
- id: bigint / uuid (primary key)
- user_id: uuid (not null, references profiles.id)
- content: text (not null)
- media_url: text (nullable) - public URL in the post-media bucket
- media_type: text (nullable) - 'image' | 'video'
- created_at: timestamp (default: now())

Realtime must be enabled for the posts table; clients on the feed view
refetch the feed on any change.

Storage layout (bucket post-media, public):
- <user_id>/<unix ms>.<ext>          post media
- <user_id>/avatar_<unix ms>.<ext>   profile pictures
"""
