# Supabase Auth
# This module uses Supabase's built-in authentication system
# No custom tables are required - Supabase Auth handles:
# - User registration (auth.users table)
# - Sign-in and session management, per client
# - Token issuing and refresh

"""
Supabase Auth provides (async client):
- auth.sign_up() - Register new users
- auth.sign_in_with_password() - Authenticate users
- auth.get_session() - Current session held by the client
- auth.on_auth_state_change() - Listener fired on sign-in, sign-out, token refresh
- auth.sign_out() - End the session

Application data about a user lives in the profiles table
(see snapfeed/modules/profiles/models.py).
"""
