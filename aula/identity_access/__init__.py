"""Identity & access: roles, server-side sessions and the token exchange port."""
