"""
Shared pytest configuration.

The API module builds its app at import time, so the environment it
validates is set here before any test imports it.
"""

from __future__ import annotations

import os

os.environ.setdefault("ROW_STORE_BACKEND", "supabase")
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_API_KEY", "test-key")
