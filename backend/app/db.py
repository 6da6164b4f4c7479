"""
Database client configuration.

Supabase provides PostgreSQL (listings, ticket_transfers, users) and Auth.
Two clients are built at import time:

  supabase        anon key; only used to verify user tokens
  supabase_admin  service key; the webhook pipeline and admin review. None
                  when SUPABASE_SERVICE_KEY is unset, in which case those
                  endpoints answer 500 instead of touching the database.
"""

import os
from typing import Optional

from dotenv import load_dotenv
from supabase import Client, create_client

load_dotenv()

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")
SUPABASE_SERVICE_KEY = os.getenv("SUPABASE_SERVICE_KEY")

if not SUPABASE_URL or not SUPABASE_KEY:
    raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")


def _service_client(url: str, service_key: Optional[str]) -> Optional[Client]:
    # Inbound relays carry no user session, so pipeline writes bypass RLS
    if not service_key:
        return None
    return create_client(url, service_key)


supabase: Client = create_client(SUPABASE_URL, SUPABASE_KEY)

supabase_admin: Optional[Client] = _service_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
