# service_config.py
"""
Configuration for the hiring identity service and its record store.
"""

import os

from dotenv import load_dotenv

load_dotenv()

# Record store backend
RECORD_STORE_BACKEND = os.getenv("RECORD_STORE_BACKEND", "sql").strip().lower()  # supabase | sql
RECORD_STORE_DB_URL = os.getenv("RECORD_STORE_DB_URL", "sqlite:///./hiring_records.db")
SUPABASE_URL = os.getenv("SUPABASE_URL", "").strip()
SUPABASE_KEY = os.getenv("SUPABASE_KEY", "").strip()

# Resolution tuning
FREE_TEXT_WINDOW = int(os.getenv("FREE_TEXT_WINDOW", "100"))
DASHBOARD_JOB_LIMIT = int(os.getenv("DASHBOARD_JOB_LIMIT", "5"))
DASHBOARD_SESSION_LIMIT = int(os.getenv("DASHBOARD_SESSION_LIMIT", "1000"))
EMAIL_MATCH_CASE_INSENSITIVE = os.getenv("EMAIL_MATCH_CASE_INSENSITIVE", "true").lower() == "true"

# Validation
VALID_BACKENDS = {"supabase", "sql"}
if RECORD_STORE_BACKEND not in VALID_BACKENDS:
    raise ValueError(f"RECORD_STORE_BACKEND must be one of {VALID_BACKENDS}, got {RECORD_STORE_BACKEND}")
if FREE_TEXT_WINDOW < 1:
    raise ValueError(f"FREE_TEXT_WINDOW must be positive, got {FREE_TEXT_WINDOW}")
if DASHBOARD_SESSION_LIMIT < 1:
    raise ValueError(f"DASHBOARD_SESSION_LIMIT must be positive, got {DASHBOARD_SESSION_LIMIT}")


def use_supabase() -> bool:
    """Check if the remote Supabase store is configured."""
    return RECORD_STORE_BACKEND == "supabase"


def supabase_credentials() -> tuple:
    """Return (url, key) for the Supabase client, raising if either is missing."""
    if not SUPABASE_URL or not SUPABASE_KEY:
        raise RuntimeError("Missing Supabase config. Set SUPABASE_URL and SUPABASE_KEY in your environment.")
    return SUPABASE_URL, SUPABASE_KEY
