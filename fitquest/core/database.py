"""
Database Configuration

Supabase client for REST API access (already pooled via PostgREST).

The client is created lazily so that workers running with
STORAGE_BACKEND=memory never need Supabase credentials.

Tables used by the challenge progress core:
- challenges                 (catalog, read-only except is_active)
- challenge_enrollments      (unique on user_id, challenge_id)
- challenge_daily_progress   (unique on enrollment_id, date)
- health_data                (external samples, unique on user_id, date)
- users                      (lifetime total_steps / total_distance)
- points_transactions        (rewards ledger, unique on idempotency_key)
"""

from typing import Optional

from supabase import create_client, Client
from fitquest.core.config import settings


_supabase: Optional[Client] = None


def get_supabase_client() -> Client:
    """
    Get Supabase client instance.

    This uses the REST API which is already connection-pooled via PostgREST.
    """
    global _supabase

    if _supabase is None:
        _supabase = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)

    return _supabase
