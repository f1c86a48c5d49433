from typing import Optional

from supabase import Client, create_client

from makeup_atelier.config import logger
from makeup_atelier.config import SUPABASE_SERVICE_KEY, SUPABASE_URL


_supabase_client: Optional[Client] = None


def is_configured() -> bool:
    return bool(SUPABASE_URL and SUPABASE_SERVICE_KEY)


def get_supabase_client() -> Client:
    """
    Get or create the shared service-role Supabase client.

    Every quota, profile and auth call goes through this client; the RPCs
    take explicit user/anon ids so row-level security is not involved.

    Returns:
        Client: Supabase client instance

    Raises:
        ValueError: If SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured
    """
    global _supabase_client

    if _supabase_client is None:
        if not is_configured():
            error_msg = "SUPABASE_URL or SUPABASE_SERVICE_KEY is not configured"
            logger.error(error_msg)
            raise ValueError(error_msg)

        try:
            _supabase_client = create_client(SUPABASE_URL, SUPABASE_SERVICE_KEY)
            logger.info("Supabase client connected successfully!")
        except Exception as e:
            logger.error(f"Failed to create Supabase client: {e}")
            raise

    return _supabase_client
