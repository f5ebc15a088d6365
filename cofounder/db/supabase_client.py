"""Supabase client initialization."""

from supabase import Client, create_client

from cofounder.core.config import get_settings


def get_supabase() -> Client:
    """
    Create a Supabase client from settings.

    Called once by the composition root; stores receive the client
    through their constructors.

    Returns:
        Supabase client configured with service role key

    Raises:
        RuntimeError: If client initialization fails
    """
    try:
        settings = get_settings()
        client = create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)
        return client
    except Exception as e:
        raise RuntimeError(f"Failed to initialize Supabase client: {e}") from e
