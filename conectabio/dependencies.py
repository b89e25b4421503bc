"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from conectabio.auth import AuthClient, InMemoryAuthClient, SessionContext, SupabaseAuthClient
from conectabio.config import Settings, get_settings
from conectabio.db import DbClient, InMemoryDbClient, SupabaseDbClient
from conectabio.errors import AuthError
from conectabio.storage import InMemoryStorageClient, StorageClient, SupabaseStorageClient

_db_client: DbClient | None = None
_storage_client: StorageClient | None = None
_auth_client: AuthClient | None = None

bearer_scheme = HTTPBearer(auto_error=False)


def _use_in_memory(settings: Settings) -> bool:
    return settings.use_in_memory_backends or not settings.supabase_url


def get_db_client() -> DbClient:
    """
    Return a singleton anonymous DB client, used for public reads.

    In memory mode this is also the client every session writes through,
    so rows persist across requests.
    """
    global _db_client
    if _db_client:
        return _db_client

    settings = get_settings()
    if _use_in_memory(settings):
        _db_client = InMemoryDbClient()
    else:
        _db_client = SupabaseDbClient(settings.supabase_url, settings.supabase_anon_key or "")
    return _db_client


def get_storage_client() -> StorageClient:
    global _storage_client
    if _storage_client:
        return _storage_client

    settings = get_settings()
    if _use_in_memory(settings):
        _storage_client = InMemoryStorageClient()
    else:
        _storage_client = SupabaseStorageClient(
            url=settings.supabase_url, key=settings.supabase_anon_key or ""
        )
    return _storage_client


def _create_profile_row(user_id: str, metadata: dict) -> None:
    db = get_db_client()
    if isinstance(db, InMemoryDbClient):
        db.insert_profile(
            {
                "id": user_id,
                "username": metadata.get("username"),
                "role": metadata.get("role", "free"),
            }
        )


def get_auth_client() -> AuthClient:
    global _auth_client
    if _auth_client:
        return _auth_client

    settings = get_settings()
    if _use_in_memory(settings):
        _auth_client = InMemoryAuthClient(on_sign_up=_create_profile_row)
    else:
        _auth_client = SupabaseAuthClient(
            settings.supabase_url,
            settings.supabase_anon_key or "",
            service_key=settings.supabase_service_key,
        )
    return _auth_client


def db_client_for_token(access_token: str) -> DbClient:
    """A DB client whose requests run as the token's user."""
    settings = get_settings()
    if _use_in_memory(settings):
        return get_db_client()
    return SupabaseDbClient(
        settings.supabase_url, settings.supabase_anon_key or "", access_token=access_token
    )


def get_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth: AuthClient = Depends(get_auth_client),
) -> SessionContext:
    if credentials is None or not credentials.credentials:
        raise AuthError("Not authenticated")
    return auth.get_user(credentials.credentials)


def get_optional_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth: AuthClient = Depends(get_auth_client),
) -> SessionContext | None:
    """The caller's session if a valid token was sent, otherwise None."""
    if credentials is None or not credentials.credentials:
        return None
    try:
        return auth.get_user(credentials.credentials)
    except AuthError:
        return None


def get_user_db_client(ctx: SessionContext = Depends(get_session)) -> DbClient:
    return db_client_for_token(ctx.access_token)


def get_user_storage_client(ctx: SessionContext = Depends(get_session)) -> StorageClient:
    settings = get_settings()
    if _use_in_memory(settings):
        return get_storage_client()
    return SupabaseStorageClient(
        url=settings.supabase_url,
        key=settings.supabase_anon_key or "",
        access_token=ctx.access_token,
    )
