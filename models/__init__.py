from models.refresh_sessions import RefreshSessionRecord

__all__ = ["RefreshSessionRecord"]
