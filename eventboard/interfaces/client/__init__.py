from .transport import OfflineFirstTransport, create_offline_client

__all__ = ["OfflineFirstTransport", "create_offline_client"]
