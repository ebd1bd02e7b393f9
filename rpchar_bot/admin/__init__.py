from .socket import AdminSocket

__all__ = ["AdminSocket"]
