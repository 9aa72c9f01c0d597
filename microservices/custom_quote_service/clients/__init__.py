"""
Custom Quote Service Clients

HTTP clients for the services custom_quote_service depends on
"""

from .storage_client import StorageClient

__all__ = ["StorageClient"]
