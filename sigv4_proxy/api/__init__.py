"""
APIルーター
"""
from sigv4_proxy.api.proxy import router as proxy_router

__all__ = ["proxy_router"]
