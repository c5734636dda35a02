"""
ミドルウェア層
"""
from sigv4_proxy.middleware.tracing import TracingMiddleware

__all__ = [
    "TracingMiddleware",
]
