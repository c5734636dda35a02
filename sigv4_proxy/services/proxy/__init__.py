"""
S3 Signature Proxy
SigV4署名の検証、署名対象ヘッダーのフィルタ、上流向け再署名と転送、Webhook通知を行う
"""
from sigv4_proxy.services.proxy.header_filter import filter_headers
from sigv4_proxy.services.proxy.models import InboundRequest
from sigv4_proxy.services.proxy.notifier import WebhookNotifier
from sigv4_proxy.services.proxy.s3_proxy import ProxyConfig, S3SignatureProxy
from sigv4_proxy.services.proxy.sigv4 import AWSCredentials, Signer
from sigv4_proxy.services.proxy.verifier import SignatureVerifier

__all__ = [
    "AWSCredentials",
    "InboundRequest",
    "ProxyConfig",
    "S3SignatureProxy",
    "SignatureVerifier",
    "Signer",
    "WebhookNotifier",
    "filter_headers",
]
