"""
S3署名検証プロキシ
SigV4署名を検証し、上流のS3互換ストレージ向けに再署名して転送する
"""

__version__ = "0.1.0"
