"""
サービス層
"""
