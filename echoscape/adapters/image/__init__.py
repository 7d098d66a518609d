"""
Image Adapters
画像生成プロバイダーの実装
"""

from .fal import FalImageGenerator

__all__ = [
    "FalImageGenerator",
]
