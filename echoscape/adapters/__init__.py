"""
Adapters Layer
ポートインターフェースの具体的な実装

注: 依存関係を軽くするため、アダプターは直接インポートを推奨
使用例:
    from echoscape.adapters.ai.openai import OpenAIAdapter
    from echoscape.adapters.storage.file import FileSessionStore
"""

# 遅延インポート用のサブモジュール名のみエクスポート
__all__ = [
    "ai",
    "image",
    "storage",
]
