"""
Storage Adapters
データ永続化の実装

使用例:
    from echoscape.adapters.storage.file import FileSessionStore
"""

from .file import FileSessionStore

__all__ = [
    "FileSessionStore",
]
