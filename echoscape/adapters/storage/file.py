"""
ファイルセッションストア
JSONファイルベースのセッション・メッセージ永続化（遅延書き込み最適化）
"""

import asyncio
import json
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any

from ...core.exceptions import (
    ConfigurationError,
    PersistenceError,
    SessionNotFoundError,
)
from ...core.logging import get_logger
from ...domain.models.emotion import EmotionSnapshot
from ...domain.models.session import (
    UPDATABLE_SESSION_FIELDS,
    JournalMessage,
    JournalSession,
)
from ...domain.ports.storage_port import ISessionStore

logger = get_logger("adapters.storage.file")


class FileSessionStore(ISessionStore):
    """
    ファイルセッションストア

    JSONファイルを使用したシンプルな永続化実装。
    遅延書き込み（debounce）で複数更新をまとめて保存。
    """

    def __init__(self, data_dir: str = "data", save_delay: float = 1.0):
        self.data_dir = Path(data_dir)
        self.data_file = self.data_dir / "sessions.json"
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(
                f"Cannot create data directory: {e}", details={"data_dir": str(self.data_dir)}
            ) from e

        # メモリキャッシュ
        self._sessions: dict[str, JournalSession] = {}
        self._messages: dict[str, list[JournalMessage]] = {}
        self._loaded = False
        self._lock = asyncio.Lock()

        # 遅延書き込み
        self._save_delay = save_delay
        self._dirty = False
        self._save_task: asyncio.Task | None = None
        self._writing = False

    async def _ensure_loaded(self) -> None:
        """データが読み込まれていることを保証"""
        if not self._loaded:
            async with self._lock:
                if not self._loaded:
                    await self._load_data()
                    self._loaded = True

    async def _load_data(self) -> None:
        """ファイルからデータを読み込み"""
        if not self.data_file.exists():
            return

        try:
            loop = asyncio.get_running_loop()
            data = await loop.run_in_executor(None, self._read_json_file)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(
                f"Failed to load sessions: {e}", details={"path": str(self.data_file)}
            ) from e

        for session_id, session_data in data.get("sessions", {}).items():
            self._sessions[session_id] = JournalSession.from_dict(session_data)
        for session_id, messages in data.get("messages", {}).items():
            self._messages[session_id] = [JournalMessage.from_dict(m) for m in messages]

        logger.debug(f"Loaded {len(self._sessions)} sessions from {self.data_file}")

    def _read_json_file(self) -> dict:
        """JSONファイルを同期的に読み込み（スレッドプール用）"""
        with open(self.data_file, encoding="utf-8") as f:
            return json.load(f)

    async def _cancel_pending_save(self) -> None:
        """待機中の遅延書き込みを取り消す（書き込み中なら完了を待つ）"""
        if not self._save_task or self._save_task.done():
            return

        if self._writing:
            await self._save_task
            return

        self._save_task.cancel()
        try:
            await self._save_task
        except asyncio.CancelledError:
            pass

    async def _schedule_save(self) -> None:
        """遅延書き込みをスケジュール"""
        await self._cancel_pending_save()
        self._dirty = True
        self._save_task = asyncio.create_task(self._delayed_save())

    async def _delayed_save(self) -> None:
        """遅延後に保存を実行"""
        await asyncio.sleep(self._save_delay)
        if not self._dirty:
            return

        # ここから先はキャンセルしない
        self._writing = True
        try:
            await self._save_data_now()
        except PersistenceError as e:
            # _dirty は残るので flush() で再送出される
            logger.error(f"Deferred save failed: {e}")
        finally:
            self._writing = False

    async def _save_data_now(self) -> None:
        """ファイルにデータを即時保存（アトミック書き込み）"""
        data = {
            "sessions": {sid: s.to_dict() for sid, s in self._sessions.items()},
            "messages": {
                sid: [m.to_dict() for m in messages]
                for sid, messages in self._messages.items()
            },
            "updated_at": datetime.now().isoformat(),
        }

        temp_file = self.data_file.with_suffix(".tmp")

        async with self._lock:
            try:
                loop = asyncio.get_running_loop()
                await loop.run_in_executor(None, self._write_json_file, temp_file, data)
                # アトミックに置換
                temp_file.replace(self.data_file)
            except OSError as e:
                raise PersistenceError(
                    f"Failed to save sessions: {e}", details={"path": str(self.data_file)}
                ) from e
            self._dirty = False

    def _write_json_file(self, path: Path, data: dict) -> None:
        """JSONファイルを同期的に書き込み（スレッドプール用）"""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, separators=(",", ":"))

    async def create_session(
        self, user_id: str | None = None, **fields: Any
    ) -> JournalSession:
        await self._ensure_loaded()
        session = JournalSession(id=str(uuid.uuid4()), user_id=user_id)
        _apply_patch(session, fields)

        self._sessions[session.id] = session
        self._messages[session.id] = []
        await self._schedule_save()
        return session

    async def get_session(self, session_id: str) -> JournalSession | None:
        await self._ensure_loaded()
        return self._sessions.get(session_id)

    async def update_session(
        self, session_id: str, patch: dict[str, Any]
    ) -> JournalSession | None:
        await self._ensure_loaded()
        session = self._sessions.get(session_id)
        if session is None:
            return None

        _apply_patch(session, patch)
        session.updated_at = datetime.now()
        await self._schedule_save()
        return session

    async def append_message(
        self,
        session_id: str,
        role: str,
        content: str,
        snapshot: EmotionSnapshot | None = None,
        patterns_detected: list[str] | None = None,
    ) -> JournalMessage:
        await self._ensure_loaded()
        if session_id not in self._sessions:
            raise SessionNotFoundError(session_id)

        message = JournalMessage(
            id=str(uuid.uuid4()),
            session_id=session_id,
            role=role,
            content=content,
            emotion_snapshot=snapshot,
            patterns_detected=list(patterns_detected or []),
        )
        self._messages.setdefault(session_id, []).append(message)
        self._sessions[session_id].updated_at = datetime.now()
        await self._schedule_save()
        return message

    async def list_messages(self, session_id: str) -> list[JournalMessage]:
        await self._ensure_loaded()
        return list(self._messages.get(session_id, []))

    async def list_sessions(self, limit: int = 50) -> list[JournalSession]:
        """作成日時の新しい順にセッションを取得"""
        await self._ensure_loaded()
        sessions = sorted(self._sessions.values(), key=lambda s: s.created_at, reverse=True)
        return sessions[:limit]

    async def flush(self) -> None:
        """保留中の書き込みを強制実行"""
        await self._cancel_pending_save()
        if self._dirty:
            await self._save_data_now()


def _apply_patch(session: JournalSession, patch: dict[str, Any]) -> None:
    """変更可能なフィールドのみ反映（未知のキーは無視）"""
    for key, value in patch.items():
        if key not in UPDATABLE_SESSION_FIELDS:
            logger.debug(f"Ignoring non-updatable session field: {key}")
            continue
        if key == "ended_at" and isinstance(value, str):
            value = datetime.fromisoformat(value)
        setattr(session, key, value)
