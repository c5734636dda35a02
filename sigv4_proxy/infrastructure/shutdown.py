"""
グレースフルシャットダウン管理

レスポンス返却後も継続するバックグラウンドタスク（Webhook通知等）を追跡し、
プロセス終了前にその完了を待機する
"""
import asyncio
import inspect
from collections.abc import Coroutine
from typing import Any, Callable, Optional

import structlog

logger = structlog.get_logger(__name__)


class ShutdownManager:
    """
    グレースフルシャットダウンを管理するクラス

    - 切り離されたバックグラウンドタスクを追跡
    - シャットダウン時は追跡中タスクの完了を待機（明示的な合流点）
    - タイムアウト後は残りのタスクをキャンセル
    """

    def __init__(self, shutdown_timeout: float = 30.0):
        """
        初期化

        Args:
            shutdown_timeout: シャットダウン待機のタイムアウト秒数
        """
        self.shutdown_timeout = shutdown_timeout
        self._active_tasks: set[asyncio.Task] = set()
        self._is_shutting_down = False
        self._cleanup_callbacks: list[Callable] = []

    @property
    def is_shutting_down(self) -> bool:
        """シャットダウン中かどうか"""
        return self._is_shutting_down

    @property
    def pending_count(self) -> int:
        """未完了のバックグラウンドタスク数"""
        return len(self._active_tasks)

    def register_cleanup(self, callback: Callable) -> None:
        """
        シャットダウン時に実行するクリーンアップコールバックを登録

        Args:
            callback: 同期または非同期のクリーンアップ関数
        """
        self._cleanup_callbacks.append(callback)

    def track_task(self, task: asyncio.Task) -> None:
        """
        タスクを追跡対象に追加

        Args:
            task: 追跡するasyncioタスク
        """
        self._active_tasks.add(task)
        task.add_done_callback(self._active_tasks.discard)

    def spawn(
        self, coro: Coroutine[Any, Any, Any], name: Optional[str] = None
    ) -> asyncio.Task:
        """
        コルーチンを切り離したタスクとして起動し、追跡する

        呼び出し元のリクエストがキャンセルされてもタスクは継続する。

        Raises:
            RuntimeError: シャットダウン開始後に呼び出された場合
        """
        if self._is_shutting_down:
            coro.close()
            raise RuntimeError("サーバーはシャットダウン中です")

        task = asyncio.create_task(coro, name=name)
        self.track_task(task)
        return task

    async def wait_for_background_tasks(self, timeout: Optional[float] = None) -> bool:
        """
        追跡中の全タスクの完了を待機する

        Args:
            timeout: 待機上限秒数（Noneの場合は無制限）

        Returns:
            全タスクが完了した場合True
        """
        if not self._active_tasks:
            return True

        _done, pending = await asyncio.wait(
            set(self._active_tasks),
            timeout=timeout,
            return_when=asyncio.ALL_COMPLETED,
        )
        return not pending

    async def graceful_shutdown(self) -> None:
        """
        グレースフルシャットダウンを実行

        1. 新規バックグラウンドタスクの受付を停止
        2. 進行中のタスクの完了を待機（タイムアウト後はキャンセル）
        3. クリーンアップコールバックを実行
        """
        self._is_shutting_down = True
        logger.info(
            "グレースフルシャットダウン開始",
            active_tasks=len(self._active_tasks),
            timeout=self.shutdown_timeout
        )

        if self._active_tasks:
            logger.info("バックグラウンドタスクの完了を待機中", count=len(self._active_tasks))

            completed = await self.wait_for_background_tasks(self.shutdown_timeout)
            if completed:
                logger.info("全タスクが正常に完了")
            else:
                pending = list(self._active_tasks)
                logger.warning(
                    "タイムアウトにより一部タスクを強制終了",
                    pending_count=len(pending)
                )
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        # クリーンアップコールバックを実行
        for callback in self._cleanup_callbacks:
            try:
                if inspect.iscoroutinefunction(callback):
                    await callback()
                else:
                    callback()
            except Exception as e:
                logger.error("クリーンアップエラー", error=str(e))

        logger.info("グレースフルシャットダウン完了")
