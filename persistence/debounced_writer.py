"""ドキュメント単位のデバウンス保存

キーごとに「最新の未保存ペイロード」1件だけを保持する。
schedule のたびにタイマーを張り直し、古いペイロードは破棄（キューしない）。
タイマー発火時に世代番号を照合し、置き換えられた書き込みは適用しない。
書き込みに失敗した分はスロットへ戻し、flush で再試行できる。
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Hashable, Optional

from config import SAVE_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class PendingWrite:
    generation: int
    payload: Any
    timer: Any = None  # 失敗後に戻した分はタイマーなし

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()


class DebouncedWriter:
    """キーごとの単一スロット・デバウンス書き込み"""

    def __init__(self, write: Callable[[Hashable, Any], None],
                 delay: float = SAVE_DEBOUNCE_SECONDS,
                 on_error: Optional[Callable[[Hashable, Exception], None]] = None,
                 timer_factory: Callable = threading.Timer):
        self._write = write
        self.delay = delay
        self._on_error = on_error
        self._timer_factory = timer_factory
        self._lock = threading.Lock()
        self._pending: dict = {}
        self._generations: dict = {}
        self.last_error: Optional[Exception] = None

    def schedule(self, key: Hashable, payload: Any) -> int:
        """書き込みを予約（同じキーの未保存分は置き換え）

        Returns:
            int: この予約の世代番号
        """
        with self._lock:
            generation = self._next_generation(key)
            previous = self._pending.pop(key, None)
            if previous is not None:
                previous.cancel_timer()
            timer = self._timer_factory(self.delay, self._fire, args=(key, generation))
            timer.daemon = True
            self._pending[key] = PendingWrite(generation, payload, timer)
            timer.start()
        return generation

    def cancel(self, key: Hashable) -> bool:
        """未保存分を破棄（発火済みタイマーの書き込みも無効化）"""
        with self._lock:
            self._next_generation(key)
            pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.cancel_timer()
        logger.debug("Discarded pending write for %s", key)
        return True

    def flush(self, key: Hashable) -> bool:
        """未保存分を即時書き込み（失敗時はスロットに残す）"""
        with self._lock:
            pending = self._pending.pop(key, None)
        if pending is None:
            return False
        pending.cancel_timer()
        return self._apply(key, pending)

    def flush_all(self) -> None:
        """全キーの未保存分を書き込み（終了処理用）"""
        for key in self.pending_keys():
            self.flush(key)

    def pending_keys(self) -> list:
        with self._lock:
            return list(self._pending)

    def generation(self, key: Hashable) -> int:
        with self._lock:
            return self._generations.get(key, 0)

    def _next_generation(self, key: Hashable) -> int:
        generation = self._generations.get(key, 0) + 1
        self._generations[key] = generation
        return generation

    def _fire(self, key: Hashable, generation: int) -> None:
        with self._lock:
            pending = self._pending.get(key)
            if pending is None or pending.generation != generation:
                logger.debug("Dropped superseded write for %s (generation %s)", key, generation)
                return
            del self._pending[key]
        self._apply(key, pending)

    def _apply(self, key: Hashable, pending: PendingWrite) -> bool:
        try:
            self._write(key, pending.payload)
        except Exception as exc:
            # 保存失敗は画面の内訳表示を妨げない（再試行用にスロットへ戻す）
            logger.warning("Debounced write for %s failed: %s", key, exc)
            self._restore(key, pending)
            self.last_error = exc
            if self._on_error is not None:
                self._on_error(key, exc)
            return False
        self.last_error = None
        return True

    def _restore(self, key: Hashable, pending: PendingWrite) -> None:
        with self._lock:
            # 新しい予約・キャンセルがあれば戻さない
            if key in self._pending or self._generations.get(key) != pending.generation:
                return
            self._pending[key] = PendingWrite(pending.generation, pending.payload, None)
