"""限流模块：按客户端标识的固定窗口计数器"""

import logging
import threading
import time
from typing import Callable, Dict, Mapping, Optional

from .models import RateLimitDecision, RateLimitRecord

logger = logging.getLogger(__name__)

DEFAULT_SWEEP_INTERVAL = 60.0
USER_AGENT_CHARS = 50


def client_identifier(headers: Mapping[str, str]) -> str:
    """
    由客户端地址和截断的 User-Agent 组成标识。
    只是提高简单绕过的成本，不代表可靠身份。
    """
    lowered = {k.lower(): v for k, v in headers.items()}
    forwarded = (lowered.get("x-forwarded-for") or "").split(",")[0].strip()
    ip = forwarded or (lowered.get("x-real-ip") or "").strip() or "unknown"
    user_agent = lowered.get("user-agent") or "unknown"
    return f"{ip}:{user_agent[:USER_AGENT_CHARS]}"


class RateLimiter:
    """
    固定窗口限流：窗口内第 1..limit 次请求放行，之后拒绝直到窗口重置。
    没有滑动衰减；过期记录由周期性清扫删除。

    check() 的读改写在同一把锁内完成，并发请求不会少计数。
    """

    def __init__(
        self,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = DEFAULT_SWEEP_INTERVAL,
    ):
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._store: Dict[str, RateLimitRecord] = {}
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._running = False

    def check(self, identifier: str, limit: int, window_ms: int) -> RateLimitDecision:
        """登记一次请求并返回是否放行"""
        with self._lock:
            now = self.clock()
            record = self._store.get(identifier)

            if record is None or now > record.reset_at:
                record = RateLimitRecord(count=1, reset_at=now + window_ms / 1000)
                self._store[identifier] = record
                return RateLimitDecision(True, limit, max(0, limit - 1), record.reset_at)

            if record.count >= limit:
                return RateLimitDecision(False, limit, 0, record.reset_at)

            record.count += 1
            return RateLimitDecision(True, limit, limit - record.count, record.reset_at)

    def sweep(self) -> int:
        """删除已过期的记录，返回删除数量"""
        with self._lock:
            now = self.clock()
            expired = [key for key, record in self._store.items() if now > record.reset_at]
            for key in expired:
                del self._store[key]
        if expired:
            logger.debug("清理 %d 条过期限流记录", len(expired))
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def start(self) -> "RateLimiter":
        """启动后台周期清扫"""
        with self._lock:
            if self._running:
                return self
            self._running = True
        self._schedule()
        return self

    def _schedule(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._timer = threading.Timer(self.sweep_interval, self._tick)
            self._timer.daemon = True
            self._timer.start()

    def _tick(self) -> None:
        try:
            self.sweep()
        finally:
            self._schedule()

    def close(self) -> None:
        """停止清扫并清空所有记录"""
        with self._lock:
            self._running = False
            timer, self._timer = self._timer, None
            self._store.clear()
        if timer is not None:
            timer.cancel()

    def __enter__(self) -> "RateLimiter":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
