from __future__ import annotations

import threading
import time

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np

from memory_anchor.config import DEGRADED_AFTER_FAILURES, TICK_PERIOD_SECONDS
from memory_anchor.errors import AlreadyScanning, FrameSourceUnavailable, NotScanning
from memory_anchor.face.extractor import EmbeddingExtractor
from memory_anchor.face.matcher import EuclideanMatcher
from memory_anchor.face.registry import FaceRegistry
from memory_anchor.face.types import Profile
from memory_anchor.scan.display import DisplaySink
from memory_anchor.scan.frame_source import FrameSource
from memory_anchor.scan.state import UNKNOWN_VISITOR, RecognitionState
from memory_anchor.utils.log import get_logger

logger = get_logger(__name__)


@dataclass
class ScanConfig:
    tick_period: float = TICK_PERIOD_SECONDS
    # Consecutive failed ticks before the display is told we are degraded.
    degraded_after: int = DEGRADED_AFTER_FAILURES
    # How long stop() waits for the loop thread (an in-flight extractor call may still be running).
    join_timeout: float = 5.0


class ScanController:
    """Debounced live recognition loop.

    State machine: Idle -> Scanning on `start()`; each tick moves between
    Scanning (no face), Recognized(id) and Unknown; `stop()` returns to Idle.
    The display is called only when the effective identity changes.

    Locking:
    - `_lock` guards state, the frame source and the session counter. Emission
      happens while holding it, so once `stop()` has bumped the session no
      in-flight tick can emit.
    - `_tick_lock` keeps a single tick in flight; a tick that finds it taken is
      skipped, not queued.
    - the extractor runs outside `_lock` so `stop()` never waits on inference.
    """

    def __init__(
        self,
        extractor: EmbeddingExtractor,
        registry: FaceRegistry,
        display: DisplaySink,
        frame_source_factory: Callable[[], FrameSource],
        matcher: Optional[EuclideanMatcher] = None,
        config: Optional[ScanConfig] = None,
    ):
        self.extractor = extractor
        self.registry = registry
        self.display = display
        self.frame_source_factory = frame_source_factory
        self.matcher = matcher or EuclideanMatcher()
        self.config = config or ScanConfig()

        self._lock = threading.RLock()
        self._tick_lock = threading.Lock()
        self._state = RecognitionState.idle()
        self._source: Optional[FrameSource] = None
        self._session = 0
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

        self._consecutive_failures = 0
        self._degraded = False

    @property
    def state(self) -> RecognitionState:
        return self._state

    @property
    def is_scanning(self) -> bool:
        return self._source is not None

    @property
    def is_degraded(self) -> bool:
        return self._degraded

    def __enter__(self) -> "ScanController":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.is_scanning:
            self.stop()

    def start(self, background: bool = True) -> None:
        """获取帧源并进入 Scanning。

        Args:
            background: True 时启动定时线程；False 时由调用方自行调用 `tick()`
        """
        with self._lock:
            if self._source is not None:
                raise AlreadyScanning("start() called twice without stop()")
            try:
                source = self.frame_source_factory()
            except FrameSourceUnavailable:
                raise
            except Exception as e:
                logger.error(f"帧源初始化失败: {e}")
                raise FrameSourceUnavailable(str(e)) from e

            self._source = source
            self._session += 1
            self._consecutive_failures = 0
            self._degraded = False
            self._set_state(RecognitionState.scanning(), None)
            logger.info(f"开始扫描 (period={self.config.tick_period:.2f}s, 注册人数={len(self.registry)})")

            if background:
                stop_event = threading.Event()
                thread = threading.Thread(
                    target=self._loop,
                    args=(stop_event,),
                    name=f"scan-loop-{self._session}",
                    daemon=True,
                )
                self._stop_event = stop_event
                self._thread = thread
                thread.start()

    def stop(self) -> None:
        """停止扫描：取消定时、释放帧源、回到 Idle，并无条件通知显示层“无人”。"""
        with self._lock:
            if self._source is None:
                raise NotScanning("stop() called while idle")
            source = self._source
            self._source = None
            self._session += 1
            thread, stop_event = self._thread, self._stop_event
            self._thread = None
            self._stop_event = None
            if stop_event is not None:
                stop_event.set()
            try:
                source.release()
            except Exception as e:
                logger.warning(f"释放帧源失败: {e}")
            finally:
                self._degraded = False
                self._consecutive_failures = 0
                self._state = RecognitionState.idle()
                self._emit(self._state, None)
                logger.info("扫描已停止")

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=self.config.join_timeout)
            if thread.is_alive():
                logger.warning("扫描线程未在超时内结束（提取器调用仍在进行），其结果将被丢弃")

    def tick(self) -> bool:
        """Run one tick synchronously. Returns False if skipped or discarded."""
        if self._source is None:
            raise NotScanning("tick() called while idle")
        return self._run_tick()

    def _loop(self, stop_event: threading.Event) -> None:
        period = float(self.config.tick_period)
        next_due = time.monotonic() + period
        while True:
            delay = next_due - time.monotonic()
            if delay > 0 and stop_event.wait(delay):
                break
            if stop_event.is_set():
                break
            try:
                self._run_tick()
            except Exception:
                logger.exception("扫描 tick 出现未预期异常，继续运行")

            next_due += period
            now = time.monotonic()
            if next_due <= now:
                # Slow tick: drop the missed slots instead of firing them back-to-back.
                missed = int((now - next_due) // period) + 1
                next_due += missed * period
                logger.debug(f"tick 耗时超过周期，跳过 {missed} 次")

    def _run_tick(self) -> bool:
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("上一次 tick 尚未完成，跳过本次")
            return False
        try:
            failed = False
            with self._lock:
                if self._source is None:
                    return False
                session = self._session
                try:
                    frame = self._source.current_frame()
                except Exception as e:
                    logger.warning(f"读取帧失败: {e}")
                    frame = None
                    failed = True

            embedding: Optional[np.ndarray] = None
            if frame is not None:
                try:
                    embedding = self.extractor.extract(frame)
                except Exception as e:
                    logger.warning(f"特征提取失败，本次按无人脸处理: {e}")
                    failed = True

            with self._lock:
                if self._source is None or session != self._session:
                    logger.debug("扫描已停止，丢弃本次结果")
                    return False
                self._record_health(failed)
                self._apply(embedding)
                return True
        finally:
            self._tick_lock.release()

    def _apply(self, embedding: Optional[np.ndarray]) -> None:
        if embedding is None:
            self._set_state(RecognitionState.scanning(), None)
            return

        matched = self.matcher.match(embedding, self.registry.all())
        if matched is not None:
            self._set_state(RecognitionState.recognized(matched.id), matched.profile)
        else:
            self._set_state(RecognitionState.unknown(), UNKNOWN_VISITOR)

    def _set_state(self, new_state: RecognitionState, profile: Optional[Profile]) -> None:
        # Debounce: only a change of effective identity reaches the display.
        if new_state == self._state:
            return
        logger.info(f"状态变化: {self._state} -> {new_state}")
        self._state = new_state
        self._emit(new_state, profile)

    def _emit(self, state: RecognitionState, profile: Optional[Profile]) -> None:
        try:
            self.display.show(state, profile)
        except Exception:
            logger.exception(f"显示层处理 {state} 失败")

    def _record_health(self, failed: bool) -> None:
        if failed:
            self._consecutive_failures += 1
            if not self._degraded and self._consecutive_failures >= int(self.config.degraded_after):
                self._degraded = True
                logger.warning(f"连续 {self._consecutive_failures} 次提取失败，进入降级模式")
                self._notify_degraded(True)
            return
        if self._degraded:
            logger.info("特征提取恢复")
            self._degraded = False
            self._notify_degraded(False)
        self._consecutive_failures = 0

    def _notify_degraded(self, active: bool) -> None:
        try:
            self.display.degraded(active, self._consecutive_failures if active else 0)
        except Exception:
            logger.exception("显示层处理降级信号失败")
