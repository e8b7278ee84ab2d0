from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from memory_anchor.face.types import Profile
from memory_anchor.scan.state import RecognitionState
from memory_anchor.utils.log import get_logger

logger = get_logger(__name__)


class DisplaySink(ABC):
    """Read-only presentation boundary fed by ScanController transitions."""

    @abstractmethod
    def show(self, state: RecognitionState, profile: Optional[Profile]) -> None:
        """Called once per state change. `profile` is None for "nobody" (Scanning/Idle)."""
        pass

    def degraded(self, active: bool, failures: int) -> None:
        """Repeated extractor failures started (`active=True`) or recovered."""
        pass


class LoggingDisplay(DisplaySink):
    """Writes transitions to the log; used by the CLI scan command."""

    def show(self, state: RecognitionState, profile: Optional[Profile]) -> None:
        if profile is None:
            logger.info(f"[{state}] 无人")
            return
        age = f", {profile.age}岁" if profile.age is not None else ""
        logger.info(f"[{state}] {profile.avatar} {profile.name} ({profile.relation}{age})")
        if profile.last_visit:
            logger.info(f"  上次来访: {profile.last_visit}")
        if profile.conversation_summary:
            logger.info(f"  上次谈话: {profile.conversation_summary}")
        if profile.current_update:
            logger.info(f"  最新动态: {profile.current_update}")

    def degraded(self, active: bool, failures: int) -> None:
        if active:
            logger.warning(f"识别降级：连续 {failures} 次特征提取失败，仍在继续扫描")
        else:
            logger.info("识别已恢复正常")
