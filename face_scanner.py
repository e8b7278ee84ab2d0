"""命令行入口：录入 / 删除 / 列出已注册人员，以及实时摄像头扫描。

实现位于 `memory_anchor/` 包内；此文件仅保留薄封装与 CLI。
"""

from __future__ import annotations

import argparse
import time

from memory_anchor.config import (
    CAMERA_HEIGHT,
    CAMERA_INDEX,
    CAMERA_WIDTH,
    DEFAULT_STORE_DIR,
    DEGRADED_AFTER_FAILURES,
    DET_SIZE,
    MATCH_THRESHOLD,
    RECOGNITION_MODEL,
    TICK_PERIOD_SECONDS,
)
from memory_anchor.errors import EnrollError, FrameSourceUnavailable
from memory_anchor.face.enrollment import EnrollmentService
from memory_anchor.face.matcher import EuclideanMatcher, MatcherConfig
from memory_anchor.face.registry import FaceRegistry
from memory_anchor.face.types import Profile
from memory_anchor.scan.controller import ScanConfig, ScanController
from memory_anchor.scan.display import LoggingDisplay
from memory_anchor.scan.frame_source import CameraFrameSource
from memory_anchor.storage.store import JsonFileStore
from memory_anchor.utils.log import get_logger, setup_logging

logger = get_logger(__name__)


def _build_extractor(args):
    # 懒加载：list/remove 不需要加载模型
    from memory_anchor.face.insightface_extractor import ExtractorConfig, InsightFaceExtractor

    return InsightFaceExtractor(
        ExtractorConfig(
            recognition_model=str(args.model),
            det_size=int(args.det_size),
            device=str(args.device),
        )
    )


def cmd_enroll(args, registry: FaceRegistry) -> int:
    service = EnrollmentService(_build_extractor(args), registry)
    profile = Profile(
        id=args.id or "",
        name=args.name,
        relation=args.relation,
        age=args.age,
        last_visit=args.last_visit,
        conversation_summary=args.summary,
        current_update=args.update,
        avatar=args.avatar,
    )
    try:
        face = service.enroll_file(args.image, profile)
    except EnrollError as e:
        logger.error(f"录入失败 ({type(e).__name__}): {e}")
        return 1
    logger.info(f"✅ 已录入: {face.id} {face.profile.name}，当前共 {len(registry)} 人")
    return 0


def cmd_remove(args, registry: FaceRegistry) -> int:
    if registry.remove(args.id):
        logger.info(f"已删除: {args.id}")
    else:
        logger.warning(f"未找到: {args.id}")
    return 0


def cmd_list(args, registry: FaceRegistry) -> int:
    faces = registry.all()
    if not faces:
        logger.info("尚未注册任何人员")
        return 0
    logger.info(f"已注册 {len(faces)} 人:")
    for face in faces:
        p = face.profile
        logger.info(f"  {p.id}: {p.avatar} {p.name} ({p.relation}), dim={face.embedding.shape[0]}, image={face.image_ref}")
    return 0


def cmd_scan(args, registry: FaceRegistry) -> int:
    if len(registry) == 0:
        logger.warning("注册表为空：所有人脸都会显示为 Unknown Visitor")

    controller = ScanController(
        extractor=_build_extractor(args),
        registry=registry,
        display=LoggingDisplay(),
        frame_source_factory=lambda: CameraFrameSource(args.camera, args.width, args.height),
        matcher=EuclideanMatcher(MatcherConfig(threshold=float(args.threshold))),
        config=ScanConfig(tick_period=float(args.period), degraded_after=int(args.degraded_after)),
    )
    try:
        with controller:
            st = time.time()
            while args.duration is None or time.time() - st < float(args.duration):
                time.sleep(0.2)
    except FrameSourceUnavailable as e:
        logger.error(f"无法开始扫描: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("收到中断，停止扫描")
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="访客人脸识别：录入人员并实时识别")
    parser.add_argument("--store", "-s", default=DEFAULT_STORE_DIR, help="注册表存储目录")
    parser.add_argument("--model", default=RECOGNITION_MODEL, help="InsightFace 模型名称（默认 buffalo_l）")
    parser.add_argument("--det-size", type=int, default=DET_SIZE, help="InsightFace det_size（默认 640）")
    parser.add_argument(
        "--device",
        type=str,
        default="auto",
        choices=["auto", "cpu", "gpu"],
        help="计算设备：auto/cpu/gpu（默认 auto：有 CUDA 就用 GPU）",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="输出 DEBUG 日志")
    sub = parser.add_subparsers(dest="command", required=True)

    p_enroll = sub.add_parser("enroll", help="从图片录入（或替换）一个人")
    p_enroll.add_argument("image", help="人脸照片路径")
    p_enroll.add_argument("--name", "-n", required=True, help="姓名（必填）")
    p_enroll.add_argument("--id", default=None, help="人员 id；已存在时替换原记录，不填则自动生成")
    p_enroll.add_argument("--relation", default="", help="关系，例如 Daughter")
    p_enroll.add_argument("--age", type=int, default=None)
    p_enroll.add_argument("--last-visit", default="", help="上次来访（自由文本）")
    p_enroll.add_argument("--summary", default="", help="上次谈话摘要")
    p_enroll.add_argument("--update", default="", help="最新动态")
    p_enroll.add_argument("--avatar", default="", help="头像/图标")

    p_remove = sub.add_parser("remove", help="按 id 删除")
    p_remove.add_argument("id")

    sub.add_parser("list", help="列出已注册人员")

    p_scan = sub.add_parser("scan", help="打开摄像头实时识别")
    p_scan.add_argument("--camera", type=int, default=CAMERA_INDEX)
    p_scan.add_argument("--width", type=int, default=CAMERA_WIDTH)
    p_scan.add_argument("--height", type=int, default=CAMERA_HEIGHT)
    p_scan.add_argument(
        "--threshold",
        "-t",
        type=float,
        default=MATCH_THRESHOLD,
        help="欧氏距离匹配阈值（默认 0.6；更换模型后需重新标定）",
    )
    p_scan.add_argument("--period", type=float, default=TICK_PERIOD_SECONDS, help="采样周期（秒）")
    p_scan.add_argument("--degraded-after", type=int, default=DEGRADED_AFTER_FAILURES, help="连续失败多少次后提示降级")
    p_scan.add_argument("--duration", type=float, default=None, help="扫描多少秒后自动停止（默认一直运行）")

    args = parser.parse_args(argv)
    setup_logging(verbose=args.verbose)

    registry = FaceRegistry.open(JsonFileStore(args.store))
    commands = {
        "enroll": cmd_enroll,
        "remove": cmd_remove,
        "list": cmd_list,
        "scan": cmd_scan,
    }
    return commands[args.command](args, registry)


if __name__ == "__main__":
    raise SystemExit(main())
