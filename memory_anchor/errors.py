"""Exception taxonomy.

Enrollment errors are recoverable by fixing the input; scan misuse errors are
programmer errors and fail fast. `StorageCorrupt` and
`ExtractionTransientFailure` never leave their component: the registry and the
scan loop catch them and degrade to a safe state.
"""


class MemoryAnchorError(Exception):
    pass


class EnrollError(MemoryAnchorError):
    pass


class NoFaceDetected(EnrollError):
    """录入图片中没有可提取的人脸；应提示用户更换图片，而不是自动重试。"""


class InvalidProfile(EnrollError):
    """Missing or reserved profile field."""


class InvalidImage(EnrollError):
    """Enrollment file is not a readable image."""


class ScanError(MemoryAnchorError):
    pass


class AlreadyScanning(ScanError):
    pass


class NotScanning(ScanError):
    pass


class FrameSourceUnavailable(ScanError):
    """摄像头/帧源无法打开。"""


class StorageCorrupt(MemoryAnchorError):
    pass


class ExtractionTransientFailure(MemoryAnchorError):
    pass
