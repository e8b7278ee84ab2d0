# 匹配阈值：欧氏距离严格小于该值才认为是同一个人。
# 该值与具体的 embedding 模型强相关（0.6 来自 face-api.js 的 128 维描述子），
# 更换提取器（例如 InsightFace 归一化 512 维向量）时必须重新标定。
MATCH_THRESHOLD = 0.6

# 实时扫描的采样周期（秒）。同样是经验值，需随提取器耗时一起调整。
TICK_PERIOD_SECONDS = 0.5

# 连续多少次提取失败后向显示层报告“降级”状态
DEGRADED_AFTER_FAILURES = 5

# 持久化：整个注册表保存在一个逻辑 key 下
STORAGE_KEY = "memoryanchor_faces"
SCHEMA_VERSION = "v1"
DEFAULT_STORE_DIR = "data/registry"

# 保留 id：仅用于显示层的哨兵，不能被录入
ALONE_ID = "alone"
UNKNOWN_ID = "unknown"
RESERVED_IDS = (ALONE_ID, UNKNOWN_ID)

# 录入时允许的图片后缀（不区分大小写）
IMAGE_SUFFIXES = (".jpg", ".jpeg", ".png", ".bmp", ".webp")

# 摄像头默认参数（与原始前端 getUserMedia 的 640x480 一致）
CAMERA_INDEX = 0
CAMERA_WIDTH = 640
CAMERA_HEIGHT = 480

# InsightFace 默认参数
RECOGNITION_MODEL = "buffalo_l"
DET_SIZE = 640
MIN_DET_SCORE = 0.5
