"""编排层与传输层的默认参数。"""

DEFAULT_MODEL = "deepseek-chat"
DEFAULT_MAX_TOKENS = 2048
DEFAULT_TEMPERATURE = 0.7

# Driver 可恢复错误的重试上限与退避基数（秒）
MAX_RETRIES = 5
BASE_DELAY = 0.5

# HTTP 层瞬时错误重试
HTTP_MAX_RETRIES = 5
HTTP_BASE_DELAY = 0.5
HTTP_MAX_DELAY = 30.0
RETRYABLE_STATUS_CODES = (429, 500, 502, 503, 504)
