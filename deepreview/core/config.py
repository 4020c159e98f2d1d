import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

_DATA_DIR = Path(os.getenv('DEEPREVIEW_DATA_DIR') or Path.home() / '.deepreview')

_USER_NAME = os.getenv('USER_NAME', '')

# Providers in fallback order: ByteDance Ark -> DouBao (DashScope) -> DeepSeek
_BYTEDANCE_API_KEY = os.getenv('BYTEDANCE_API_KEY', '')
_BYTEDANCE_MODEL = os.getenv('BYTEDANCE_MODEL', 'doubao-seed-1-6-250615')
_BYTEDANCE_URL = os.getenv('BYTEDANCE_URL', 'https://ark.cn-beijing.volces.com/api/v3/chat/completions')

_DOUBAO_API_KEY = os.getenv('DOUBAO_API_KEY', '')
_DOUBAO_MODEL = os.getenv('DOUBAO_MODEL', 'qwen-vl-plus')
_DOUBAO_URL = os.getenv(
    'DOUBAO_URL',
    'https://dashscope.aliyuncs.com/api/v1/services/aigc/text-generation/generation',
)

_DEEPSEEK_API_KEY = os.getenv('DEEPSEEK_API_KEY', '')
_DEEPSEEK_MODEL = os.getenv('DEEPSEEK_MODEL', 'deepseek-chat')
_DEEPSEEK_URL = os.getenv('DEEPSEEK_URL', 'https://api.deepseek.com/v1/chat/completions')

_ANALYSIS_MAX_RETRIES = int(os.getenv('ANALYSIS_MAX_RETRIES', '3'))
_ANALYSIS_RETRY_DELAY = float(os.getenv('ANALYSIS_RETRY_DELAY', '2.0'))
_ANALYSIS_REQUEST_TIMEOUT = float(os.getenv('ANALYSIS_REQUEST_TIMEOUT', '90'))
_ANALYSIS_OVERALL_TIMEOUT = float(os.getenv('ANALYSIS_OVERALL_TIMEOUT', '180'))
_ANALYSIS_MAX_TOKENS = int(os.getenv('ANALYSIS_MAX_TOKENS', '2000'))
_ANALYSIS_TEMPERATURE = float(os.getenv('ANALYSIS_TEMPERATURE', '0.7'))

_CONNECTIVITY_CHECK_URL = os.getenv('CONNECTIVITY_CHECK_URL', 'https://www.apple.com/library/test/success.html')


class Config:
    """Central configuration for the DeepReview core."""

    DATA_DIR = _DATA_DIR
    REVIEWS_FILE_NAME = 'reviews.json'
    BACKUP_FILE_NAME = 'reviews_backup.json'

    USER_NAME = _USER_NAME

    BYTEDANCE_API_KEY = _BYTEDANCE_API_KEY
    BYTEDANCE_MODEL = _BYTEDANCE_MODEL
    BYTEDANCE_URL = _BYTEDANCE_URL

    DOUBAO_API_KEY = _DOUBAO_API_KEY
    DOUBAO_MODEL = _DOUBAO_MODEL
    DOUBAO_URL = _DOUBAO_URL

    DEEPSEEK_API_KEY = _DEEPSEEK_API_KEY
    DEEPSEEK_MODEL = _DEEPSEEK_MODEL
    DEEPSEEK_URL = _DEEPSEEK_URL

    ANALYSIS_MAX_RETRIES = _ANALYSIS_MAX_RETRIES
    ANALYSIS_RETRY_DELAY = _ANALYSIS_RETRY_DELAY
    ANALYSIS_REQUEST_TIMEOUT = _ANALYSIS_REQUEST_TIMEOUT
    ANALYSIS_OVERALL_TIMEOUT = _ANALYSIS_OVERALL_TIMEOUT
    ANALYSIS_MAX_TOKENS = _ANALYSIS_MAX_TOKENS
    ANALYSIS_TEMPERATURE = _ANALYSIS_TEMPERATURE

    CONNECTIVITY_CHECK_URL = _CONNECTIVITY_CHECK_URL

    APP_VERSION = '1.0.0'


settings = Config()
