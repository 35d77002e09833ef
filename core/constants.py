"""
하드코딩 상수 - 변경될 일이 거의 없는 고정값

중요: 경로는 반드시 pathlib.Path 사용 (Windows/Linux 크로스 플랫폼)
"""

from pathlib import Path


# 프로젝트 루트 (이 파일 기준 2단계 상위: core/constants.py → 프로젝트 루트)
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent


class FikenEndpoints:
    """Fiken API 엔드포인트 (고정값)

    공식 문서: https://api.fiken.no/api/v2/docs/
    """

    BASE_URL: str = "https://api.fiken.no/api/v2"


class ShopifyDefaults:
    """Shopify Admin API 기본값"""

    API_VERSION: str = "2024-10"
    HMAC_HEADER: str = "X-Shopify-Hmac-Sha256"
    ACCESS_TOKEN_HEADER: str = "X-Shopify-Access-Token"
    PAGE_LIMIT: int = 250

    # 백업 디렉토리의 주문 파일 이름 규칙 (ordre_<id>.json)
    BACKUP_FILE_PREFIX: str = "ordre_"


class Defaults:
    """기본값 상수"""

    CURRENCY: str = "NOK"
    VAT_RATE: str = "0.25"
    VAT_TYPE: str = "HIGH"

    # 계정 코드 (Fiken 표준 계정표)
    SALES_ACCOUNT: str = "3000"
    BANK_ACCOUNT: str = "1920:10001"
    FEE_ACCOUNT: str = "7770"

    # Shopify 보고 합계와 허용 오차 (øre)
    TOTAL_TOLERANCE_MINOR: int = 2

    # 이름 없는 주문의 거래처 이름
    FALLBACK_CUSTOMER_NAME: str = "Shopify Customer"
    DEFAULT_COUNTRY: str = "NO"

    WEB_HOST: str = "127.0.0.1"
    WEB_PORT: int = 8787

    POLL_INTERVAL_SEC: int = 10
    SYNC_INTERVAL_SEC: int = 6 * 60 * 60
    MAX_ATTEMPTS: int = 3


class Paths:
    """프로젝트 경로 상수 (pathlib 사용 - OS 독립적)"""

    # 디렉토리
    CONFIG_DIR: Path = PROJECT_ROOT / "config"
    DATA_DIR: Path = PROJECT_ROOT / "data"
    LOGS_DIR: Path = PROJECT_ROOT / "logs"
    WORKER_LOGS_DIR: Path = LOGS_DIR / "worker"
    WEB_LOGS_DIR: Path = LOGS_DIR / "web"

    # 설정 파일
    SECRETS_FILE: Path = CONFIG_DIR / "secrets.yaml"

    # DB 파일
    DB: Path = DATA_DIR / "settlement.db"


class Pacing:
    """Fiken 호출 속도 제한

    Fiken은 동시 요청 1개, 초당 요청 수 제한이 있음.
    """

    MIN_INTERVAL_SEC: float = 0.25
    TIMEOUT_SEC: float = 30.0
    MAX_RETRIES: int = 4
    BACKOFF_BASE_SEC: float = 1.0
    BACKOFF_MAX_SEC: float = 30.0
