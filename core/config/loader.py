"""
설정 로더

secrets.yaml 로드 및 Fiken/Shopify/회계/워커 설정 생성
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from core.constants import Defaults, FikenEndpoints, Paths, ShopifyDefaults
from core.ledger.types import AccountCodes, FeeConfig
from core.types import OrderSourceKind


@dataclass(frozen=True)
class FikenConfig:
    """Fiken 원장 연결 설정"""

    api_token: str
    company_slug: str
    base_url: str = FikenEndpoints.BASE_URL


@dataclass(frozen=True)
class ShopifyConfig:
    """Shopify 주문 소스 설정

    webhook_secret이 비어 있으면 모든 webhook이 401로 거부됨.
    """

    shop_domain: str = ""
    access_token: str = ""
    webhook_secret: str = ""
    api_version: str = ShopifyDefaults.API_VERSION

    @property
    def base_url(self) -> str:
        return f"https://{self.shop_domain}/admin/api/{self.api_version}"


@dataclass(frozen=True)
class SourceConfig:
    """주문 소스 선택"""

    kind: OrderSourceKind = OrderSourceKind.SHOPIFY_API
    backup_dir: Path | None = None


@dataclass(frozen=True)
class AccountingConfig:
    """회계 규칙 설정

    금액 관련 값은 모두 minor unit 정수 또는 Decimal 문자열.
    """

    vat_rate: Decimal = Decimal(Defaults.VAT_RATE)
    vat_type: str = Defaults.VAT_TYPE
    currency: str = Defaults.CURRENCY
    accounts: AccountCodes = field(default_factory=AccountCodes)
    fee: FeeConfig = field(default_factory=FeeConfig)
    total_tolerance_minor: int = Defaults.TOTAL_TOLERANCE_MINOR
    fallback_customer_name: str = Defaults.FALLBACK_CUSTOMER_NAME
    default_country: str = Defaults.DEFAULT_COUNTRY


@dataclass(frozen=True)
class WorkerConfig:
    """워커 실행 설정"""

    poll_interval_sec: int = Defaults.POLL_INTERVAL_SEC
    sync_interval_sec: int = Defaults.SYNC_INTERVAL_SEC
    worker_index: int = 0
    worker_count: int = 1
    max_attempts: int = Defaults.MAX_ATTEMPTS


@dataclass(frozen=True)
class WebConfig:
    """Web 서버 설정"""

    host: str = Defaults.WEB_HOST
    port: int = Defaults.WEB_PORT


@dataclass(frozen=True)
class AppConfig:
    """전체 애플리케이션 설정 (secrets.yaml에서 로드)

    불변 데이터 구조로 설정 변경 방지
    """

    fiken: FikenConfig
    shopify: ShopifyConfig
    source: SourceConfig
    accounting: AccountingConfig
    worker: WorkerConfig
    web: WebConfig
    db_path: Path = Paths.DB


class ConfigLoadError(Exception):
    """설정 로드 실패 예외"""

    pass


def load_config(path: Path | None = None) -> AppConfig:
    """secrets.yaml 파일 로드

    Args:
        path: secrets.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        AppConfig 인스턴스

    Raises:
        ConfigLoadError: 파일이 없거나 형식이 잘못된 경우
    """
    if path is None:
        path = Paths.SECRETS_FILE

    if not path.exists():
        raise ConfigLoadError(f"secrets.yaml 파일을 찾을 수 없습니다: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"secrets.yaml 파싱 실패: {e}") from e

    if data is None:
        raise ConfigLoadError("secrets.yaml이 비어 있습니다")
    if not isinstance(data, dict):
        raise ConfigLoadError("secrets.yaml 최상위는 매핑이어야 합니다")

    source = _parse_source(_section(data, "source"), base_dir=path.parent)
    shopify = _parse_shopify(_section(data, "shopify"))

    if source.kind == OrderSourceKind.SHOPIFY_API:
        if not shopify.shop_domain:
            raise ConfigLoadError("secrets.yaml의 shopify 섹션에 'shop_domain'이 없습니다")
        if not shopify.access_token:
            raise ConfigLoadError("secrets.yaml의 shopify 섹션에 'access_token'이 없습니다")

    db_path_value = data.get("db_path")
    db_path = _resolve_path(db_path_value, path.parent) if db_path_value else Paths.DB

    return AppConfig(
        fiken=_parse_fiken(_section(data, "fiken")),
        shopify=shopify,
        source=source,
        accounting=_parse_accounting(_section(data, "accounting")),
        worker=_parse_worker(_section(data, "worker")),
        web=_parse_web(_section(data, "web")),
        db_path=db_path,
    )


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigLoadError(f"secrets.yaml의 '{name}' 섹션은 매핑이어야 합니다")
    return value


def _resolve_path(value: str, base_dir: Path) -> Path:
    candidate = Path(value).expanduser()
    if not candidate.is_absolute():
        candidate = (base_dir / candidate).resolve()
    return candidate


def _parse_decimal(value: Any, name: str) -> Decimal:
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigLoadError(f"'{name}' 값이 숫자가 아닙니다: {value!r}") from e
    if not parsed.is_finite() or parsed < 0:
        raise ConfigLoadError(f"'{name}' 값이 유효하지 않습니다: {value!r}")
    return parsed


def _parse_int(value: Any, name: str, minimum: int = 0) -> int:
    if isinstance(value, bool):
        raise ConfigLoadError(f"'{name}' 값이 정수가 아닙니다: {value!r}")
    try:
        parsed = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigLoadError(f"'{name}' 값이 정수가 아닙니다: {value!r}") from e
    if parsed < minimum:
        raise ConfigLoadError(f"'{name}' 값은 {minimum} 이상이어야 합니다: {parsed}")
    return parsed


def _parse_fiken(section: dict[str, Any]) -> FikenConfig:
    api_token = section.get("api_token")
    company_slug = section.get("company_slug")

    if not api_token:
        raise ConfigLoadError("secrets.yaml의 fiken 섹션에 'api_token'이 없습니다")
    if not company_slug:
        raise ConfigLoadError("secrets.yaml의 fiken 섹션에 'company_slug'가 없습니다")

    return FikenConfig(
        api_token=str(api_token),
        company_slug=str(company_slug),
        base_url=str(section.get("base_url") or FikenEndpoints.BASE_URL).rstrip("/"),
    )


def _parse_shopify(section: dict[str, Any]) -> ShopifyConfig:
    return ShopifyConfig(
        shop_domain=str(section.get("shop_domain") or ""),
        access_token=str(section.get("access_token") or ""),
        webhook_secret=str(section.get("webhook_secret") or ""),
        api_version=str(section.get("api_version") or ShopifyDefaults.API_VERSION),
    )


def _parse_source(section: dict[str, Any], base_dir: Path) -> SourceConfig:
    kind_str = section.get("kind", OrderSourceKind.SHOPIFY_API.value)
    try:
        kind = OrderSourceKind(kind_str)
    except ValueError as e:
        valid_kinds = [k.value for k in OrderSourceKind]
        raise ConfigLoadError(
            f"유효하지 않은 source.kind입니다: '{kind_str}'. 유효한 값: {valid_kinds}"
        ) from e

    backup_dir_value = section.get("backup_dir")
    backup_dir = _resolve_path(backup_dir_value, base_dir) if backup_dir_value else None

    if kind == OrderSourceKind.BACKUP_FILES and backup_dir is None:
        raise ConfigLoadError("source.kind가 backup_files이면 'backup_dir'이 필요합니다")

    return SourceConfig(kind=kind, backup_dir=backup_dir)


def _parse_accounting(section: dict[str, Any]) -> AccountingConfig:
    accounts_section = section.get("accounts") or {}
    fee_section = section.get("fee") or {}

    accounts = AccountCodes(
        sales=str(accounts_section.get("sales", Defaults.SALES_ACCOUNT)),
        shipping=(
            str(accounts_section["shipping"]) if accounts_section.get("shipping") else None
        ),
        bank=str(accounts_section.get("bank", Defaults.BANK_ACCOUNT)),
        fee=str(accounts_section.get("fee", Defaults.FEE_ACCOUNT)),
    )

    fee = FeeConfig(
        percent=_parse_decimal(fee_section.get("percent", "0"), "accounting.fee.percent"),
        fixed_minor=_parse_int(fee_section.get("fixed_minor", 0), "accounting.fee.fixed_minor"),
    )

    return AccountingConfig(
        vat_rate=_parse_decimal(section.get("vat_rate", Defaults.VAT_RATE), "accounting.vat_rate"),
        vat_type=str(section.get("vat_type", Defaults.VAT_TYPE)),
        currency=str(section.get("currency", Defaults.CURRENCY)).upper(),
        accounts=accounts,
        fee=fee,
        total_tolerance_minor=_parse_int(
            section.get("total_tolerance_minor", Defaults.TOTAL_TOLERANCE_MINOR),
            "accounting.total_tolerance_minor",
        ),
        fallback_customer_name=str(
            section.get("fallback_customer_name") or Defaults.FALLBACK_CUSTOMER_NAME
        ),
        default_country=str(section.get("default_country") or Defaults.DEFAULT_COUNTRY),
    )


def _parse_worker(section: dict[str, Any]) -> WorkerConfig:
    worker_count = _parse_int(section.get("worker_count", 1), "worker.worker_count", minimum=1)
    worker_index = _parse_int(section.get("worker_index", 0), "worker.worker_index")
    if worker_index >= worker_count:
        raise ConfigLoadError(
            f"worker.worker_index({worker_index})는 worker_count({worker_count})보다 작아야 합니다"
        )

    return WorkerConfig(
        poll_interval_sec=_parse_int(
            section.get("poll_interval_sec", Defaults.POLL_INTERVAL_SEC),
            "worker.poll_interval_sec",
            minimum=1,
        ),
        sync_interval_sec=_parse_int(
            section.get("sync_interval_sec", Defaults.SYNC_INTERVAL_SEC),
            "worker.sync_interval_sec",
            minimum=1,
        ),
        worker_index=worker_index,
        worker_count=worker_count,
        max_attempts=_parse_int(
            section.get("max_attempts", Defaults.MAX_ATTEMPTS),
            "worker.max_attempts",
            minimum=1,
        ),
    )


def _parse_web(section: dict[str, Any]) -> WebConfig:
    return WebConfig(
        host=str(section.get("host", Defaults.WEB_HOST)),
        port=_parse_int(section.get("port", Defaults.WEB_PORT), "web.port", minimum=1),
    )


class Settings:
    """애플리케이션 설정 (싱글턴 패턴)

    secrets.yaml을 로드하고 관련 설정을 제공
    """

    _instance: "Settings | None" = None
    _config: AppConfig | None = None

    def __new__(cls, secrets_path: Path | None = None) -> "Settings":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, secrets_path: Path | None = None) -> None:
        if self._config is None:
            type(self)._config = load_config(secrets_path)

    @property
    def config(self) -> AppConfig:
        """전체 설정"""
        assert self._config is not None
        return self._config

    @property
    def fiken(self) -> FikenConfig:
        return self.config.fiken

    @property
    def shopify(self) -> ShopifyConfig:
        return self.config.shopify

    @property
    def accounting(self) -> AccountingConfig:
        return self.config.accounting

    @property
    def worker(self) -> WorkerConfig:
        return self.config.worker

    @property
    def webhook_secret(self) -> str:
        """Shopify webhook 서명 키"""
        return self.config.shopify.webhook_secret

    @property
    def db_path(self) -> Path:
        """DB 경로"""
        return self.config.db_path

    @classmethod
    def reset(cls) -> None:
        """싱글턴 인스턴스 초기화 (테스트용)"""
        cls._instance = None
        cls._config = None


def get_settings(secrets_path: Path | None = None) -> Settings:
    """Settings 인스턴스 반환

    Args:
        secrets_path: secrets.yaml 경로 (None이면 기본 경로 사용)

    Returns:
        Settings 싱글턴 인스턴스
    """
    return Settings(secrets_path)
