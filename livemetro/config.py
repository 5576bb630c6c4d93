"""
환경 변수 기반 설정.
run.py가 .env를 먼저 로드하므로 여기서는 os.getenv만 사용한다.
"""
import os
from dataclasses import dataclass, field
from typing import List, Optional


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class Settings:
    store: str = "memory"                      # memory | sqlite | redis
    db_path: str = "data/livemetro.db"
    redis_url: Optional[str] = None
    seoul_api_key: str = ""
    seoul_api_base_url: str = "http://swopenapi.seoul.go.kr/api/subway"
    delay_polling: bool = False
    delay_poll_interval: float = 60.0          # 초, 최소 30
    rate_limit_per_minute: int = 60
    allowed_origins: List[str] = field(default_factory=lambda: [
        "http://localhost:8000", "http://127.0.0.1:8000",
    ])

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            store=os.getenv("LIVEMETRO_STORE", "memory").lower(),
            db_path=os.getenv("LIVEMETRO_DB_PATH", "data/livemetro.db"),
            redis_url=os.getenv("REDIS_URL") or None,
            seoul_api_key=os.getenv("SEOUL_SUBWAY_API_KEY", ""),
            seoul_api_base_url=os.getenv(
                "SEOUL_SUBWAY_API_BASE_URL", "http://swopenapi.seoul.go.kr/api/subway"
            ),
            delay_polling=_env_bool("DELAY_POLLING", "False"),
            delay_poll_interval=float(os.getenv("DELAY_POLL_INTERVAL", "60")),
            rate_limit_per_minute=int(os.getenv("RATE_LIMIT_PER_MINUTE", "60")),
            allowed_origins=os.getenv(
                "ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000"
            ).split(","),
        )
