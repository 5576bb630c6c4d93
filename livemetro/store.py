"""
Document store backends for LiveMetro.

- InMemoryStore (기본): 단일 워커/테스트용, 별도 의존성 없음
- SqliteStore: 로컬 파일 영속화, LIVEMETRO_DB_PATH 경로 사용
- RedisStore (선택): 다중 워커 배포용, REDIS_URL 설정 시 활성화

문서는 (collection, doc_id)로 주소를 지정하는 JSON dict이다.
collection은 "commuteLogs/{user_id}/logs" 같은 경로 문자열이다.
동시 쓰기는 마지막 쓰기가 이긴다 (잠금 없음).
"""
import copy
import json
import logging
import sqlite3
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Protocol

from livemetro.errors import RemoteUnavailable

logger = logging.getLogger(__name__)


class DocumentStore(Protocol):
    """Key/value document store protocol."""

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        ...

    async def delete(self, collection: str, doc_id: str) -> bool:
        """삭제했으면 True, 문서가 없었으면 False."""
        ...

    async def list(self, collection: str) -> Dict[str, dict]:
        ...

    async def close(self) -> None:
        ...


class InMemoryStore:
    """프로세스 메모리 문서 저장소. 반환 값은 항상 복사본이다."""

    def __init__(self) -> None:
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            return copy.deepcopy(doc) if doc is not None else None

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        with self._lock:
            self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            docs = self._collections.get(collection, {})
            return docs.pop(doc_id, None) is not None

    async def list(self, collection: str) -> Dict[str, dict]:
        with self._lock:
            return copy.deepcopy(self._collections.get(collection, {}))

    async def close(self) -> None:
        return None


class SqliteStore:
    """
    SQLite 기반 문서 저장소.
    documents(collection, doc_id) 기본키 테이블 하나에 JSON 문자열로 저장한다.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = Path(db_path)
        self._initialized = False

    def _init_db(self) -> None:
        """Create table/indexes once."""
        if self._initialized:
            return
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.db_path))
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS documents (
                    collection TEXT NOT NULL,
                    doc_id TEXT NOT NULL,
                    data TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (collection, doc_id)
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)")
            conn.commit()
        finally:
            conn.close()
        self._initialized = True

    def _get_connection(self) -> sqlite3.Connection:
        try:
            self._init_db()
            conn = sqlite3.connect(str(self.db_path))
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"저장소에 연결할 수 없습니다: {e}") from e
        conn.row_factory = sqlite3.Row
        return conn

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT data FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            ).fetchone()
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"문서 조회 실패: {e}") from e
        finally:
            conn.close()
        return json.loads(row["data"]) if row else None

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                INSERT INTO documents (collection, doc_id, data, updated_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(collection, doc_id)
                DO UPDATE SET data = excluded.data, updated_at = excluded.updated_at
                """,
                (collection, doc_id, json.dumps(data, ensure_ascii=False), datetime.now().isoformat()),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"문서 저장 실패: {e}") from e
        finally:
            conn.close()

    async def delete(self, collection: str, doc_id: str) -> bool:
        conn = self._get_connection()
        try:
            cursor = conn.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, doc_id),
            )
            conn.commit()
            return cursor.rowcount > 0
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"문서 삭제 실패: {e}") from e
        finally:
            conn.close()

    async def list(self, collection: str) -> Dict[str, dict]:
        conn = self._get_connection()
        try:
            rows = conn.execute(
                "SELECT doc_id, data FROM documents WHERE collection = ?",
                (collection,),
            ).fetchall()
        except sqlite3.Error as e:
            raise RemoteUnavailable(f"문서 목록 조회 실패: {e}") from e
        finally:
            conn.close()
        return {r["doc_id"]: json.loads(r["data"]) for r in rows}

    async def close(self) -> None:
        return None


class RedisStore:
    """
    Redis 기반 문서 저장소.
    컬렉션마다 Hash 하나를 사용한다 (field=doc_id, value=JSON).
    REDIS_URL이 설정되고 redis 패키지가 설치된 경우에만 사용한다.
    """

    def __init__(self, redis_url: str, prefix: str = "livemetro") -> None:
        try:
            import redis.asyncio as aioredis  # type: ignore[import-untyped]
        except ImportError:
            raise ImportError(
                "Redis 저장소에 redis 패키지가 필요합니다. "
                "설치: pip install 'livemetro[redis]'"
            )
        from redis.exceptions import RedisError  # type: ignore[import-untyped]

        self._redis = aioredis.from_url(redis_url, decode_responses=True)
        self._errors = RedisError
        self.prefix = prefix
        sanitized = redis_url.split("@")[-1] if "@" in redis_url else redis_url
        logger.info("Document store: Redis backend 활성화 (%s)", sanitized)

    def _key(self, collection: str) -> str:
        return f"{self.prefix}:{collection}"

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        try:
            raw = await self._redis.hget(self._key(collection), doc_id)
        except self._errors as e:
            raise RemoteUnavailable(f"문서 조회 실패: {e}") from e
        return json.loads(raw) if raw else None

    async def set(self, collection: str, doc_id: str, data: dict) -> None:
        try:
            await self._redis.hset(self._key(collection), doc_id, json.dumps(data, ensure_ascii=False))
        except self._errors as e:
            raise RemoteUnavailable(f"문서 저장 실패: {e}") from e

    async def delete(self, collection: str, doc_id: str) -> bool:
        try:
            removed = await self._redis.hdel(self._key(collection), doc_id)
        except self._errors as e:
            raise RemoteUnavailable(f"문서 삭제 실패: {e}") from e
        return removed > 0

    async def list(self, collection: str) -> Dict[str, dict]:
        try:
            raw = await self._redis.hgetall(self._key(collection))
        except self._errors as e:
            raise RemoteUnavailable(f"문서 목록 조회 실패: {e}") from e
        return {doc_id: json.loads(value) for doc_id, value in raw.items()}

    async def close(self) -> None:
        await self._redis.aclose()


def create_store(kind: str = "memory", db_path: str = "data/livemetro.db",
                 redis_url: Optional[str] = None) -> DocumentStore:
    """
    Document store 팩토리.
    kind가 redis이면 Redis, sqlite이면 SQLite, 아니면 인메모리 저장소를 반환한다.
    """
    if kind == "redis":
        if not redis_url:
            raise ValueError("LIVEMETRO_STORE=redis 에는 REDIS_URL 설정이 필요합니다.")
        return RedisStore(redis_url)  # type: ignore[return-value]
    if kind == "sqlite":
        logger.info("Document store: SQLite backend (%s)", db_path)
        return SqliteStore(db_path)  # type: ignore[return-value]
    return InMemoryStore()  # type: ignore[return-value]
