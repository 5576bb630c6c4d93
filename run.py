"""
LiveMetro API 서버 진입점
실행: python run.py
접속: http://localhost:8000/docs
"""
import os
import sys
from pathlib import Path

import uvicorn
from dotenv import load_dotenv


def check_dependencies():
    """필수 패키지 확인"""
    required = ["fastapi", "uvicorn", "pandas", "numpy", "pydantic"]
    missing = []
    for pkg in required:
        try:
            __import__(pkg)
        except ImportError:
            missing.append(pkg)

    if missing:
        print(f"[ERROR] 필수 패키지가 설치되지 않았습니다: {', '.join(missing)}")
        print("다음 명령어로 설치하세요:")
        print("  pip install -e .")
        sys.exit(1)


def check_config():
    """외부 연동 설정 확인"""
    if not os.getenv("SEOUL_SUBWAY_API_KEY"):
        print("[WARN]  SEOUL_SUBWAY_API_KEY가 없습니다. 실시간 지연 감지가 동작하지 않습니다.")
    store = os.getenv("LIVEMETRO_STORE", "memory").lower()
    if store == "redis" and not os.getenv("REDIS_URL"):
        print("[WARN]  LIVEMETRO_STORE=redis 이지만 REDIS_URL이 없습니다.")
    if store == "memory":
        print("[WARN]  인메모리 저장소를 사용합니다. 서버를 재시작하면 데이터가 사라집니다.")
    print()


def main():
    """메인 실행 함수"""
    print("=" * 60)
    print("LiveMetro - 통근 패턴 학습 & 스마트 알림")
    print("=" * 60)
    print()

    check_dependencies()

    # 설정(.env)을 먼저 로드해야 api.app이 읽을 수 있다
    load_dotenv()
    check_config()

    host = os.getenv("HOST", "127.0.0.1")
    port = int(os.getenv("PORT", "8000"))
    reload = os.getenv("RELOAD", "True").lower() == "true"

    url = f"http://{host}:{port}"

    print(f"[*] 서버 주소: {url}")
    print(f"[*] API 문서: {url}/docs")
    print(f"[*] 프로젝트 디렉토리: {Path.cwd()}")
    print(f"[*] 자동 재시작: {'활성화' if reload else '비활성화'}")
    print()
    print("서버를 중지하려면 Ctrl+C를 누르세요.")
    print("=" * 60)
    print()

    try:
        uvicorn.run(
            "api.app:app",
            host=host,
            port=port,
            reload=reload,
            reload_dirs=["api", "livemetro"],
            log_level=os.getenv("LOG_LEVEL", "info").lower(),
        )
    except KeyboardInterrupt:
        print("\n\n[*] 서버를 종료합니다.")


if __name__ == "__main__":
    main()
