"""LiveMetro 예외 계층."""


class LiveMetroError(Exception):
    """모든 도메인 예외의 기본 클래스. message는 사용자에게 그대로 노출된다."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LiveMetroError):
    """잘못된 입력 (시간 형식, 필수 필드 누락 등)"""

    status_code = 400


class NotFoundError(LiveMetroError):
    """기록/사용자를 찾을 수 없음"""

    status_code = 404


class RemoteUnavailable(LiveMetroError):
    """문서 저장소 또는 외부 API에 연결할 수 없음"""

    status_code = 503
