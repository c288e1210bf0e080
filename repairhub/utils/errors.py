class RepairHubError(Exception):
    """서비스 경계에서 사용하는 도메인 예외의 최상위 클래스"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(RepairHubError):
    status_code = 404


class StaleRequestError(RepairHubError):
    """읽은 뒤 쓰기 전에 레코드가 사라졌거나 상태가 바뀐 경우"""

    status_code = 409

    def __init__(self, message: str = "The repair request changed while you were working on it. Please refresh and try again."):
        super().__init__(message)


class InvalidTransitionError(RepairHubError):
    status_code = 409


class PermissionDeniedError(RepairHubError):
    status_code = 403


class ValidationError(RepairHubError):
    status_code = 400


class ExternalServiceError(RepairHubError):
    status_code = 502


class DiagnosticGenerationError(ExternalServiceError):
    pass
