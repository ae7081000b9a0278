from freshshop.constants import ErrorCode


class BusinessError(Exception):
    """서비스 계층 업무 오류. API 계층에서 {code, msg, data} 응답으로 변환됨"""
    code = ErrorCode.BUSINESS_FAILED
    default_message = '업무 처리에 실패했습니다.'

    def __init__(self, message=None, code=None):
        self.message = message or self.default_message
        if code is not None:
            self.code = code
        super().__init__(self.message)


class ValidationError(BusinessError):
    code = ErrorCode.INVALID_INPUT
    default_message = '입력값이 올바르지 않습니다.'


class InvalidStateError(BusinessError):
    code = ErrorCode.INVALID_STATE
    default_message = '현재 상태에서는 처리할 수 없습니다.'


class NotFoundError(BusinessError):
    code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = '데이터를 찾을 수 없습니다.'


class DataExistError(BusinessError):
    code = ErrorCode.DATA_EXIST
    default_message = '이미 존재하는 데이터입니다.'


class DataStillReferencedError(BusinessError):
    code = ErrorCode.DATA_STILL_REFERENCED
    default_message = '참조 중인 데이터가 있어 삭제할 수 없습니다.'


class SystemFailureError(BusinessError):
    code = ErrorCode.SYSTEM_ERROR
    default_message = '서버 내부 오류가 발생했습니다.'
