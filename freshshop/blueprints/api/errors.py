from flask import current_app
from werkzeug.exceptions import HTTPException
from freshshop.extensions import db
from freshshop.constants import ErrorCode
from freshshop.exceptions import BusinessError
from . import api_bp
from .utils import error

# app_errorhandler 는 블루프린트뿐 아니라 앱 전체의 에러를 잡음

HTTP_ERROR_CODES = {
    400: ErrorCode.INVALID_INPUT,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.INVALID_INPUT,
    413: ErrorCode.INVALID_INPUT,
}


@api_bp.app_errorhandler(BusinessError)
def business_error(e):
    db.session.rollback()
    current_app.logger.info(f"Business error {e.code}: {e.message}")
    return error(e.code, e.message)


@api_bp.app_errorhandler(HTTPException)
def http_error(e):
    code = HTTP_ERROR_CODES.get(e.code, ErrorCode.UNKNOWN_ERROR)
    if e.code == 413:
        return error(code, '업로드 파일 크기가 허용 범위를 초과했습니다.')
    return error(code, e.description or e.name)


@api_bp.app_errorhandler(Exception)
def unhandled_error(e):
    db.session.rollback()
    current_app.logger.exception(f"Unhandled error: {e}")
    return error(ErrorCode.SYSTEM_ERROR, '서버 내부 오류가 발생했습니다.')
