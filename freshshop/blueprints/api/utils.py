from flask import jsonify, request, current_app
from freshshop.constants import ErrorCode
from freshshop.exceptions import ValidationError
from freshshop.services.setting_service import SettingService
from freshshop.utils import parse_page_params

PROFIT_FIELDS = ('profit', 'profit_margin')


def success(data=None, msg='success'):
    return jsonify({'code': ErrorCode.SUCCESS, 'msg': msg, 'data': data})


def error(code, msg, data=None):
    # 오류도 HTTP 200 으로 내려주고 code 로 구분
    return jsonify({'code': code, 'msg': msg, 'data': data})


def get_json():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('요청 본문은 JSON 객체여야 합니다.')
    return data


def require_id(data, key='id'):
    value = data.get(key)
    if isinstance(value, bool):
        raise ValidationError(f'{key} 값이 올바르지 않습니다.')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{key} 값이 올바르지 않습니다.')


def page_params(data):
    return parse_page_params(data, current_app.config.get('DEFAULT_PAGE_SIZE', 10))


def _is_profit_key(key):
    return key in PROFIT_FIELDS or key.endswith('_profit') or key.startswith('profit_')


def _mask(value):
    if isinstance(value, dict):
        return {k: (None if _is_profit_key(k) and not isinstance(v, (dict, list)) else _mask(v))
                for k, v in value.items()}
    if isinstance(value, list):
        return [_mask(v) for v in value]
    return value


def mask_profit(data):
    """전역 설정 sensitive 가 켜져 있으면 이익 관련 숫자를 null 로 바꿈"""
    if not SettingService.is_sensitive():
        return data
    return _mask(data)
