import math
from datetime import datetime, date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from freshshop.exceptions import ValidationError


def parse_date(value):
    """'YYYY-MM-DD' 또는 ISO datetime 문자열을 date로 변환. 변환 불가 시 None"""
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).split('T')[0], '%Y-%m-%d').date()
    except ValueError:
        return None


def parse_date_range(data):
    """start_date/end_date 쌍을 검증. 둘 다 없으면 (None, None) 으로 전체 기간"""
    raw_start = data.get('start_date')
    raw_end = data.get('end_date')
    start_date = parse_date(raw_start)
    end_date = parse_date(raw_end)
    if (raw_start and not start_date) or (raw_end and not end_date):
        raise ValidationError('날짜 형식은 YYYY-MM-DD 이어야 합니다.')
    if bool(start_date) != bool(end_date):
        raise ValidationError('시작일과 종료일은 함께 지정해야 합니다.')
    if start_date and start_date > end_date:
        raise ValidationError('시작일이 종료일보다 늦을 수 없습니다.')
    return start_date, end_date


def iso(value):
    if value is None:
        return None
    return value.isoformat()


MONEY_STEP = Decimal('0.01')


def to_money(value):
    """금액을 소수점 둘째 자리 Decimal 로 변환. 변환 불가 시 None"""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    if not amount.is_finite():
        return None
    return amount.quantize(MONEY_STEP, rounding=ROUND_HALF_UP)


def money_value(value):
    """응답용 금액 표현 (Decimal -> float)"""
    return float(value or 0)


def parse_id_list(values):
    if not values:
        return []
    result = []
    for v in values:
        try:
            result.append(int(v))
        except (TypeError, ValueError):
            continue
    return result


def parse_page_params(data, default_page_size=10):
    try:
        page = max(int(data.get('page') or 1), 1)
    except (TypeError, ValueError):
        page = 1
    try:
        page_size = max(int(data.get('page_size') or default_page_size), 1)
    except (TypeError, ValueError):
        page_size = default_page_size
    return page, page_size


def page_result(items, page, page_size, total_count):
    return {
        'data': items,
        'page': page,
        'page_size': page_size,
        'total_count': total_count,
        'total_pages': math.ceil(total_count / page_size) if page_size else 0,
    }


def paginate_list(rows, page, page_size):
    """메모리 상에서 계산된 집계 행 목록을 페이지 단위로 자름"""
    skip = (page - 1) * page_size
    return page_result(rows[skip:skip + page_size], page, page_size, len(rows))


def sort_rows(rows, sort_field, sort_order, allowed_fields, default_field):
    field = sort_field if sort_field in allowed_fields else default_field
    # 안정 정렬: 동일 값은 생성 순서 유지
    return sorted(rows, key=lambda r: r[field] or 0, reverse=(sort_order != 'asc'))


def clean_str(value):
    """앞뒤 공백 제거. 빈 문자열은 None"""
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def parse_image_list(values):
    if values is None:
        return []
    if not isinstance(values, list):
        raise ValidationError('images 는 파일명 목록이어야 합니다.')
    return [str(v) for v in values if v]
