class OrderStatus:
    """주문 상태 상수"""
    NOTPAID = 'NOTPAID'
    PAID = 'PAID'
    COMPLETED = 'COMPLETED'
    REFUNDED = 'REFUNDED'

    # 전체 목록 (순서 보장, 진행 순서와 동일)
    ALL = [NOTPAID, PAID, COMPLETED, REFUNDED]

    # 판매량/매출에 집계되는 유효 주문
    EFFECTIVE = [PAID, COMPLETED]

    # 통계 대상 (전액 환불 주문은 원가 손실로 이익에만 반영)
    COUNTED = [PAID, COMPLETED, REFUNDED]

    # 부분 환불 가능 상태
    PARTIAL_REFUNDABLE = [PAID, COMPLETED]

    # 대기 중 주문 (주문 통계 화면)
    PENDING = [NOTPAID, PAID]


# 화면 표시용 상태 라벨/색상 (수명주기 로직과 분리된 조회 테이블)
ORDER_STATUS_DISPLAY = {
    OrderStatus.NOTPAID: {'label': '미결제', 'color': 'red'},
    OrderStatus.PAID: {'label': '결제완료', 'color': 'blue'},
    OrderStatus.COMPLETED: {'label': '완료', 'color': 'green'},
    OrderStatus.REFUNDED: {'label': '환불', 'color': 'gray'},
}


class ErrorCode:
    """API 응답 코드 상수"""
    SUCCESS = 10000

    BUSINESS_FAILED = 20000
    INVALID_INPUT = 20001
    RESOURCE_NOT_FOUND = 20002
    DATA_STILL_REFERENCED = 20003
    DATA_EXIST = 20004
    INVALID_STATE = 20005

    UNAUTHORIZED = 30000
    FORBIDDEN = 30001
    TOKEN_EXPIRED = 30002

    SYSTEM_ERROR = 50000
    UNKNOWN_ERROR = 50001


class SettingKey:
    """전역 설정 키"""
    SENSITIVE = 'sensitive'


class SortOrder:
    ASC = 'asc'
    DESC = 'desc'


# 동일 이름 공동구매 병합 상세의 구매 빈도 구간 (공동구매 개수 기준)
FREQUENCY_BUCKET_RULES = [
    (20, [(1, 1), (2, 2), (3, 3), (4, 4), (5, 9), (10, 19), (20, 39), (40, None)]),
    (10, [(1, 1), (2, 2), (3, 3), (4, 4), (5, 9), (10, None)]),
    (5, [(1, 1), (2, 2), (3, 3), (4, 4), (5, None)]),
]

ALLOWED_IMAGE_EXTENSIONS = {'.jpg', '.jpeg', '.png', '.gif', '.webp', '.bmp'}
