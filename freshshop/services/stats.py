"""주문 단위 매출/이익/환불 계산식과 집계기.

모든 통계 화면(공급처, 공동구매, 병합 공동구매, 상품, 상품유형, 고객, 주소)이
동일한 계산식을 쓰도록 이 모듈에 모아 둔다. 금액은 모두 Decimal 로 계산한다.

- 집계 대상 주문: PAID, COMPLETED, REFUNDED (NOTPAID 는 항상 제외)
- 유효 주문: PAID, COMPLETED (주문 수, 고객 수 집계 기준)
- 매출: 유효 주문은 단가*수량-부분환불액, 전액 환불 주문은 0
- 이익: 유효 주문은 (단가-원가)*수량-부분환불액, 전액 환불 주문은 -(원가*수량)
- 환불액: 유효 주문은 부분환불액, 전액 환불 주문은 단가*수량
"""
from decimal import Decimal
from freshshop.constants import OrderStatus, FREQUENCY_BUCKET_RULES
from freshshop.utils import to_money

ZERO = Decimal('0')


def money(value):
    return to_money(value) or ZERO


def order_gross(unit, quantity):
    return money(unit.price) * quantity


def order_revenue(status, unit, quantity, partial_refund_amount=0):
    if status == OrderStatus.REFUNDED:
        return ZERO
    if status not in OrderStatus.EFFECTIVE:
        return ZERO
    return money(unit.price) * quantity - money(partial_refund_amount)


def order_profit(status, unit, quantity, partial_refund_amount=0):
    if status == OrderStatus.REFUNDED:
        return -(money(unit.cost_price) * quantity)
    if status not in OrderStatus.EFFECTIVE:
        return ZERO
    return (money(unit.price) - money(unit.cost_price)) * quantity - money(partial_refund_amount)


def order_refund_amount(status, unit, quantity, partial_refund_amount=0):
    # 전액 환불 주문은 원 판매액만 반영하고 기존 부분환불액은 중복 합산하지 않음
    if status == OrderStatus.REFUNDED:
        return order_gross(unit, quantity)
    if status not in OrderStatus.EFFECTIVE:
        return ZERO
    return money(partial_refund_amount)


def profit_margin(total_profit, total_revenue):
    if not total_revenue:
        return 0
    return to_money(Decimal(total_profit) / Decimal(total_revenue) * 100)


def ratio(part, whole):
    if not whole:
        return 0
    return part / whole * 100


def safe_div(a, b):
    if not b:
        return 0
    return a / b


class StatsAccumulator:
    """주문을 하나씩 받아 합계를 누적하는 집계기.

    order 객체는 status, quantity, partial_refund_amount, customer_id, unit 속성을
    가져야 한다. track_regions=True 이면 order.customer.customer_address 로
    지역별 고객 수를 함께 집계한다.
    """

    def __init__(self, track_regions=False):
        self.track_regions = track_regions
        self.total_revenue = ZERO
        self.total_profit = ZERO
        self.order_count = 0
        self.total_refund_amount = ZERO
        self.total_partial_refund_amount = ZERO
        self.refunded_order_count = 0
        self.partial_refund_order_count = 0
        self.customer_order_counts = {}
        self.customer_revenue = {}
        self._regions = {}

    def add(self, order, unit=None):
        unit = unit or order.unit
        if unit is None or order.status not in OrderStatus.COUNTED:
            return False

        partial = money(order.partial_refund_amount)
        revenue = order_revenue(order.status, unit, order.quantity, partial)
        profit = order_profit(order.status, unit, order.quantity, partial)

        self.total_revenue += revenue
        self.total_profit += profit

        if order.status == OrderStatus.REFUNDED:
            self.total_refund_amount += order_gross(unit, order.quantity)
            self.refunded_order_count += 1
            return True

        if partial > 0:
            self.total_refund_amount += partial
            self.total_partial_refund_amount += partial
            self.partial_refund_order_count += 1

        self.order_count += 1
        cid = order.customer_id
        self.customer_order_counts[cid] = self.customer_order_counts.get(cid, 0) + 1
        self.customer_revenue[cid] = self.customer_revenue.get(cid, ZERO) + revenue

        if self.track_regions:
            address = order.customer.customer_address if order.customer else None
            if address is not None:
                region = self._regions.setdefault(address.id, {
                    'address_id': address.id,
                    'address_name': address.name,
                    'customer_ids': set(),
                    'order_count': 0,
                    'total_revenue': ZERO,
                })
                region['customer_ids'].add(cid)
                region['order_count'] += 1
                region['total_revenue'] += revenue
        return True

    @property
    def unique_customer_count(self):
        return len(self.customer_order_counts)

    @property
    def profit_margin(self):
        return profit_margin(self.total_profit, self.total_revenue)

    @property
    def average_customer_order_value(self):
        return to_money(safe_div(self.total_revenue, self.unique_customer_count))

    @property
    def multi_purchase_customer_count(self):
        return sum(1 for count in self.customer_order_counts.values() if count >= 2)

    @property
    def multi_purchase_customer_ratio(self):
        return ratio(self.multi_purchase_customer_count, self.unique_customer_count)

    @property
    def total_refund_order_count(self):
        return self.refunded_order_count + self.partial_refund_order_count

    def purchase_frequency(self):
        """{구매 횟수: 고객 수} 히스토그램"""
        histogram = {}
        for count in self.customer_order_counts.values():
            histogram[count] = histogram.get(count, 0) + 1
        return histogram

    def regional_sales(self):
        rows = [{
            'address_id': r['address_id'],
            'address_name': r['address_name'],
            'customer_count': len(r['customer_ids']),
            'order_count': r['order_count'],
            'total_revenue': r['total_revenue'],
        } for r in self._regions.values()]
        return sorted(rows, key=lambda r: r['customer_count'], reverse=True)

    def summary(self):
        return {
            'total_revenue': self.total_revenue,
            'total_profit': self.total_profit,
            'profit_margin': self.profit_margin,
            'order_count': self.order_count,
            'total_refund_amount': self.total_refund_amount,
            'total_partial_refund_amount': self.total_partial_refund_amount,
            'refunded_order_count': self.refunded_order_count,
            'partial_refund_order_count': self.partial_refund_order_count,
            'total_refund_order_count': self.total_refund_order_count,
            'unique_customer_count': self.unique_customer_count,
        }

    def customer_analysis(self):
        return {
            'average_customer_order_value': self.average_customer_order_value,
            'multi_purchase_customer_count': self.multi_purchase_customer_count,
            'multi_purchase_customer_ratio': self.multi_purchase_customer_ratio,
        }


def frequency_buckets(group_buy_count):
    for threshold, buckets in FREQUENCY_BUCKET_RULES:
        if group_buy_count >= threshold:
            return buckets
    return [(i, i) for i in range(1, max(1, group_buy_count) + 1)]


def bucket_purchase_frequency(histogram, group_buy_count):
    """구매 횟수 히스토그램을 공동구매 개수에 맞춘 구간으로 묶음. 빈 구간은 제외"""
    result = []
    for low, high in frequency_buckets(group_buy_count):
        total = 0
        for purchase_count, customers in histogram.items():
            if purchase_count >= low and (high is None or purchase_count <= high):
                total += customers
        if total > 0:
            result.append({'min_frequency': low, 'max_frequency': high, 'count': total})
    return result


def histogram_rows(histogram):
    return [{'purchase_count': k, 'customer_count': v} for k, v in sorted(histogram.items())]
