from decimal import Decimal
import unittest
from types import SimpleNamespace
from freshshop.constants import OrderStatus
from freshshop.services.stats import (
    StatsAccumulator, order_revenue, order_profit, order_refund_amount,
    profit_margin, bucket_purchase_frequency, frequency_buckets
)


def _unit(price=100, cost_price=60):
    return SimpleNamespace(price=price, cost_price=cost_price)


def _order(status, quantity=1, partial=0, customer_id=1, unit=None):
    return SimpleNamespace(
        status=status,
        quantity=quantity,
        partial_refund_amount=partial,
        customer_id=customer_id,
        customer=None,
        unit=unit if unit is not None else _unit(),
    )


class OrderFormulaTestCase(unittest.TestCase):
    def test_effective_order(self):
        unit = _unit()
        self.assertEqual(order_revenue(OrderStatus.PAID, unit, 2, 50), 150)
        self.assertEqual(order_profit(OrderStatus.COMPLETED, unit, 2, 50), 30)
        self.assertEqual(order_refund_amount(OrderStatus.PAID, unit, 2, 50), 50)

    def test_refunded_order(self):
        """전액 환불 주문은 매출 0, 이익은 원가만큼 손실, 환불액은 원 판매액"""
        unit = _unit()
        self.assertEqual(order_revenue(OrderStatus.REFUNDED, unit, 3, 40), 0)
        self.assertEqual(order_profit(OrderStatus.REFUNDED, unit, 3, 40), -180)
        self.assertEqual(order_refund_amount(OrderStatus.REFUNDED, unit, 3, 40), 300)

    def test_notpaid_contributes_nothing(self):
        unit = _unit()
        self.assertEqual(order_revenue(OrderStatus.NOTPAID, unit, 3), 0)
        self.assertEqual(order_profit(OrderStatus.NOTPAID, unit, 3), 0)

    def test_profit_margin_zero_revenue(self):
        self.assertEqual(profit_margin(-60, 0), 0)
        self.assertEqual(profit_margin(25, 100), 25)


class StatsAccumulatorTestCase(unittest.TestCase):
    def test_empty_accumulator_is_zero(self):
        acc = StatsAccumulator()
        summary = acc.summary()
        self.assertTrue(all(v == 0 for v in summary.values()))
        self.assertEqual(acc.customer_analysis(), {
            'average_customer_order_value': 0,
            'multi_purchase_customer_count': 0,
            'multi_purchase_customer_ratio': 0,
        })
        self.assertEqual(acc.purchase_frequency(), {})
        self.assertEqual(acc.regional_sales(), [])

    def test_mixed_orders(self):
        acc = StatsAccumulator()
        acc.add(_order(OrderStatus.PAID, quantity=2, customer_id=1))
        acc.add(_order(OrderStatus.COMPLETED, quantity=1, partial=20, customer_id=1))
        acc.add(_order(OrderStatus.REFUNDED, quantity=1, customer_id=2))
        acc.add(_order(OrderStatus.NOTPAID, quantity=5, customer_id=3))

        self.assertEqual(acc.order_count, 2)
        self.assertEqual(acc.total_revenue, 200 + 80)
        self.assertEqual(acc.total_profit, 80 + 20 - 60)
        self.assertEqual(acc.total_refund_amount, 20 + 100)
        self.assertEqual(acc.refunded_order_count, 1)
        self.assertEqual(acc.partial_refund_order_count, 1)
        self.assertEqual(acc.total_refund_order_count, 2)
        self.assertEqual(acc.unique_customer_count, 1)
        self.assertEqual(acc.multi_purchase_customer_count, 1)
        self.assertEqual(acc.multi_purchase_customer_ratio, 100)
        self.assertEqual(acc.purchase_frequency(), {2: 1})

    def test_order_without_unit_is_skipped(self):
        acc = StatsAccumulator()
        order = _order(OrderStatus.PAID)
        order.unit = None
        self.assertFalse(acc.add(order))
        self.assertEqual(acc.order_count, 0)


class FrequencyBucketTestCase(unittest.TestCase):
    def test_small_scope_uses_exact_counts(self):
        self.assertEqual(frequency_buckets(3), [(1, 1), (2, 2), (3, 3)])

    def test_buckets_by_group_buy_count(self):
        histogram = {1: 4, 2: 2, 6: 1, 12: 3}
        result = bucket_purchase_frequency(histogram, 10)
        self.assertEqual(result, [
            {'min_frequency': 1, 'max_frequency': 1, 'count': 4},
            {'min_frequency': 2, 'max_frequency': 2, 'count': 2},
            {'min_frequency': 5, 'max_frequency': 9, 'count': 1},
            {'min_frequency': 10, 'max_frequency': None, 'count': 3},
        ])

    def test_large_scope_buckets(self):
        result = bucket_purchase_frequency({45: 1, 25: 2}, 20)
        self.assertEqual(result, [
            {'min_frequency': 20, 'max_frequency': 39, 'count': 2},
            {'min_frequency': 40, 'max_frequency': None, 'count': 1},
        ])

    def test_float_prices_accumulate_exactly(self):
        acc = StatsAccumulator()
        for _ in range(3):
            acc.add(_order(OrderStatus.PAID, unit=_unit(price=0.1, cost_price=0.05)))
        self.assertEqual(acc.total_revenue, Decimal('0.30'))
        self.assertEqual(acc.total_profit, Decimal('0.15'))
