import io
from freshshop.extensions import db, cache
from freshshop.constants import ErrorCode, OrderStatus
from freshshop.models import User, Order
from freshshop.services.image_service import DEDUP_LOCK_KEY
from tests.base import BaseTestCase


class EnvelopeTestCase(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.group_buy = self.make_group_buy()
        self.customer = self.make_customer()

    def test_success_envelope(self):
        order = self.make_order(self.group_buy, self.customer, status=OrderStatus.NOTPAID)
        body = self.post_json('/api/order/advance', {'id': order.id})
        self.assertEqual(body['code'], ErrorCode.SUCCESS)
        self.assertEqual(body['data']['status'], OrderStatus.PAID)

    def test_business_errors_map_to_codes(self):
        order = self.make_order(self.group_buy, self.customer, status=OrderStatus.REFUNDED)
        self.assertEqual(self.post_json('/api/order/advance', {'id': order.id})['code'], ErrorCode.INVALID_STATE)
        self.assertEqual(self.post_json('/api/order/detail', {'id': 9999})['code'], ErrorCode.RESOURCE_NOT_FOUND)
        self.assertEqual(self.post_json('/api/order/detail', {'id': 'abc'})['code'], ErrorCode.INVALID_INPUT)

        body = self.post_json('/api/analysis/count', {'start_date': '2024-03-10', 'end_date': '2024-03-01'})
        self.assertEqual(body['code'], ErrorCode.INVALID_INPUT)
        self.assertIsNone(body['data'])

    def test_bad_date_range_is_invalid_input(self):
        for url in ('/api/analysis/count', '/api/analysis/supplier_overview', '/api/analysis/customer_overview'):
            for payload in ({'start_date': '2024-13-01', 'end_date': '2024-12-31'}, {'start_date': '2024-01-01'}):
                body = self.post_json(url, payload)
                self.assertEqual(body['code'], ErrorCode.INVALID_INPUT, (url, payload))

    def test_unknown_route_uses_envelope(self):
        response = self.client.post('/api/nothing/here', json={})
        self.assertEqual(response.get_json()['code'], ErrorCode.RESOURCE_NOT_FOUND)

    def test_batch_create_reports_failures(self):
        unit_id = self.group_buy.units[0].id
        body = self.post_json('/api/order/batch_create', {'orders': [
            {'group_buy_id': self.group_buy.id, 'unit_id': unit_id, 'customer_id': self.customer.id, 'quantity': 1},
            {'group_buy_id': self.group_buy.id, 'unit_id': unit_id, 'customer_id': self.customer.id, 'quantity': 0},
        ]})
        self.assertEqual(body['code'], ErrorCode.SUCCESS)
        self.assertEqual(body['data']['success_count'], 1)
        self.assertEqual(body['data']['fail_count'], 1)
        self.assertEqual(body['data']['success_orders'][0]['quantity'], 1)

        empty = self.post_json('/api/order/batch_create', {'orders': []})
        self.assertEqual(empty['code'], ErrorCode.INVALID_INPUT)

    def test_health(self):
        response = self.client.get('/health')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()['status'], 'ok')


class ProfitMaskTestCase(BaseTestCase):
    def test_sensitive_setting_hides_profit(self):
        gb = self.make_group_buy()
        self.make_order(gb, self.make_customer(), quantity=2)

        visible = self.post_json('/api/analysis/supplier_overview', {})['data']['data'][0]
        self.assertEqual(visible['total_profit'], 80)

        self.post_json('/api/global_setting/upsert', {'key': 'sensitive', 'value': {'sensitive': True}})
        masked = self.post_json('/api/analysis/supplier_overview', {})['data']['data'][0]
        self.assertIsNone(masked['total_profit'])
        self.assertIsNone(masked['profit_margin'])
        self.assertEqual(masked['total_revenue'], 200)

        detail = self.post_json('/api/group_buy/detail', {'id': gb.id})['data']
        self.assertIsNone(detail['total_profit'])
        self.assertIsNone(detail['unit_stats'][0]['net_profit'])
        self.assertEqual(detail['unit_stats'][0]['net_sales'], 200)


class OrderFileTestCase(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.group_buy = self.make_group_buy()
        self.customer = self.make_customer()

    def test_export_returns_xlsx(self):
        self.make_order(self.group_buy, self.customer, quantity=3)
        response = self.client.post('/api/order/export', json={})
        self.assertEqual(response.status_code, 200)
        self.assertIn('spreadsheetml', response.mimetype)
        self.assertTrue(response.data.startswith(b'PK'))

    def test_import_csv(self):
        unit_id = self.group_buy.units[0].id
        content = (
            'group_buy_id,unit_id,customer_id,quantity,status\n'
            f'{self.group_buy.id},{unit_id},{self.customer.id},2,PAID\n'
            f'{self.group_buy.id},no-such-unit,{self.customer.id},1,\n'
        ).encode('utf-8')
        response = self.client.post(
            '/api/order/import',
            data={'file': (io.BytesIO(content), 'orders.csv')},
            content_type='multipart/form-data'
        )
        body = response.get_json()
        self.assertEqual(body['code'], ErrorCode.SUCCESS)
        self.assertEqual(body['data']['success_count'], 1)
        self.assertEqual(body['data']['fail_count'], 1)
        order = Order.query.one()
        self.assertEqual(order.quantity, 2)
        self.assertEqual(order.status, OrderStatus.PAID)

    def test_import_without_file(self):
        response = self.client.post('/api/order/import', data={}, content_type='multipart/form-data')
        self.assertEqual(response.get_json()['code'], ErrorCode.INVALID_INPUT)


class DedupEndpointTestCase(BaseTestCase):
    def test_starts_task(self):
        body = self.post_json('/api/migration/deduplicate_images')
        self.assertEqual(body['code'], ErrorCode.SUCCESS)
        self.assertTrue(body['data']['task_id'])
        self.assertIsNone(cache.get(DEDUP_LOCK_KEY))

    def test_rejects_while_running(self):
        cache.add(DEDUP_LOCK_KEY, 1, timeout=60)
        body = self.post_json('/api/migration/deduplicate_images')
        self.assertEqual(body['code'], ErrorCode.INVALID_STATE)


class AuthTestCase(BaseTestCase):
    def setUp(self):
        super().setUp()
        self.app.config['LOGIN_DISABLED'] = False
        user = User(username='admin')
        user.set_password('secret-pw')
        db.session.add(user)
        db.session.commit()

    def test_protected_route_requires_login(self):
        body = self.post_json('/api/order/stats')
        self.assertEqual(body['code'], ErrorCode.UNAUTHORIZED)

    def test_login_me_logout(self):
        failed = self.post_json('/auth/login', {'username': 'admin', 'password': 'wrong'})
        self.assertEqual(failed['code'], ErrorCode.UNAUTHORIZED)

        logged_in = self.post_json('/auth/login', {'username': 'admin', 'password': 'secret-pw'})
        self.assertEqual(logged_in['code'], ErrorCode.SUCCESS)
        me = self.client.get('/auth/me').get_json()
        self.assertEqual(me['data']['username'], 'admin')
        self.assertEqual(self.post_json('/api/order/stats')['code'], ErrorCode.SUCCESS)

        self.post_json('/auth/logout')
        self.assertEqual(self.post_json('/api/order/stats')['code'], ErrorCode.UNAUTHORIZED)
