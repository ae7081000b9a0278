import shutil
import tempfile
import unittest
from datetime import date
from freshshop import create_app
from freshshop.config import Config
from freshshop.extensions import db
from freshshop.constants import OrderStatus
from freshshop.models import (
    Supplier, ProductType, Product, CustomerAddress, Customer, GroupBuy, GroupBuyUnit, Order
)


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = 'test-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    WTF_CSRF_ENABLED = False
    LOGIN_DISABLED = True
    CACHE_TYPE = 'SimpleCache'
    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True


class BaseTestCase(unittest.TestCase):
    """앱/인메모리 DB 준비와 테스트 데이터 생성 헬퍼"""

    def setUp(self):
        self.upload_dir = tempfile.mkdtemp()
        self.app = create_app(TestConfig)
        self.app.config['UPLOAD_FOLDER'] = self.upload_dir
        self.ctx = self.app.app_context()
        self.ctx.push()
        db.create_all()
        self.client = self.app.test_client()
        self._seq = 0

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.ctx.pop()
        shutil.rmtree(self.upload_dir, ignore_errors=True)

    def _next(self):
        self._seq += 1
        return self._seq

    def make_supplier(self, name=None, **kwargs):
        supplier = Supplier(name=name or f'공급처{self._next()}', images=kwargs.pop('images', []), **kwargs)
        db.session.add(supplier)
        db.session.commit()
        return supplier

    def make_product_type(self, name=None):
        product_type = ProductType(name=name or f'유형{self._next()}')
        db.session.add(product_type)
        db.session.commit()
        return product_type

    def make_product(self, name=None, product_type=None):
        product_type = product_type or self.make_product_type()
        product = Product(name=name or f'상품{self._next()}', product_type_id=product_type.id)
        db.session.add(product)
        db.session.commit()
        return product

    def make_address(self, name=None):
        address = CustomerAddress(name=name or f'주소{self._next()}')
        db.session.add(address)
        db.session.commit()
        return address

    def make_customer(self, name=None, address=None):
        customer = Customer(
            name=name or f'고객{self._next()}',
            customer_address_id=address.id if address else None
        )
        db.session.add(customer)
        db.session.commit()
        return customer

    def make_group_buy(self, name=None, start_date=None, supplier=None, product=None,
                       units=(('1kg', 100, 60),), images=None):
        supplier = supplier or self.make_supplier()
        product = product or self.make_product()
        group_buy = GroupBuy(
            name=name or f'공동구매{self._next()}',
            group_buy_start_date=start_date or date(2024, 3, 1),
            supplier_id=supplier.id,
            product_id=product.id,
            images=images or []
        )
        group_buy.units = [
            GroupBuyUnit(unit=label, price=price, cost_price=cost, sort_order=idx)
            for idx, (label, price, cost) in enumerate(units)
        ]
        db.session.add(group_buy)
        db.session.commit()
        return group_buy

    def make_order(self, group_buy, customer, quantity=1, status=OrderStatus.PAID,
                   partial_refund_amount=0, unit=None):
        unit = unit or group_buy.units[0]
        order = Order(
            group_buy_id=group_buy.id,
            customer_id=customer.id,
            unit_id=unit.id,
            quantity=quantity,
            status=status,
            partial_refund_amount=partial_refund_amount
        )
        db.session.add(order)
        db.session.commit()
        return order

    def post_json(self, url, payload=None):
        response = self.client.post(url, json=payload or {})
        self.assertEqual(response.status_code, 200)
        return response.get_json()
