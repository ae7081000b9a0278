from freshshop.extensions import db
from freshshop.constants import OrderStatus
from freshshop.exceptions import (
    ValidationError, NotFoundError, DataExistError, DataStillReferencedError
)
from freshshop.models import Product, GroupBuy, Order
from freshshop.services.catalog_service import SupplierService, ProductTypeService, ProductService
from freshshop.services.customer_service import CustomerService, CustomerAddressService
from freshshop.services.group_buy_service import GroupBuyService
from freshshop.services.setting_service import SettingService
from tests.base import BaseTestCase


class SupplierServiceTestCase(BaseTestCase):
    def test_create_rejects_duplicates_among_active(self):
        SupplierService.create({'name': '농장A', 'phone': '010-1111'})
        with self.assertRaises(DataExistError):
            SupplierService.create({'name': '농장B', 'phone': '010-1111'})
        with self.assertRaises(ValidationError):
            SupplierService.create({'name': '  '})

    def test_deleted_supplier_name_can_be_reused(self):
        supplier = SupplierService.create({'name': '농장A'})
        SupplierService.delete(supplier.id)
        self.assertIsNotNone(SupplierService.create({'name': '농장A'}).id)

    def test_delete_blocked_while_referenced(self):
        supplier = self.make_supplier()
        self.make_group_buy(supplier=supplier)
        with self.assertRaises(DataStillReferencedError):
            SupplierService.delete(supplier.id)

    def test_delete_image(self):
        supplier = self.make_supplier(images=['a.jpg', 'b.jpg'])
        updated = SupplierService.delete_image(supplier.id, 'a.jpg')
        self.assertEqual(updated.images, ['b.jpg'])
        with self.assertRaises(NotFoundError):
            SupplierService.delete_image(supplier.id, 'zzz.jpg')

    def test_list_includes_group_buy_count(self):
        supplier = self.make_supplier(name='검색대상')
        self.make_group_buy(supplier=supplier)
        self.make_supplier(name='다른곳')
        result = SupplierService.list({'name': '검색'}, 1, 10)
        self.assertEqual(result['total_count'], 1)
        self.assertEqual(result['data'][0]['group_buy_count'], 1)


class ProductServiceTestCase(BaseTestCase):
    def test_type_delete_blocked_and_migrate(self):
        old_type = self.make_product_type()
        new_type = self.make_product_type()
        product = self.make_product(product_type=old_type)

        with self.assertRaises(DataStillReferencedError):
            ProductTypeService.delete(old_type.id)

        self.assertEqual(ProductTypeService.migrate(old_type.id, new_type.id), 1)
        db.session.expire_all()
        self.assertEqual(db.session.get(Product, product.id).product_type_id, new_type.id)
        ProductTypeService.delete(old_type.id)

    def test_product_migrate_moves_group_buys(self):
        source = self.make_product()
        target = self.make_product()
        gb = self.make_group_buy(product=source)
        self.assertEqual(ProductService.migrate(source.id, target.id), 1)
        db.session.expire_all()
        self.assertEqual(db.session.get(GroupBuy, gb.id).product_id, target.id)
        with self.assertRaises(ValidationError):
            ProductService.migrate(target.id, target.id)

    def test_create_requires_existing_type(self):
        with self.assertRaises(NotFoundError):
            ProductService.create({'name': '딸기', 'product_type_id': 9999})


class CustomerServiceTestCase(BaseTestCase):
    def test_address_delete_blocked_while_used(self):
        address = CustomerAddressService.create({'name': '101동'})
        CustomerService.create({'name': '김고객', 'customer_address_id': address.id})
        with self.assertRaises(DataStillReferencedError):
            CustomerAddressService.delete(address.id)

    def test_customer_delete_blocked_by_orders(self):
        customer = self.make_customer()
        self.make_order(self.make_group_buy(), customer)
        with self.assertRaises(DataStillReferencedError):
            CustomerService.delete(customer.id)

    def test_list_sorted_by_order_total(self):
        gb = self.make_group_buy()
        small = self.make_customer()
        big = self.make_customer()
        self.make_order(gb, small, quantity=1)
        self.make_order(gb, big, quantity=4)
        self.make_order(gb, big, quantity=1, status=OrderStatus.NOTPAID)

        result = CustomerService.list({'sort_field': 'order_total_amount'}, 1, 10)
        self.assertEqual(result['data'][0]['id'], big.id)
        self.assertEqual(result['data'][0]['order_total_amount'], 400)
        self.assertEqual(result['data'][0]['order_count'], 1)


class GroupBuyServiceTestCase(BaseTestCase):
    def _payload(self, **overrides):
        data = {
            'name': '제주 감귤',
            'group_buy_start_date': '2024-05-01',
            'supplier_id': self.make_supplier().id,
            'product_id': self.make_product().id,
            'units': [
                {'unit': '3kg', 'price': 20, 'cost_price': 12},
                {'unit': '5kg', 'price': 30, 'cost_price': 18},
            ],
        }
        data.update(overrides)
        return data

    def test_create_generates_unit_ids(self):
        gb = GroupBuyService.create(self._payload())
        self.assertEqual([u.unit for u in gb.units], ['3kg', '5kg'])
        self.assertTrue(all(u.id for u in gb.units))

    def test_create_validation(self):
        with self.assertRaises(ValidationError):
            GroupBuyService.create(self._payload(units=[]))
        with self.assertRaises(ValidationError):
            GroupBuyService.create(self._payload(group_buy_start_date='not-a-date'))
        with self.assertRaises(ValidationError):
            GroupBuyService.create(self._payload(units=[{'unit': '1kg', 'price': -1, 'cost_price': 0}]))

    def test_referenced_unit_cannot_be_removed(self):
        gb = GroupBuyService.create(self._payload())
        used, unused = gb.units
        self.make_order(gb, self.make_customer(), unit=used)

        with self.assertRaises(DataStillReferencedError):
            GroupBuyService.update(gb.id, {'units': [{'id': unused.id, 'unit': '5kg', 'price': 30, 'cost_price': 18}]})

        updated = GroupBuyService.update(gb.id, {'units': [
            {'id': used.id, 'unit': '3kg', 'price': 22, 'cost_price': 12},
            {'unit': '10kg', 'price': 55, 'cost_price': 35},
        ]})
        self.assertEqual([u.unit for u in updated.units], ['3kg', '10kg'])
        self.assertEqual(updated.find_unit(used.id).price, 22)

    def test_delete_cascades_to_orders(self):
        gb = self.make_group_buy()
        order = self.make_order(gb, self.make_customer())
        GroupBuyService.delete(gb.id)
        db.session.expire_all()
        self.assertTrue(db.session.get(Order, order.id).is_deleted)

    def test_detail_unit_stats(self):
        gb = self.make_group_buy(units=(('1kg', 100, 60),))
        customer = self.make_customer()
        self.make_order(gb, customer, quantity=2, status=OrderStatus.PAID, partial_refund_amount=20)
        self.make_order(gb, customer, quantity=1, status=OrderStatus.NOTPAID)

        detail = GroupBuyService.detail(gb.id)
        stat = detail['unit_stats'][0]
        self.assertEqual(stat['quantity'], 2)
        self.assertEqual(stat['net_sales'], 180)
        self.assertEqual(stat['net_profit'], 60)
        self.assertEqual(stat['status_counts'][OrderStatus.NOTPAID], 1)
        self.assertEqual(detail['total_sales'], 180)

    def test_list_status_counts_and_filters(self):
        gb = self.make_group_buy()
        self.make_group_buy()
        customer = self.make_customer()
        self.make_order(gb, customer, status=OrderStatus.PAID, partial_refund_amount=10)
        self.make_order(gb, customer, status=OrderStatus.NOTPAID)

        result = GroupBuyService.list({'has_partial_refund': True}, 1, 10)
        self.assertEqual(result['total_count'], 1)
        row = result['data'][0]
        self.assertEqual(row['order_status_counts'][OrderStatus.PAID], 1)
        self.assertEqual(row['partial_refund_order_count'], 1)
        self.assertEqual(row['partial_refund_amount'], 10)


class SettingServiceTestCase(BaseTestCase):
    def test_upsert_invalidates_cache(self):
        self.assertFalse(SettingService.is_sensitive())
        SettingService.upsert('sensitive', {'sensitive': True})
        self.assertTrue(SettingService.is_sensitive())
        SettingService.upsert('sensitive', {'sensitive': False})
        self.assertFalse(SettingService.is_sensitive())
        self.assertEqual(SettingService.detail('sensitive')['value'], {'sensitive': False})

    def test_missing_setting(self):
        with self.assertRaises(NotFoundError):
            SettingService.detail('unknown')
