from sqlalchemy import func
from freshshop.extensions import db
from freshshop.models import Customer, CustomerAddress, Order, GroupBuyUnit
from freshshop.constants import OrderStatus
from freshshop.exceptions import ValidationError, NotFoundError, DataExistError, DataStillReferencedError
from freshshop.utils import page_result, clean_str, to_money


class CustomerAddressService:
    @staticmethod
    def _get(address_id):
        address = CustomerAddress.query.filter_by(id=address_id, is_deleted=False).first()
        if not address:
            raise NotFoundError('고객 주소가 존재하지 않습니다.')
        return address

    @staticmethod
    def create(data):
        try:
            name = clean_str(data.get('name'))
            if not name:
                raise ValidationError('주소 이름은 필수입니다.')
            if CustomerAddress.query.filter_by(name=name, is_deleted=False).first():
                raise DataExistError('같은 이름의 주소가 이미 존재합니다.')
            address = CustomerAddress(name=name)
            db.session.add(address)
            db.session.commit()
            return address
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def update(address_id, data):
        try:
            address = CustomerAddressService._get(address_id)
            if 'name' in data:
                name = clean_str(data['name'])
                if not name:
                    raise ValidationError('주소 이름은 필수입니다.')
                dup = CustomerAddress.query.filter(
                    CustomerAddress.name == name,
                    CustomerAddress.is_deleted == False,
                    CustomerAddress.id != address.id
                ).first()
                if dup:
                    raise DataExistError('같은 이름의 주소가 이미 존재합니다.')
                address.name = name
            db.session.commit()
            return address
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete(address_id):
        try:
            address = CustomerAddressService._get(address_id)
            in_use = Customer.query.filter_by(customer_address_id=address.id, is_deleted=False).count()
            if in_use:
                raise DataStillReferencedError(f'이 주소를 사용하는 고객이 {in_use}명 있어 삭제할 수 없습니다.')
            address.is_deleted = True
            db.session.commit()
            return address
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(address_id):
        return CustomerAddressService._get(address_id).to_dict()

    @staticmethod
    def list(params, page, page_size):
        query = CustomerAddress.query.filter(CustomerAddress.is_deleted == False)
        name = clean_str(params.get('name'))
        if name:
            query = query.filter(CustomerAddress.name.ilike(f'%{name}%'))
        total_count = query.count()
        addresses = query.order_by(CustomerAddress.created_at.desc(), CustomerAddress.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()
        return page_result([a.to_dict() for a in addresses], page, page_size, total_count)

    @staticmethod
    def list_all():
        return CustomerAddress.query.filter_by(is_deleted=False).order_by(CustomerAddress.name.asc()).all()


class CustomerService:
    @staticmethod
    def _get(customer_id):
        customer = Customer.query.filter_by(id=customer_id, is_deleted=False).first()
        if not customer:
            raise NotFoundError('고객이 존재하지 않습니다.')
        return customer

    @staticmethod
    def _check_unique(name, phone, wechat, exclude_id=None):
        for field, value, label in (
            (Customer.name, name, '이름'),
            (Customer.phone, phone, '전화번호'),
            (Customer.wechat, wechat, '위챗'),
        ):
            if not value:
                continue
            query = Customer.query.filter(field == value, Customer.is_deleted == False)
            if exclude_id is not None:
                query = query.filter(Customer.id != exclude_id)
            if query.first():
                raise DataExistError(f'같은 {label}의 고객이 이미 존재합니다.')

    @staticmethod
    def _resolve_address(address_id):
        if address_id in (None, ''):
            return None
        return CustomerAddressService._get(address_id).id

    @staticmethod
    def create(data):
        try:
            name = clean_str(data.get('name'))
            if not name:
                raise ValidationError('고객 이름은 필수입니다.')
            phone = clean_str(data.get('phone'))
            wechat = clean_str(data.get('wechat'))
            CustomerService._check_unique(name, phone, wechat)

            customer = Customer(
                name=name,
                phone=phone,
                wechat=wechat,
                customer_address_id=CustomerService._resolve_address(data.get('customer_address_id'))
            )
            db.session.add(customer)
            db.session.commit()
            return customer
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def update(customer_id, data):
        try:
            customer = CustomerService._get(customer_id)
            name = clean_str(data['name']) if 'name' in data else customer.name
            if not name:
                raise ValidationError('고객 이름은 필수입니다.')
            phone = clean_str(data['phone']) if 'phone' in data else customer.phone
            wechat = clean_str(data['wechat']) if 'wechat' in data else customer.wechat
            CustomerService._check_unique(name, phone, wechat, exclude_id=customer.id)

            customer.name = name
            customer.phone = phone
            customer.wechat = wechat
            if 'customer_address_id' in data:
                customer.customer_address_id = CustomerService._resolve_address(data['customer_address_id'])
            db.session.commit()
            return customer
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete(customer_id):
        try:
            customer = CustomerService._get(customer_id)
            in_use = Order.query.filter_by(customer_id=customer.id, is_deleted=False).count()
            if in_use:
                raise DataStillReferencedError(f'이 고객의 주문이 {in_use}건 있어 삭제할 수 없습니다.')
            customer.is_deleted = True
            db.session.commit()
            return customer
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(customer_id):
        return CustomerService._get(customer_id).to_dict()

    @staticmethod
    def list(params, page, page_size):
        query = Customer.query.filter(Customer.is_deleted == False)
        for field in ('name', 'phone', 'wechat'):
            value = clean_str(params.get(field))
            if value:
                query = query.filter(getattr(Customer, field).ilike(f'%{value}%'))
        address_id = params.get('customer_address_id')
        if address_id:
            query = query.filter(Customer.customer_address_id == address_id)

        customers = query.order_by(Customer.created_at.desc(), Customer.id.desc()).all()
        order_stats = CustomerService._order_stats([c.id for c in customers])

        rows = []
        for c in customers:
            item = c.to_dict()
            count, amount = order_stats.get(c.id, (0, 0))
            item['order_count'] = count
            item['order_total_amount'] = amount
            rows.append(item)

        sort_field = params.get('sort_field')
        if sort_field in ('order_count', 'order_total_amount'):
            rows = sorted(rows, key=lambda r: r[sort_field], reverse=(params.get('sort_order') != 'asc'))
        elif params.get('sort_order') == 'asc':
            rows = list(reversed(rows))

        total_count = len(rows)
        skip = (page - 1) * page_size
        return page_result(rows[skip:skip + page_size], page, page_size, total_count)

    @staticmethod
    def _order_stats(customer_ids):
        """고객별 유효 주문 수와 순매출"""
        if not customer_ids:
            return {}
        rows = db.session.query(
            Order.customer_id,
            func.count(Order.id),
            func.coalesce(func.sum(GroupBuyUnit.price * Order.quantity - Order.partial_refund_amount), 0)
        ).join(GroupBuyUnit, Order.unit_id == GroupBuyUnit.id).filter(
            Order.customer_id.in_(customer_ids),
            Order.is_deleted == False,
            Order.status.in_(OrderStatus.EFFECTIVE)
        ).group_by(Order.customer_id).all()
        return {cid: (count, to_money(amount or 0)) for cid, count, amount in rows}

    @staticmethod
    def list_all():
        return Customer.query.filter_by(is_deleted=False).order_by(Customer.name.asc()).all()
