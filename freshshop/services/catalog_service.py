from flask import current_app
from sqlalchemy import func
from freshshop.extensions import db
from freshshop.models import Supplier, ProductType, Product, GroupBuy
from freshshop.exceptions import ValidationError, NotFoundError, DataExistError, DataStillReferencedError
from freshshop.utils import page_result, clean_str, parse_image_list


class SupplierService:
    @staticmethod
    def _get(supplier_id):
        supplier = Supplier.query.filter_by(id=supplier_id, is_deleted=False).first()
        if not supplier:
            raise NotFoundError('공급처가 존재하지 않습니다.')
        return supplier

    @staticmethod
    def _check_unique(name, phone, wechat, exclude_id=None):
        """삭제되지 않은 공급처 중 이름/전화/위챗 중복 확인"""
        for field, value, label in (
            (Supplier.name, name, '이름'),
            (Supplier.phone, phone, '전화번호'),
            (Supplier.wechat, wechat, '위챗'),
        ):
            if not value:
                continue
            query = Supplier.query.filter(field == value, Supplier.is_deleted == False)
            if exclude_id is not None:
                query = query.filter(Supplier.id != exclude_id)
            if query.first():
                raise DataExistError(f'같은 {label}의 공급처가 이미 존재합니다.')

    @staticmethod
    def create(data):
        try:
            name = clean_str(data.get('name'))
            if not name:
                raise ValidationError('공급처 이름은 필수입니다.')
            phone = clean_str(data.get('phone'))
            wechat = clean_str(data.get('wechat'))
            SupplierService._check_unique(name, phone, wechat)

            supplier = Supplier(
                name=name,
                phone=phone,
                wechat=wechat,
                description=clean_str(data.get('description')),
                images=parse_image_list(data.get('images'))
            )
            db.session.add(supplier)
            db.session.commit()
            return supplier
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def update(supplier_id, data):
        try:
            supplier = SupplierService._get(supplier_id)
            name = clean_str(data['name']) if 'name' in data else supplier.name
            if not name:
                raise ValidationError('공급처 이름은 필수입니다.')
            phone = clean_str(data['phone']) if 'phone' in data else supplier.phone
            wechat = clean_str(data['wechat']) if 'wechat' in data else supplier.wechat
            SupplierService._check_unique(name, phone, wechat, exclude_id=supplier.id)

            supplier.name = name
            supplier.phone = phone
            supplier.wechat = wechat
            if 'description' in data:
                supplier.description = clean_str(data['description'])
            if 'images' in data:
                supplier.images = parse_image_list(data['images'])
            db.session.commit()
            return supplier
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete(supplier_id):
        try:
            supplier = SupplierService._get(supplier_id)
            in_use = GroupBuy.query.filter_by(supplier_id=supplier.id, is_deleted=False).count()
            if in_use:
                raise DataStillReferencedError(f'이 공급처를 사용하는 공동구매가 {in_use}건 있어 삭제할 수 없습니다.')
            supplier.is_deleted = True
            db.session.commit()
            current_app.logger.info(f"Supplier {supplier.id} deleted")
            return supplier
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(supplier_id):
        return SupplierService._get(supplier_id).to_dict()

    @staticmethod
    def delete_image(supplier_id, filename):
        try:
            supplier = SupplierService._get(supplier_id)
            images = list(supplier.images or [])
            if filename not in images:
                raise NotFoundError('해당 이미지가 공급처에 없습니다.')
            supplier.images = [img for img in images if img != filename]
            db.session.commit()
            return supplier
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def list(params, page, page_size):
        query = Supplier.query.filter(Supplier.is_deleted == False)
        for field in ('name', 'phone', 'wechat'):
            value = clean_str(params.get(field))
            if value:
                query = query.filter(getattr(Supplier, field).ilike(f'%{value}%'))

        total_count = query.count()
        suppliers = query.order_by(Supplier.created_at.desc(), Supplier.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()

        counts = {}
        if suppliers:
            counts = dict(db.session.query(GroupBuy.supplier_id, func.count(GroupBuy.id)).filter(
                GroupBuy.supplier_id.in_([s.id for s in suppliers]),
                GroupBuy.is_deleted == False
            ).group_by(GroupBuy.supplier_id).all())

        items = []
        for s in suppliers:
            item = s.to_dict()
            item['group_buy_count'] = counts.get(s.id, 0)
            items.append(item)
        return page_result(items, page, page_size, total_count)

    @staticmethod
    def list_all():
        return Supplier.query.filter_by(is_deleted=False).order_by(Supplier.name.asc()).all()


class ProductTypeService:
    @staticmethod
    def _get(product_type_id):
        product_type = ProductType.query.filter_by(id=product_type_id, is_deleted=False).first()
        if not product_type:
            raise NotFoundError('상품 유형이 존재하지 않습니다.')
        return product_type

    @staticmethod
    def create(data):
        try:
            name = clean_str(data.get('name'))
            if not name:
                raise ValidationError('상품 유형 이름은 필수입니다.')
            if ProductType.query.filter_by(name=name, is_deleted=False).first():
                raise DataExistError('같은 이름의 상품 유형이 이미 존재합니다.')
            product_type = ProductType(name=name, description=clean_str(data.get('description')))
            db.session.add(product_type)
            db.session.commit()
            return product_type
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def update(product_type_id, data):
        try:
            product_type = ProductTypeService._get(product_type_id)
            if 'name' in data:
                name = clean_str(data['name'])
                if not name:
                    raise ValidationError('상품 유형 이름은 필수입니다.')
                dup = ProductType.query.filter(
                    ProductType.name == name,
                    ProductType.is_deleted == False,
                    ProductType.id != product_type.id
                ).first()
                if dup:
                    raise DataExistError('같은 이름의 상품 유형이 이미 존재합니다.')
                product_type.name = name
            if 'description' in data:
                product_type.description = clean_str(data['description'])
            db.session.commit()
            return product_type
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete(product_type_id):
        try:
            product_type = ProductTypeService._get(product_type_id)
            in_use = Product.query.filter_by(product_type_id=product_type.id, is_deleted=False).count()
            if in_use:
                raise DataStillReferencedError(f'이 유형의 상품이 {in_use}건 있어 삭제할 수 없습니다.')
            product_type.is_deleted = True
            db.session.commit()
            return product_type
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def migrate(from_id, to_id):
        """상품들을 다른 상품 유형으로 이동. 이동한 상품 수 반환"""
        try:
            if from_id == to_id:
                raise ValidationError('같은 유형으로는 이동할 수 없습니다.')
            source = ProductTypeService._get(from_id)
            target = ProductTypeService._get(to_id)
            moved = Product.query.filter_by(product_type_id=source.id, is_deleted=False) \
                .update({Product.product_type_id: target.id}, synchronize_session=False)
            db.session.commit()
            current_app.logger.info(f"Moved {moved} products from type {source.id} to {target.id}")
            return moved
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(product_type_id):
        return ProductTypeService._get(product_type_id).to_dict()

    @staticmethod
    def list(params, page, page_size):
        query = ProductType.query.filter(ProductType.is_deleted == False)
        name = clean_str(params.get('name'))
        if name:
            query = query.filter(ProductType.name.ilike(f'%{name}%'))
        total_count = query.count()
        types = query.order_by(ProductType.created_at.desc(), ProductType.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()
        return page_result([t.to_dict() for t in types], page, page_size, total_count)

    @staticmethod
    def list_all():
        return ProductType.query.filter_by(is_deleted=False).order_by(ProductType.name.asc()).all()


class ProductService:
    @staticmethod
    def _get(product_id):
        product = Product.query.filter_by(id=product_id, is_deleted=False).first()
        if not product:
            raise NotFoundError('상품이 존재하지 않습니다.')
        return product

    @staticmethod
    def create(data):
        try:
            name = clean_str(data.get('name'))
            if not name:
                raise ValidationError('상품 이름은 필수입니다.')
            product_type = ProductTypeService._get(data.get('product_type_id'))
            product = Product(
                name=name,
                description=clean_str(data.get('description')),
                product_type_id=product_type.id
            )
            db.session.add(product)
            db.session.commit()
            return product
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def update(product_id, data):
        try:
            product = ProductService._get(product_id)
            if 'name' in data:
                name = clean_str(data['name'])
                if not name:
                    raise ValidationError('상품 이름은 필수입니다.')
                product.name = name
            if 'description' in data:
                product.description = clean_str(data['description'])
            if 'product_type_id' in data:
                product.product_type_id = ProductTypeService._get(data['product_type_id']).id
            db.session.commit()
            return product
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def delete(product_id):
        try:
            product = ProductService._get(product_id)
            in_use = GroupBuy.query.filter_by(product_id=product.id, is_deleted=False).count()
            if in_use:
                raise DataStillReferencedError(f'이 상품을 사용하는 공동구매가 {in_use}건 있어 삭제할 수 없습니다.')
            product.is_deleted = True
            db.session.commit()
            return product
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def migrate(from_id, to_id):
        """공동구매들을 다른 상품으로 이동. 이동한 공동구매 수 반환"""
        try:
            if from_id == to_id:
                raise ValidationError('같은 상품으로는 이동할 수 없습니다.')
            source = ProductService._get(from_id)
            target = ProductService._get(to_id)
            moved = GroupBuy.query.filter_by(product_id=source.id, is_deleted=False) \
                .update({GroupBuy.product_id: target.id}, synchronize_session=False)
            db.session.commit()
            current_app.logger.info(f"Moved {moved} group buys from product {source.id} to {target.id}")
            return moved
        except Exception:
            db.session.rollback()
            raise

    @staticmethod
    def detail(product_id):
        return ProductService._get(product_id).to_dict()

    @staticmethod
    def list(params, page, page_size):
        query = Product.query.filter(Product.is_deleted == False)
        name = clean_str(params.get('name'))
        if name:
            query = query.filter(Product.name.ilike(f'%{name}%'))
        product_type_id = params.get('product_type_id')
        if product_type_id:
            query = query.filter(Product.product_type_id == product_type_id)
        total_count = query.count()
        products = query.order_by(Product.created_at.desc(), Product.id.desc()) \
            .offset((page - 1) * page_size).limit(page_size).all()
        return page_result([p.to_dict() for p in products], page, page_size, total_count)

    @staticmethod
    def list_all():
        return Product.query.filter_by(is_deleted=False).order_by(Product.name.asc()).all()
