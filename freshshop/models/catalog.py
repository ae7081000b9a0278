from ..extensions import db
from datetime import datetime
from freshshop.utils import iso

class Supplier(db.Model):
    __tablename__ = 'suppliers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=True)
    wechat = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=True)
    images = db.Column(db.JSON, nullable=False, default=list)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    group_buys = db.relationship('GroupBuy', back_populates='supplier', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'wechat': self.wechat,
            'description': self.description,
            'images': list(self.images or []),
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }

class ProductType(db.Model):
    __tablename__ = 'product_types'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    products = db.relationship('Product', back_populates='product_type', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'created_at': iso(self.created_at),
        }

class Product(db.Model):
    __tablename__ = 'products'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    product_type_id = db.Column(db.Integer, db.ForeignKey('product_types.id'), nullable=False, index=True)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    product_type = db.relationship('ProductType', back_populates='products')
    group_buys = db.relationship('GroupBuy', back_populates='product', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'product_type_id': self.product_type_id,
            'product_type_name': self.product_type.name if self.product_type else None,
            'created_at': iso(self.created_at),
        }
