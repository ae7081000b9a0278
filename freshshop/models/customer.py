from ..extensions import db
from datetime import datetime
from freshshop.utils import iso

class CustomerAddress(db.Model):
    __tablename__ = 'customer_addresses'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    customers = db.relationship('Customer', back_populates='customer_address', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'created_at': iso(self.created_at),
        }

class Customer(db.Model):
    __tablename__ = 'customers'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=True)
    wechat = db.Column(db.String(100), nullable=True)
    customer_address_id = db.Column(db.Integer, db.ForeignKey('customer_addresses.id'), nullable=True, index=True)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    customer_address = db.relationship('CustomerAddress', back_populates='customers')
    orders = db.relationship('Order', back_populates='customer', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'phone': self.phone,
            'wechat': self.wechat,
            'customer_address_id': self.customer_address_id,
            'customer_address_name': self.customer_address.name if self.customer_address else None,
            'created_at': iso(self.created_at),
        }
