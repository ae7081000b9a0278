import uuid
from ..extensions import db
from datetime import datetime
from sqlalchemy import Index
from freshshop.utils import iso, money_value

class GroupBuy(db.Model):
    __tablename__ = 'group_buys'
    __table_args__ = (
        Index('ix_group_buy_name_start', 'name', 'group_buy_start_date'),
    )
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)
    group_buy_start_date = db.Column(db.Date, nullable=False, index=True)

    supplier_id = db.Column(db.Integer, db.ForeignKey('suppliers.id'), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey('products.id'), nullable=False, index=True)
    images = db.Column(db.JSON, nullable=False, default=list)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    supplier = db.relationship('Supplier', back_populates='group_buys')
    product = db.relationship('Product', back_populates='group_buys')
    units = db.relationship('GroupBuyUnit', back_populates='group_buy', order_by='GroupBuyUnit.sort_order',
                            cascade='all, delete-orphan')
    orders = db.relationship('Order', back_populates='group_buy', lazy='dynamic')

    def find_unit(self, unit_id):
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None

    def summary(self):
        return {
            'id': self.id,
            'name': self.name,
            'group_buy_start_date': iso(self.group_buy_start_date),
            'units': [u.to_dict() for u in self.units],
        }

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'description': self.description,
            'group_buy_start_date': iso(self.group_buy_start_date),
            'supplier_id': self.supplier_id,
            'supplier_name': self.supplier.name if self.supplier else None,
            'product_id': self.product_id,
            'product_name': self.product.name if self.product else None,
            'units': [u.to_dict() for u in self.units],
            'images': list(self.images or []),
            'created_at': iso(self.created_at),
        }

class GroupBuyUnit(db.Model):
    __tablename__ = 'group_buy_units'
    id = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    group_buy_id = db.Column(db.Integer, db.ForeignKey('group_buys.id'), nullable=False, index=True)
    unit = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    cost_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    group_buy = db.relationship('GroupBuy', back_populates='units')

    def to_dict(self):
        return {
            'id': self.id,
            'unit': self.unit,
            'price': money_value(self.price),
            'cost_price': money_value(self.cost_price),
        }
