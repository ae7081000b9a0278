from ..extensions import db
from datetime import datetime
from sqlalchemy import Index, CheckConstraint
from freshshop.constants import OrderStatus
from freshshop.utils import iso, money_value

class Order(db.Model):
    __tablename__ = 'orders'
    __table_args__ = (
        Index('ix_order_group_buy_status', 'group_buy_id', 'status'),
        Index('ix_order_customer_status', 'customer_id', 'status'),
        Index('ix_order_created', 'created_at'),
        CheckConstraint('quantity > 0', name='ck_order_quantity_positive'),
        CheckConstraint('partial_refund_amount >= 0', name='ck_order_partial_refund_non_negative'),
    )
    id = db.Column(db.Integer, primary_key=True)
    group_buy_id = db.Column(db.Integer, db.ForeignKey('group_buys.id'), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey('customers.id'), nullable=False, index=True)
    unit_id = db.Column(db.String(36), db.ForeignKey('group_buy_units.id'), nullable=False)

    quantity = db.Column(db.Integer, nullable=False, default=1)
    status = db.Column(db.String(20), nullable=False, default=OrderStatus.NOTPAID, index=True)
    partial_refund_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    description = db.Column(db.Text, nullable=True)

    is_deleted = db.Column(db.Boolean, default=False, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow)

    group_buy = db.relationship('GroupBuy', back_populates='orders')
    customer = db.relationship('Customer', back_populates='orders')
    unit = db.relationship('GroupBuyUnit')

    @property
    def total_amount(self):
        if not self.unit:
            return 0
        return self.unit.price * self.quantity

    @property
    def refundable_amount(self):
        return self.total_amount - (self.partial_refund_amount or 0)

    def to_dict(self, with_relations=False):
        data = {
            'id': self.id,
            'group_buy_id': self.group_buy_id,
            'customer_id': self.customer_id,
            'unit_id': self.unit_id,
            'quantity': self.quantity,
            'status': self.status,
            'partial_refund_amount': money_value(self.partial_refund_amount),
            'total_amount': money_value(self.total_amount),
            'description': self.description,
            'created_at': iso(self.created_at),
            'updated_at': iso(self.updated_at),
        }
        if with_relations:
            data['customer'] = self.customer.to_dict() if self.customer else None
            data['group_buy'] = self.group_buy.summary() if self.group_buy else None
        return data
