import uuid

from sqlalchemy import Column, Text, TIMESTAMP, ForeignKey, BigInteger, Uuid, CheckConstraint, Index

from .base import Base, JSONType, utcnow


class TransactionType:
    CREDIT = 'credit'
    DEBIT = 'debit'


class TransactionStatus:
    PENDING = 'pending'
    COMPLETED = 'completed'
    FAILED = 'failed'


# Idempotency marker written into metadata when a credit hits the wallet
CREDIT_APPLIED_KEY = 'credit_applied_at'


class Transaction(Base):
    """
    Append-only wallet event. Status moves pending -> completed | failed once.
    """
    __tablename__ = 'transactions'

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey('users.id', ondelete='CASCADE'), nullable=False)

    type = Column(Text, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    description = Column(Text, nullable=False, default='')
    status = Column(Text, nullable=False, default=TransactionStatus.PENDING)

    # Gateway identifiers (credits only)
    gateway_order_id = Column(Text)
    gateway_payment_id = Column(Text)
    gateway_signature = Column(Text)

    meta = Column('metadata', JSONType, nullable=False, default=dict)

    created_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint('amount_cents > 0', name='ck_transactions_amount_positive'),
        CheckConstraint("type IN ('credit', 'debit')", name='ck_transactions_type'),
        CheckConstraint("status IN ('pending', 'completed', 'failed')", name='ck_transactions_status'),
        Index('idx_transactions_user_created', 'user_id', 'created_at'),
        Index('idx_transactions_order', 'gateway_order_id'),
        Index('idx_transactions_status_type', 'status', 'type', 'created_at'),
    )
