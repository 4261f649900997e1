from datetime import datetime
from flask_login import UserMixin
from sqlalchemy.dialects.postgresql import JSONB
from .extensions import db

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
JSONType = db.JSON().with_variant(JSONB(), "postgresql")


class TransactionStatus:
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    EDITED = "EDITED"
    REJECTED = "REJECTED"
    SYNCED = "SYNCED"
    ERROR = "ERROR"

    ALL = (PENDING, APPROVED, EDITED, REJECTED, SYNCED, ERROR)
    # rows the categorizer may (re)suggest for
    CATEGORIZABLE = (PENDING, REJECTED)
    # rows the reviewer may approve
    REVIEWABLE = (PENDING, REJECTED, ERROR)
    # rows waiting to be written back to QuickBooks
    SYNCABLE = (APPROVED, EDITED, ERROR)


class User(UserMixin, db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    clerk_id = db.Column(db.Text, unique=True, nullable=True, index=True)
    email = db.Column(db.Text, unique=True, nullable=False)
    name = db.Column(db.Text)
    password_hash = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    clients = db.relationship(
        "Client", backref="user", lazy=True, cascade="all, delete-orphan", order_by="Client.name"
    )


class Client(db.Model):
    __tablename__ = "clients"
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = db.Column(db.Text, nullable=False)
    qb_realm_id = db.Column(db.Text, unique=True, nullable=False)
    qb_access_token = db.Column(db.Text, nullable=False)
    qb_refresh_token = db.Column(db.Text, nullable=False)
    qb_token_expiry = db.Column(db.DateTime, nullable=False)
    qb_environment = db.Column(db.Text, nullable=False, default="sandbox")
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    last_sync_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    transactions = db.relationship("Transaction", backref="client", lazy=True, cascade="all, delete-orphan")
    accounts = db.relationship("QBAccount", backref="client", lazy=True, cascade="all, delete-orphan")
    classes = db.relationship("QBClass", backref="client", lazy=True, cascade="all, delete-orphan")
    learning_examples = db.relationship(
        "LearningExample", backref="client", lazy=True, cascade="all, delete-orphan"
    )


class Transaction(db.Model):
    __tablename__ = "transactions"
    __table_args__ = (db.UniqueConstraint("client_id", "qb_id", name="uq_transactions_client_qb_id"),)

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)

    # QuickBooks data
    qb_id = db.Column(db.Text, nullable=False)
    qb_type = db.Column(db.Text, nullable=False, default="Purchase")
    txn_date = db.Column(db.Date, nullable=False, index=True)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    description = db.Column(db.Text)
    vendor = db.Column(db.Text)
    customer = db.Column(db.Text)
    memo = db.Column(db.Text)

    # Categorization as it was in QuickBooks when pulled
    original_account_id = db.Column(db.Text)
    original_account_name = db.Column(db.Text)
    original_class_id = db.Column(db.Text)
    original_class_name = db.Column(db.Text)

    # AI suggestion
    ai_account_id = db.Column(db.Text)
    ai_account_name = db.Column(db.Text)
    ai_class_id = db.Column(db.Text)
    ai_class_name = db.Column(db.Text)
    ai_confidence_score = db.Column(db.Float)
    ai_reasoning_notes = db.Column(db.Text)

    status = db.Column(db.Text, nullable=False, default=TransactionStatus.PENDING, index=True)
    reviewed_at = db.Column(db.DateTime)

    # What the reviewer settled on
    final_account_id = db.Column(db.Text)
    final_account_name = db.Column(db.Text)
    final_class_id = db.Column(db.Text)
    final_class_name = db.Column(db.Text)

    synced_to_qb = db.Column(db.Boolean, default=False, nullable=False)
    synced_at = db.Column(db.DateTime)
    sync_error = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    learning_example = db.relationship(
        "LearningExample", backref="transaction", uselist=False, cascade="all, delete-orphan"
    )

    @property
    def amount(self) -> float:
        return self.amount_cents / 100.0

    def clear_suggestion(self):
        self.ai_account_id = None
        self.ai_account_name = None
        self.ai_class_id = None
        self.ai_class_name = None
        self.ai_confidence_score = None
        self.ai_reasoning_notes = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "clientId": self.client_id,
            "qbId": self.qb_id,
            "qbType": self.qb_type,
            "date": self.txn_date.isoformat(),
            "amount": self.amount,
            "description": self.description,
            "vendor": self.vendor,
            "customer": self.customer,
            "memo": self.memo,
            "originalAccountId": self.original_account_id,
            "originalAccountName": self.original_account_name,
            "originalClassId": self.original_class_id,
            "originalClassName": self.original_class_name,
            "aiAccountId": self.ai_account_id,
            "aiAccountName": self.ai_account_name,
            "aiClassId": self.ai_class_id,
            "aiClassName": self.ai_class_name,
            "aiConfidenceScore": self.ai_confidence_score,
            "aiReasoningNotes": self.ai_reasoning_notes,
            "status": self.status,
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "finalAccountId": self.final_account_id,
            "finalAccountName": self.final_account_name,
            "finalClassId": self.final_class_id,
            "finalClassName": self.final_class_name,
            "syncedToQb": self.synced_to_qb,
            "syncedAt": self.synced_at.isoformat() if self.synced_at else None,
            "syncError": self.sync_error,
        }


class QBAccount(db.Model):
    __tablename__ = "qb_accounts"
    __table_args__ = (db.UniqueConstraint("client_id", "qb_id", name="uq_qb_accounts_client_qb_id"),)

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    qb_id = db.Column(db.Text, nullable=False)
    name = db.Column(db.Text, nullable=False)
    fully_qualified_name = db.Column(db.Text)
    account_type = db.Column(db.Text, nullable=False)
    account_sub_type = db.Column(db.Text)
    classification = db.Column(db.Text)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class QBClass(db.Model):
    __tablename__ = "qb_classes"
    __table_args__ = (db.UniqueConstraint("client_id", "qb_id", name="uq_qb_classes_client_qb_id"),)

    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    qb_id = db.Column(db.Text, nullable=False)
    name = db.Column(db.Text, nullable=False)
    fully_qualified_name = db.Column(db.Text)
    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class LearningExample(db.Model):
    __tablename__ = "learning_examples"
    id = db.Column(db.Integer, primary_key=True)
    client_id = db.Column(db.Integer, db.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False, index=True)
    transaction_id = db.Column(
        db.Integer, db.ForeignKey("transactions.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    description = db.Column(db.Text, nullable=False, default="")
    vendor = db.Column(db.Text)
    amount_cents = db.Column(db.BigInteger, nullable=False)
    correct_account_id = db.Column(db.Text, nullable=False)
    correct_account_name = db.Column(db.Text, nullable=False)
    correct_class_id = db.Column(db.Text)
    correct_class_name = db.Column(db.Text)
    ai_account_id = db.Column(db.Text)
    ai_account_name = db.Column(db.Text)
    was_correct = db.Column(db.Boolean, nullable=False, default=False)
    embedding = db.Column(JSONType)
    pinecone_id = db.Column(db.Text, unique=True, index=True)
    synced_to_pinecone = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
