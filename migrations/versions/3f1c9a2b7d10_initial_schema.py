"""initial schema

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-19 09:12:44.118203

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '3f1c9a2b7d10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('clerk_id', sa.Text(), nullable=True),
    sa.Column('email', sa.Text(), nullable=False),
    sa.Column('name', sa.Text(), nullable=True),
    sa.Column('password_hash', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_clerk_id'), ['clerk_id'], unique=True)

    op.create_table('clients',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('user_id', sa.Integer(), nullable=False),
    sa.Column('name', sa.Text(), nullable=False),
    sa.Column('qb_realm_id', sa.Text(), nullable=False),
    sa.Column('qb_access_token', sa.Text(), nullable=False),
    sa.Column('qb_refresh_token', sa.Text(), nullable=False),
    sa.Column('qb_token_expiry', sa.DateTime(), nullable=False),
    sa.Column('qb_environment', sa.Text(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('last_sync_at', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('qb_realm_id')
    )
    with op.batch_alter_table('clients', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_clients_user_id'), ['user_id'], unique=False)

    op.create_table('qb_accounts',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('client_id', sa.Integer(), nullable=False),
    sa.Column('qb_id', sa.Text(), nullable=False),
    sa.Column('name', sa.Text(), nullable=False),
    sa.Column('fully_qualified_name', sa.Text(), nullable=True),
    sa.Column('account_type', sa.Text(), nullable=False),
    sa.Column('account_sub_type', sa.Text(), nullable=True),
    sa.Column('classification', sa.Text(), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('client_id', 'qb_id', name='uq_qb_accounts_client_qb_id')
    )
    with op.batch_alter_table('qb_accounts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_qb_accounts_client_id'), ['client_id'], unique=False)

    op.create_table('qb_classes',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('client_id', sa.Integer(), nullable=False),
    sa.Column('qb_id', sa.Text(), nullable=False),
    sa.Column('name', sa.Text(), nullable=False),
    sa.Column('fully_qualified_name', sa.Text(), nullable=True),
    sa.Column('active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('client_id', 'qb_id', name='uq_qb_classes_client_qb_id')
    )
    with op.batch_alter_table('qb_classes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_qb_classes_client_id'), ['client_id'], unique=False)

    op.create_table('transactions',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('client_id', sa.Integer(), nullable=False),
    sa.Column('qb_id', sa.Text(), nullable=False),
    sa.Column('qb_type', sa.Text(), nullable=False),
    sa.Column('txn_date', sa.Date(), nullable=False),
    sa.Column('amount_cents', sa.BigInteger(), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('vendor', sa.Text(), nullable=True),
    sa.Column('customer', sa.Text(), nullable=True),
    sa.Column('memo', sa.Text(), nullable=True),
    sa.Column('original_account_id', sa.Text(), nullable=True),
    sa.Column('original_account_name', sa.Text(), nullable=True),
    sa.Column('original_class_id', sa.Text(), nullable=True),
    sa.Column('original_class_name', sa.Text(), nullable=True),
    sa.Column('ai_account_id', sa.Text(), nullable=True),
    sa.Column('ai_account_name', sa.Text(), nullable=True),
    sa.Column('ai_class_id', sa.Text(), nullable=True),
    sa.Column('ai_class_name', sa.Text(), nullable=True),
    sa.Column('ai_confidence_score', sa.Float(), nullable=True),
    sa.Column('ai_reasoning_notes', sa.Text(), nullable=True),
    sa.Column('status', sa.Text(), nullable=False),
    sa.Column('reviewed_at', sa.DateTime(), nullable=True),
    sa.Column('final_account_id', sa.Text(), nullable=True),
    sa.Column('final_account_name', sa.Text(), nullable=True),
    sa.Column('final_class_id', sa.Text(), nullable=True),
    sa.Column('final_class_name', sa.Text(), nullable=True),
    sa.Column('synced_to_qb', sa.Boolean(), nullable=False),
    sa.Column('synced_at', sa.DateTime(), nullable=True),
    sa.Column('sync_error', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('client_id', 'qb_id', name='uq_transactions_client_qb_id')
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_transactions_client_id'), ['client_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_txn_date'), ['txn_date'], unique=False)

    op.create_table('learning_examples',
    sa.Column('id', sa.Integer(), nullable=False),
    sa.Column('client_id', sa.Integer(), nullable=False),
    sa.Column('transaction_id', sa.Integer(), nullable=False),
    sa.Column('description', sa.Text(), nullable=False),
    sa.Column('vendor', sa.Text(), nullable=True),
    sa.Column('amount_cents', sa.BigInteger(), nullable=False),
    sa.Column('correct_account_id', sa.Text(), nullable=False),
    sa.Column('correct_account_name', sa.Text(), nullable=False),
    sa.Column('correct_class_id', sa.Text(), nullable=True),
    sa.Column('correct_class_name', sa.Text(), nullable=True),
    sa.Column('ai_account_id', sa.Text(), nullable=True),
    sa.Column('ai_account_name', sa.Text(), nullable=True),
    sa.Column('was_correct', sa.Boolean(), nullable=False),
    sa.Column('embedding', sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql'), nullable=True),
    sa.Column('pinecone_id', sa.Text(), nullable=True),
    sa.Column('synced_to_pinecone', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
    sa.ForeignKeyConstraint(['transaction_id'], ['transactions.id'], ondelete='CASCADE'),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('transaction_id')
    )
    with op.batch_alter_table('learning_examples', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_learning_examples_client_id'), ['client_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_learning_examples_pinecone_id'), ['pinecone_id'], unique=True)


def downgrade():
    with op.batch_alter_table('learning_examples', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_learning_examples_pinecone_id'))
        batch_op.drop_index(batch_op.f('ix_learning_examples_client_id'))

    op.drop_table('learning_examples')
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_transactions_txn_date'))
        batch_op.drop_index(batch_op.f('ix_transactions_status'))
        batch_op.drop_index(batch_op.f('ix_transactions_client_id'))

    op.drop_table('transactions')
    with op.batch_alter_table('qb_classes', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_qb_classes_client_id'))

    op.drop_table('qb_classes')
    with op.batch_alter_table('qb_accounts', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_qb_accounts_client_id'))

    op.drop_table('qb_accounts')
    with op.batch_alter_table('clients', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_clients_user_id'))

    op.drop_table('clients')
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_users_clerk_id'))

    op.drop_table('users')
