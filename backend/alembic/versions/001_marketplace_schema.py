"""marketplace_schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('company', sa.String(255), nullable=True),
        sa.Column('status', sa.String(50), nullable=False, server_default='active'),
        sa.Column('user_role', sa.String(50), nullable=False, server_default='user'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('idx_user_email', 'users', ['email'])
    op.create_index('idx_user_status', 'users', ['status'])

    op.create_table(
        'categories',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('uuid'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'datasets',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('record_count', sa.Integer(), nullable=True),
        sa.Column('data_format', sa.String(100), nullable=True),
        sa.Column('update_frequency', sa.String(100), nullable=True),
        sa.Column('file_path', sa.String(1024), nullable=True),
        sa.Column('category_id', sa.String(36), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.UniqueConstraint('slug'),
        sa.ForeignKeyConstraint(['category_id'], ['categories.uuid'], ),
    )
    op.create_index('idx_dataset_category_id', 'datasets', ['category_id'])

    op.create_table(
        'cart_items',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('dataset_id', sa.String(36), nullable=False),
        sa.Column('added_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['user_id'], ['users.uuid'], ),
        sa.ForeignKeyConstraint(['dataset_id'], ['datasets.uuid'], ),
        sa.UniqueConstraint('user_id', 'dataset_id', name='uq_cart_user_dataset'),
    )

    op.create_table(
        'purchases',
        sa.Column('uuid', sa.String(36), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('dataset_id', sa.String(36), nullable=False),
        sa.Column('amount', sa.Float(), nullable=False),
        sa.Column('encryption_key', sa.String(128), nullable=False),
        sa.Column('status', sa.String(50), nullable=False, server_default='completed'),
        sa.Column('purchase_date', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('uuid'),
        sa.ForeignKeyConstraint(['user_id'], ['users.uuid'], ),
        sa.ForeignKeyConstraint(['dataset_id'], ['datasets.uuid'], ),
    )
    op.create_index('idx_purchase_user_id', 'purchases', ['user_id'])
    op.create_index('idx_purchase_dataset_id', 'purchases', ['dataset_id'])
    op.create_index(
        'uq_purchase_completed_user_dataset',
        'purchases',
        ['user_id', 'dataset_id'],
        unique=True,
        postgresql_where=sa.text("status = 'completed'"),
        sqlite_where=sa.text("status = 'completed'"),
    )


def downgrade() -> None:
    op.drop_index('uq_purchase_completed_user_dataset', table_name='purchases')
    op.drop_index('idx_purchase_dataset_id', table_name='purchases')
    op.drop_index('idx_purchase_user_id', table_name='purchases')
    op.drop_table('purchases')
    op.drop_table('cart_items')
    op.drop_index('idx_dataset_category_id', table_name='datasets')
    op.drop_table('datasets')
    op.drop_table('categories')
    op.drop_index('idx_user_status', table_name='users')
    op.drop_index('idx_user_email', table_name='users')
    op.drop_table('users')
