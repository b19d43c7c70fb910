"""initial create users and profile records

Revision ID: 001
Revises: 
Create Date: 2026-10-18 21:40:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Criar tabela users
    op.create_table(
        'users',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('email', sa.String(length=200), nullable=False),
        sa.Column('password_hash', sa.String(length=200), nullable=False),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('crm', sa.String(length=20), nullable=True),
        sa.Column('cnpj', sa.String(length=18), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Índice único para e-mail
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Criar tabela profile_records
    op.create_table(
        'profile_records',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('collection', sa.String(length=50), nullable=False),
        sa.Column('uid', sa.String(length=32), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_profile_records_collection', 'profile_records', ['collection'])
    op.create_index('ix_profile_records_uid', 'profile_records', ['uid'])


def downgrade() -> None:
    op.drop_index('ix_profile_records_uid', table_name='profile_records')
    op.drop_index('ix_profile_records_collection', table_name='profile_records')
    op.drop_table('profile_records')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
