"""Initial schema - users, admin registry, documents, download ledger, logins

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('uid', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('display_name', sa.String(length=255), nullable=True),
        sa.Column('photo_url', sa.String(length=1024), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('program', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('uid')
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('idx_user_role', 'users', ['role'])

    op.create_table(
        'roles_admin',
        sa.Column('uid', sa.String(length=128), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('granted_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('uid')
    )

    op.create_table(
        'documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=100), nullable=False),
        sa.Column('file_url', sa.String(length=1024), nullable=False),
        sa.Column('file_type', sa.String(length=100), nullable=True),
        sa.Column('uploaded_by', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('download_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['uploaded_by'], ['users.uid'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('download_count >= 0', name='ck_document_download_count_nonnegative')
    )
    op.create_index('ix_documents_id', 'documents', ['id'])
    op.create_index('idx_document_created', 'documents', ['created_at'])
    op.create_index('idx_document_category', 'documents', ['category'])

    op.create_table(
        'downloads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('document_title', sa.String(length=255), nullable=False),
        sa.Column('student_id', sa.String(length=128), nullable=False),
        sa.Column('student_name', sa.String(length=255), nullable=False),
        sa.Column('student_program', sa.String(length=100), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id']),
        sa.ForeignKeyConstraint(['student_id'], ['users.uid']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_downloads_id', 'downloads', ['id'])
    op.create_index('idx_download_timestamp', 'downloads', ['timestamp'])
    op.create_index('idx_download_document', 'downloads', ['document_id'])
    op.create_index('idx_download_student', 'downloads', ['student_id'])

    op.create_table(
        'logins',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=128), nullable=False),
        sa.Column('user_name', sa.String(length=255), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.uid']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_logins_id', 'logins', ['id'])
    op.create_index('idx_login_timestamp', 'logins', ['timestamp'])


def downgrade() -> None:
    op.drop_table('logins')
    op.drop_table('downloads')
    op.drop_table('documents')
    op.drop_table('roles_admin')
    op.drop_table('users')
