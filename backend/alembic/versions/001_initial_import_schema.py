"""Create template, page, page file and import session tables

Revision ID: 001_initial_import_schema
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001_initial_import_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'templates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_templates_name', 'templates', ['name'], unique=True)

    op.create_table(
        'pages',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=True),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['parent_id'], ['pages.id']),
        sa.ForeignKeyConstraint(['template_id'], ['templates.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parent_id', 'name', name='unique_parent_page_name'),
    )
    op.create_index('ix_pages_parent_id', 'pages', ['parent_id'])
    op.create_index('ix_pages_template_id', 'pages', ['template_id'])
    op.create_index('ix_pages_name', 'pages', ['name'])
    op.create_index('ix_pages_title', 'pages', ['title'])

    op.create_table(
        'template_fields',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('template_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('label', sa.String(length=255), nullable=True),
        sa.Column('kind', sa.String(length=20), nullable=False),
        sa.Column('max_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('target_template_id', sa.Integer(), nullable=True),
        sa.Column('create_parent_id', sa.Integer(), nullable=True),
        sa.Column('create_template_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['template_id'], ['templates.id']),
        sa.ForeignKeyConstraint(['parent_id'], ['pages.id']),
        sa.ForeignKeyConstraint(['target_template_id'], ['templates.id']),
        sa.ForeignKeyConstraint(['create_parent_id'], ['pages.id']),
        sa.ForeignKeyConstraint(['create_template_id'], ['templates.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('template_id', 'name', name='unique_template_field'),
    )
    op.create_index('ix_template_fields_template_id', 'template_fields', ['template_id'])

    op.create_table(
        'page_files',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('page_id', sa.Integer(), nullable=False),
        sa.Column('field_name', sa.String(length=100), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('source', sa.String(length=2000), nullable=False),
        sa.Column('sort', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['page_id'], ['pages.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_page_files_page_id', 'page_files', ['page_id'])
    op.create_index('ix_page_files_field_name', 'page_files', ['field_name'])

    op.create_table(
        'import_sessions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('config', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )


def downgrade() -> None:
    op.drop_table('import_sessions')
    op.drop_index('ix_page_files_field_name', table_name='page_files')
    op.drop_index('ix_page_files_page_id', table_name='page_files')
    op.drop_table('page_files')
    op.drop_index('ix_template_fields_template_id', table_name='template_fields')
    op.drop_table('template_fields')
    op.drop_index('ix_pages_title', table_name='pages')
    op.drop_index('ix_pages_name', table_name='pages')
    op.drop_index('ix_pages_template_id', table_name='pages')
    op.drop_index('ix_pages_parent_id', table_name='pages')
    op.drop_table('pages')
    op.drop_index('ix_templates_name', table_name='templates')
    op.drop_table('templates')
