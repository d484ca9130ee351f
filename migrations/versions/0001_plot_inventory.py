"""physical plots and contract plots

Revision ID: 0001_plot_inventory
Revises:
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_plot_inventory'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'physical_plots',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('plot_number', sa.String(length=50), nullable=False),
        sa.Column('period', sa.String(length=100), nullable=False),
        sa.Column('area_sqm', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='available'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_physical_plots_plot_number', 'physical_plots', ['plot_number'], unique=False)
    op.create_index('ix_physical_plots_period', 'physical_plots', ['period'], unique=False)
    op.create_index('ix_physical_plots_status', 'physical_plots', ['status'], unique=False)
    op.create_index('ix_physical_plots_deleted_at', 'physical_plots', ['deleted_at'], unique=False)

    op.create_table(
        'contract_plots',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column(
            'physical_plot_id',
            sa.String(length=36),
            sa.ForeignKey('physical_plots.id', ondelete='RESTRICT'),
            nullable=False,
        ),
        sa.Column('contract_area_sqm', sa.Numeric(10, 2), nullable=False),
        sa.Column('sale_status', sa.String(length=20), nullable=False, server_default='contracted'),
        sa.Column('location_description', sa.String(length=500), nullable=True),
        sa.Column('lifecycle_state', sa.String(length=20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('released_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_contract_plots_physical_plot_id', 'contract_plots', ['physical_plot_id'], unique=False)
    op.create_index('ix_contract_plots_lifecycle_state', 'contract_plots', ['lifecycle_state'], unique=False)
    op.create_index('ix_contract_plots_plot_state', 'contract_plots', ['physical_plot_id', 'lifecycle_state'], unique=False)


def downgrade():
    op.drop_index('ix_contract_plots_plot_state', table_name='contract_plots')
    op.drop_index('ix_contract_plots_lifecycle_state', table_name='contract_plots')
    op.drop_index('ix_contract_plots_physical_plot_id', table_name='contract_plots')
    op.drop_table('contract_plots')

    op.drop_index('ix_physical_plots_deleted_at', table_name='physical_plots')
    op.drop_index('ix_physical_plots_status', table_name='physical_plots')
    op.drop_index('ix_physical_plots_period', table_name='physical_plots')
    op.drop_index('ix_physical_plots_plot_number', table_name='physical_plots')
    op.drop_table('physical_plots')
