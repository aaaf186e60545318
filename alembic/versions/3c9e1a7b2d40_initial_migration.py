"""Initial migration

Revision ID: 3c9e1a7b2d40
Revises:
Create Date: 2026-10-18 09:12:31.418204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c9e1a7b2d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    # Inventory
    op.create_table(
        'groups',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(['parent_id'], ['groups.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_groups_name'), 'groups', ['name'], unique=False)
    op.create_index(op.f('ix_groups_parent_id'), 'groups', ['parent_id'], unique=False)

    op.create_table(
        'devices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('alias', sa.String(length=256), nullable=False),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('os_name', sa.String(length=64), nullable=True),
        sa.Column('address', sa.String(length=64), nullable=True),
        sa.Column('disabled', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['group_id'], ['groups.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_devices_alias'), 'devices', ['alias'], unique=False)
    op.create_index('ix_devices_group', 'devices', ['group_id'], unique=False)

    op.create_table(
        'subcomponents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('device_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('module_type', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('disabled', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['device_id'], ['devices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_subcomponents_device', 'subcomponents', ['device_id'], unique=False)

    op.create_table(
        'subcomponent_links',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('subcomponent_a', sa.Integer(), nullable=False),
        sa.Column('subcomponent_b', sa.Integer(), nullable=False),
        sa.Column('disabled', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['subcomponent_a'], ['subcomponents.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['subcomponent_b'], ['subcomponents.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_subcomponent_links_a', 'subcomponent_links', ['subcomponent_a'], unique=False)
    op.create_index('ix_subcomponent_links_b', 'subcomponent_links', ['subcomponent_b'], unique=False)

    op.create_table(
        'discovery_tasks',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('subnet', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    # Network maps
    op.create_table(
        'network_maps',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('group_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=16), nullable=False),
        sa.Column('source_data', sa.String(length=64), nullable=True),
        sa.Column('generation_method', sa.String(length=16), nullable=False),
        sa.Column('filter', sa.JSON(), nullable=True),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('width', sa.Integer(), nullable=False),
        sa.Column('height', sa.Integer(), nullable=False),
        sa.Column('center_x', sa.Float(), nullable=False),
        sa.Column('center_y', sa.Float(), nullable=False),
        sa.Column('source_period', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_network_maps_name'), 'network_maps', ['name'], unique=False)

    op.create_table(
        'network_map_nodes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('map_id', sa.String(length=32), nullable=False),
        sa.Column('id_node', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=True),
        sa.Column('device_id', sa.Integer(), nullable=True),
        sa.Column('parent_id', sa.String(length=64), nullable=True),
        sa.Column('label', sa.String(length=256), nullable=False),
        sa.Column('x', sa.Float(), nullable=False),
        sa.Column('y', sa.Float(), nullable=False),
        sa.Column('z', sa.Integer(), nullable=False),
        sa.Column('state', sa.String(length=32), nullable=False),
        sa.Column('deleted', sa.Boolean(), nullable=False),
        sa.Column('style', sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(['map_id'], ['network_maps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_network_map_nodes_map', 'network_map_nodes', ['map_id'], unique=False)
    op.create_index('ix_network_map_nodes_map_node', 'network_map_nodes', ['map_id', 'id_node'], unique=True)

    op.create_table(
        'network_map_relations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('map_id', sa.String(length=32), nullable=False),
        sa.Column('parent_node_id', sa.Integer(), nullable=False),
        sa.Column('child_node_id', sa.Integer(), nullable=False),
        sa.Column('parent_type', sa.String(length=16), nullable=False),
        sa.Column('child_type', sa.String(length=16), nullable=False),
        sa.Column('parent_source_id', sa.Integer(), nullable=True),
        sa.Column('child_source_id', sa.Integer(), nullable=True),
        sa.Column('parent_device_id', sa.Integer(), nullable=True),
        sa.Column('child_device_id', sa.Integer(), nullable=True),
        sa.Column('link_color', sa.String(length=16), nullable=True),
        sa.Column('text_start', sa.Text(), nullable=True),
        sa.Column('text_end', sa.Text(), nullable=True),
        sa.Column('deleted', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['map_id'], ['network_maps.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_network_map_relations_map', 'network_map_relations', ['map_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_network_map_relations_map', table_name='network_map_relations')
    op.drop_table('network_map_relations')
    op.drop_index('ix_network_map_nodes_map_node', table_name='network_map_nodes')
    op.drop_index('ix_network_map_nodes_map', table_name='network_map_nodes')
    op.drop_table('network_map_nodes')
    op.drop_index(op.f('ix_network_maps_name'), table_name='network_maps')
    op.drop_table('network_maps')
    op.drop_table('discovery_tasks')
    op.drop_index('ix_subcomponent_links_b', table_name='subcomponent_links')
    op.drop_index('ix_subcomponent_links_a', table_name='subcomponent_links')
    op.drop_table('subcomponent_links')
    op.drop_index('ix_subcomponents_device', table_name='subcomponents')
    op.drop_table('subcomponents')
    op.drop_index('ix_devices_group', table_name='devices')
    op.drop_index(op.f('ix_devices_alias'), table_name='devices')
    op.drop_table('devices')
    op.drop_index(op.f('ix_groups_parent_id'), table_name='groups')
    op.drop_index(op.f('ix_groups_name'), table_name='groups')
    op.drop_table('groups')
