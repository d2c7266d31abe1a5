"""
Creacion inicial del arbol de navegacion, roles, asignaciones y auditoria

Revision ID: 1b7e4c2d9a31
Revises:
Create Date: 2025-12-04 10:12:08.114562

Descripción:
Crea las tablas del control de acceso de la intranet. `modulos.modulo_padre_id`
se crea sin llave foránea para que un padre eliminado no invalide a sus hijos.
Los datos iniciales (árbol de gestión y rol administrador) se siembran con
`python scripts/manage_cli.py sembrar`.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '1b7e4c2d9a31'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """
    Ejecuta todos los comandos para construir la base de datos desde cero.
    """
    op.create_table('roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(length=100), nullable=False),
        sa.Column('abreviatura', sa.String(length=10), nullable=False),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('fecha_modificacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_roles')),
        sa.UniqueConstraint('abreviatura', name=op.f('uq_roles_abreviatura')),
    )
    op.create_index(op.f('ix_roles_nombre'), 'roles', ['nombre'], unique=True)

    op.create_table('usuarios',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nombre_usuario', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('rol_id', sa.Integer(), nullable=True),
        sa.Column('activo', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['rol_id'], ['roles.id'], name=op.f('fk_usuarios_rol_id_roles')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_usuarios')),
        sa.UniqueConstraint('email', name=op.f('uq_usuarios_email')),
    )
    op.create_index(op.f('ix_usuarios_nombre_usuario'), 'usuarios', ['nombre_usuario'], unique=True)
    op.create_index(op.f('ix_usuarios_rol_id'), 'usuarios', ['rol_id'], unique=False)

    op.create_table('modulos',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(length=50), nullable=False),
        sa.Column('icono', sa.String(length=50), nullable=False),
        sa.Column('ruta', sa.String(length=255), nullable=False),
        sa.Column('es_padre', sa.Boolean(), nullable=False),
        sa.Column('modulo_padre_id', sa.Integer(), nullable=True),
        sa.Column('permisos_extra', sa.JSON(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('fecha_modificacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_modulos')),
        sa.UniqueConstraint('nombre', name=op.f('uq_modulos_nombre')),
        sa.UniqueConstraint('ruta', name=op.f('uq_modulos_ruta')),
    )
    op.create_index(op.f('ix_modulos_modulo_padre_id'), 'modulos', ['modulo_padre_id'], unique=False)

    op.create_table('pestanas',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('modulo_id', sa.Integer(), nullable=False),
        sa.Column('nombre', sa.String(length=50), nullable=False),
        sa.Column('ruta', sa.String(length=255), nullable=False),
        sa.Column('permisos_extra', sa.JSON(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('fecha_modificacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['modulo_id'], ['modulos.id'], name=op.f('fk_pestanas_modulo_id_modulos')),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_pestanas')),
        sa.UniqueConstraint('modulo_id', 'nombre', name=op.f('uq_pestanas_modulo_id_nombre')),
        sa.UniqueConstraint('modulo_id', 'ruta', name=op.f('uq_pestanas_modulo_id_ruta')),
    )
    op.create_index(op.f('ix_pestanas_modulo_id'), 'pestanas', ['modulo_id'], unique=False)

    op.create_table('modulo_rol',
        sa.Column('rol_id', sa.Integer(), nullable=False),
        sa.Column('modulo_id', sa.Integer(), nullable=False),
        sa.Column('permisos', sa.JSON(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('fecha_modificacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['modulo_id'], ['modulos.id'], name=op.f('fk_modulo_rol_modulo_id_modulos'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rol_id'], ['roles.id'], name=op.f('fk_modulo_rol_rol_id_roles'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('rol_id', 'modulo_id', name='pk_modulo_rol'),
    )

    op.create_table('pestana_rol',
        sa.Column('rol_id', sa.Integer(), nullable=False),
        sa.Column('pestana_id', sa.Integer(), nullable=False),
        sa.Column('permisos', sa.JSON(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('fecha_modificacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['pestana_id'], ['pestanas.id'], name=op.f('fk_pestana_rol_pestana_id_pestanas'), ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['rol_id'], ['roles.id'], name=op.f('fk_pestana_rol_rol_id_roles'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('rol_id', 'pestana_id', name='pk_pestana_rol'),
    )

    op.create_table('auditorias',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('tabla_afectada', sa.String(length=100), nullable=False),
        sa.Column('id_registro_afectado', sa.String(length=100), nullable=False),
        sa.Column('accion', sa.String(length=10), nullable=False),
        sa.Column('usuario_id', sa.Integer(), nullable=True),
        sa.Column('cambios', sa.JSON(), nullable=True),
        sa.Column('fecha_creacion', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_auditorias')),
    )
    op.create_index(op.f('ix_auditorias_tabla_afectada'), 'auditorias', ['tabla_afectada'], unique=False)
    op.create_index(op.f('ix_auditorias_usuario_id'), 'auditorias', ['usuario_id'], unique=False)
    op.create_index(op.f('ix_auditorias_fecha_creacion'), 'auditorias', ['fecha_creacion'], unique=False)


def downgrade() -> None:
    """
    Revierte la base de datos a un estado vacío; primero las tablas que dependen de otras.
    """
    op.drop_index(op.f('ix_auditorias_fecha_creacion'), table_name='auditorias')
    op.drop_index(op.f('ix_auditorias_usuario_id'), table_name='auditorias')
    op.drop_index(op.f('ix_auditorias_tabla_afectada'), table_name='auditorias')
    op.drop_table('auditorias')
    op.drop_table('pestana_rol')
    op.drop_table('modulo_rol')
    op.drop_index(op.f('ix_pestanas_modulo_id'), table_name='pestanas')
    op.drop_table('pestanas')
    op.drop_index(op.f('ix_modulos_modulo_padre_id'), table_name='modulos')
    op.drop_table('modulos')
    op.drop_index(op.f('ix_usuarios_rol_id'), table_name='usuarios')
    op.drop_index(op.f('ix_usuarios_nombre_usuario'), table_name='usuarios')
    op.drop_table('usuarios')
    op.drop_index(op.f('ix_roles_nombre'), table_name='roles')
    op.drop_table('roles')
