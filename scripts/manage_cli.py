import sys
import argparse
from os.path import abspath, dirname

root_dir = dirname(dirname(abspath(__file__)))
sys.path.append(root_dir)

from app.db.session import SessionLocal
from app.db.semilla import sembrar_administrador, sembrar_arbol_gestion, NOMBRE_ROL_ADMIN
from app.core import security
from app.services import rol_service
from app.models import Usuario

from sqlalchemy import select

# --- Funciones de Gestión ---

def seed(db, nombre: str, email: str | None):
    """Crea el árbol de gestión, el rol administrador y un usuario con ese rol."""
    print(f"Sembrando árbol de gestión y usuario administrador '{nombre}'...")
    try:
        usuario = sembrar_administrador(db, nombre_usuario=nombre, email=email)
        db.commit()
        db.refresh(usuario)
    except Exception as e:
        db.rollback()
        print(f"❌ Error inesperado al sembrar los datos iniciales: {e}")
        return
    print(f"✅ Usuario '{usuario.nombre_usuario}' (ID: {usuario.id}) con rol '{NOMBRE_ROL_ADMIN}' listo.")
    print("Token de acceso:")
    print(security.create_access_token(usuario.id))

def seed_tree(db):
    """Solo crea los módulos y pestañas de gestión que falten."""
    try:
        sembrar_arbol_gestion(db)
        db.commit()
        print("✅ Árbol de gestión creado/verificado.")
    except Exception as e:
        db.rollback()
        print(f"❌ Error al crear el árbol de gestión: {e}")

def issue_token(db, nombre: str):
    """Emite un token de acceso para un usuario existente."""
    usuario = db.execute(select(Usuario).where(Usuario.nombre_usuario == nombre)).scalar_one_or_none()
    if usuario is None:
        print(f"⚠️ No se encontró ningún usuario con nombre '{nombre}'.")
        return
    if not usuario.activo:
        print(f"⚠️ El usuario '{nombre}' está inactivo.")
        return
    print(security.create_access_token(usuario.id))

def list_users_with_roles(db):
    """Muestra una lista de todos los usuarios junto con sus roles asignados."""
    print("\n--- LISTA DE USUARIOS Y ROLES ---")
    all_users = db.execute(select(Usuario).order_by(Usuario.id)).scalars().all()
    if not all_users:
        print("-> No se encontraron usuarios en la base de datos.")
        return
    print(f"{'ROL':<18} | {'NOMBRE DE USUARIO':<25} | {'EMAIL'}")
    print("-" * 70)
    for user in all_users:
        rol_nombre = user.rol.nombre if user.rol else "SIN ROL"
        email = user.email if user.email else "No especificado"
        print(f"{rol_nombre:<18} | {user.nombre_usuario:<25} | {email}")
    print("-" * 70)
    print(f"Total: {len(all_users)} usuarios.")

def list_roles_only(db):
    """Muestra una lista de todos los roles vigentes."""
    print("\n--- LISTA DE ROLES DEL SISTEMA ---")
    all_roles = rol_service.get_multi(db, skip=0, limit=100)
    if not all_roles:
        print("-> No se encontraron roles en la base de datos.")
        return
    print(f"{'ID':<6} | {'ROL':<30} | {'ABREVIATURA'}")
    print("-" * 70)
    for rol in all_roles:
        print(f"{rol.id:<6} | {rol.nombre:<30} | {rol.abreviatura}")
    print("-" * 70)
    print(f"Total: {len(all_roles)} roles.")

# --- Interfaz de Línea de Comandos Principal ---

def main():
    parser = argparse.ArgumentParser(description="Herramienta CLI para gestionar el control de acceso de la intranet.")
    subparsers = parser.add_subparsers(dest="command", help="Comandos disponibles", required=True)

    # Comando para sembrar datos iniciales
    parser_seed = subparsers.add_parser("sembrar", help="Crear árbol de gestión, rol administrador y usuario.")
    parser_seed.add_argument("--usuario", type=str, required=True, help="Nombre de usuario del administrador.")
    parser_seed.add_argument("--email", type=str, required=False, default=None, help="Email del administrador.")

    subparsers.add_parser("sembrar-arbol", help="Crear solo los módulos y pestañas de gestión.")

    parser_token = subparsers.add_parser("token", help="Emitir un token de acceso para un usuario.")
    parser_token.add_argument("--usuario", type=str, required=True, help="Nombre de usuario.")

    # Comando para listar usuarios y roles
    subparsers.add_parser("list-users", help="Mostrar una lista de todos los usuarios y sus roles.")

    # Comando para listar solo los roles
    subparsers.add_parser("list-roles", help="Mostrar una lista de todos los roles del sistema.")

    args = parser.parse_args()
    db = SessionLocal()
    try:
        if args.command == "sembrar":
            seed(db, nombre=args.usuario, email=args.email)
        elif args.command == "sembrar-arbol":
            seed_tree(db)
        elif args.command == "token":
            issue_token(db, nombre=args.usuario)
        elif args.command == "list-users":
            list_users_with_roles(db)
        elif args.command == "list-roles":
            list_roles_only(db)
    finally:
        db.close()

if __name__ == "__main__":
    main()
