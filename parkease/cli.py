"""Small CLI helpers wired to project scripts for developer convenience.

Usage (from project root):
  runserver --host=0.0.0.0 --port=8000 --no-reload
  run-tests
  migrate                   # defaults to `alembic upgrade head`
  init-env                  # copies .env.example -> .env if missing
  sweep-sessions            # one-off session sweep, same as the beat task
  create-user --username=<name> [--password=<pw>] [--full-name=<name>]
              [--type=premium|admin|guest] [--role=owner|manager|operator]
              [--max-devices=<n>] [--multi-device]
"""
from __future__ import annotations

import getpass
import shutil
import subprocess
import sys
from pathlib import Path
from typing import List


def _args() -> List[str]:
    return sys.argv[1:]


def _flag(name: str, default=None):
    prefix = f"--{name}="
    for a in _args():
        if a.startswith(prefix):
            return a.split("=", 1)[1]
    return default


def runserver() -> None:
    """Run Uvicorn programmatically. Accepts simple flags:

    --host=<host>  (default 127.0.0.1)
    --port=<port>  (default 8000)
    --no-reload    (disable auto-reload)
    """
    import uvicorn

    host = _flag("host", "127.0.0.1")
    port = 8000
    reload = "--no-reload" not in _args()

    raw_port = _flag("port")
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError:
            print(f"Ignoring invalid port {raw_port!r}, using {port}")

    print(f"Starting uvicorn on {host}:{port} (reload={reload})")
    uvicorn.run("parkease.main:app", host=host, port=port, reload=reload)


def run_tests() -> None:
    """Run pytest with any forwarded args."""
    cmd = ["pytest"] + _args()
    subprocess.run(cmd, check=True)


def run_migrations() -> None:
    """Run alembic. If no args provided, runs `alembic upgrade head`."""
    args = _args()
    cmd = ["alembic"] + args if args else ["alembic", "upgrade", "head"]
    subprocess.run(cmd, check=True)


def init_env() -> None:
    """Copy `.env.example` to `.env` if `.env` is missing."""
    root = Path(__file__).resolve().parents[1]
    src = root / ".env.example"
    dst = root / ".env"
    if dst.exists():
        print(f".env already exists at {dst}")
        return
    if not src.exists():
        print(f".env.example not found at {src}")
        return
    shutil.copy(src, dst)
    print(f"Created .env from .env.example at {dst}")


def sweep_sessions() -> None:
    """Run the session sweep once against the configured database."""
    from parkease.core.database import SessionLocal
    from parkease.core.logger import setup_logging
    from parkease.services.session_service import SessionService

    setup_logging()
    db = SessionLocal()
    try:
        deleted = SessionService.sweep(db)
    finally:
        db.close()
    print(f"Removed {deleted} session row(s)")


def create_user() -> None:
    """Create a password account (premium by default)."""
    from parkease.core.constants import UserRole, UserType
    from parkease.core.database import SessionLocal
    from parkease.core.security import hash_password
    from parkease.models.user import User

    username = _flag("username")
    if not username:
        print("--username=<name> is required")
        sys.exit(1)

    user_type = _flag("type", UserType.PREMIUM.value)
    role = _flag("role", UserRole.OWNER.value)
    valid_types = {t.value for t in UserType}
    valid_roles = {r.value for r in UserRole}
    if user_type not in valid_types or role not in valid_roles:
        print(f"--type must be one of {sorted(valid_types)}, --role one of {sorted(valid_roles)}")
        sys.exit(1)

    password = _flag("password")
    if password is None and user_type != UserType.GUEST.value:
        password = getpass.getpass("Password: ")

    db = SessionLocal()
    try:
        if db.query(User).filter(User.username == username.strip().lower()).first():
            print(f"User {username} already exists")
            sys.exit(1)

        user = User(
            username=username,
            full_name=_flag("full-name"),
            password_hash=hash_password(password) if password else None,
            user_type=user_type,
            role=role,
            multi_device_enabled="--multi-device" in _args(),
        )
        max_devices = _flag("max-devices")
        if max_devices:
            user.max_devices = int(max_devices)
        db.add(user)
        db.commit()
        user.business_id = f"biz_{user.id.replace('-', '')}"
        db.commit()
        print(f"Created {user_type} user {user.username} ({user.id})")
    finally:
        db.close()


if __name__ == "__main__":
    # Allow running the helpers directly: python -m parkease.cli runserver
    if len(sys.argv) <= 1:
        print(__doc__)
        sys.exit(0)
    cmd = sys.argv[1]
    sys.argv.pop(1)
    if cmd == "runserver":
        runserver()
    elif cmd in ("run-tests", "tests", "test"):
        run_tests()
    elif cmd in ("migrate", "alembic"):
        run_migrations()
    elif cmd in ("init-env", "initenv"):
        init_env()
    elif cmd in ("sweep-sessions", "sweep"):
        sweep_sessions()
    elif cmd in ("create-user", "createuser"):
        create_user()
    else:
        print(f"Unknown command: {cmd}")
