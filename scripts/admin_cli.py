#!/usr/bin/env python3
"""BeginAI admin maintenance commands
Role management and content cleanup against the production Firestore.

Requires GOOGLE_APPLICATION_CREDENTIALS (or serviceAccountKey.json) and the
Firebase project settings in the environment or .env.

Usage:
  python scripts/admin_cli.py set-role <uid> admin
  python scripts/admin_cli.py check-role <uid>
  python scripts/admin_cli.py cleanup-modules --yes
  python scripts/admin_cli.py clear-content --yes
"""
import argparse
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT_DIR))

from services.admin_service import AdminService  # noqa: E402
from services.user_service import UserService, VALID_ROLES  # noqa: E402
from utils.config import load_config  # noqa: E402
from utils.firebase_app import get_db  # noqa: E402
from utils.logger import configure_logging  # noqa: E402

logger = logging.getLogger(__name__)


def set_role(db, config, args):
    UserService(db, timezone_name=config.timezone).set_user_role(args.uid, args.role)
    print(f"✅ Role for {args.uid} set to {args.role}")
    return 0


def check_role(db, config, args):
    role = UserService(db, timezone_name=config.timezone).check_user_role(args.uid)
    if role is None:
        print(f"❌ No profile found for {args.uid}")
        return 1
    print(f"{args.uid}: {role}")
    return 0


def cleanup_modules(db, config, args):
    if not args.yes:
        print("This deletes every module and lesson. Re-run with --yes to confirm.")
        return 1
    print("🧹 Deleting all modules and lessons, keeping learning paths...")
    stats = AdminService(db, admin_emails=config.admin_emails).cleanup_modules()
    print(f"✅ Removed {stats['deletedModules']} modules and {stats['deletedLessons']} lessons")
    return 0


def clear_content(db, config, args):
    if not args.yes:
        print("This deletes every learning path, module and lesson. Re-run with --yes to confirm.")
        return 1
    stats = AdminService(db, admin_emails=config.admin_emails).clear_all_content()
    print(f"✅ Removed {stats['deletedPaths']} paths, {stats['deletedModules']} modules "
          f"and {stats['deletedLessons']} lessons")
    return 0


def build_parser():
    parser = argparse.ArgumentParser(description="BeginAI admin maintenance commands")
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("set-role", help="Set a user's role")
    p.add_argument("uid", help="Firebase Auth UID")
    p.add_argument("role", choices=VALID_ROLES, help="Role to assign")
    p.set_defaults(func=set_role)

    p = subparsers.add_parser("check-role", help="Show a user's role")
    p.add_argument("uid", help="Firebase Auth UID")
    p.set_defaults(func=check_role)

    p = subparsers.add_parser("cleanup-modules", help="Delete all modules and lessons, keep paths")
    p.add_argument("--yes", action="store_true", help="Confirm deletion")
    p.set_defaults(func=cleanup_modules)

    p = subparsers.add_parser("clear-content", help="Delete all learning content")
    p.add_argument("--yes", action="store_true", help="Confirm deletion")
    p.set_defaults(func=clear_content)

    return parser


def main(argv=None, db=None):
    args = build_parser().parse_args(argv)
    config = load_config()
    configure_logging(config)

    try:
        db = db if db is not None else get_db(config)
        return args.func(db, config, args)
    except Exception as e:
        logger.error(f"{args.command} failed: {str(e)}")
        print(f"❌ {args.command} failed: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
