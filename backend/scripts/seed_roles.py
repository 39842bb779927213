#!/usr/bin/env python
"""Idempotent seed script for permissions, the five system roles and the first admin.

Usage:
    python backend/scripts/seed_roles.py               # seed normally
    python backend/scripts/seed_roles.py --show-roles  # print role -> permission counts
    python backend/scripts/seed_roles.py --dry-run     # run logic then rollback (no DB changes)
    python backend/scripts/seed_roles.py --create-schema  # create tables first (no Alembic)
"""
from __future__ import annotations
import argparse
import os
import sys

# Allow running from repo root
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tailorshop import create_app, get_db  # noqa: E402
from tailorshop.models.authz import Base  # noqa: E402
from tailorshop.services.seed import seed_all, summarize_roles  # noqa: E402


def print_role_summary(session):
    rows = summarize_roles(session)
    if not rows:
        print("[INFO] No roles present.")
        return
    name_w = max(len(r[0]) for r in rows)
    print(f"{'Role'.ljust(name_w)} | Count | Sample (up to 8)")
    print('-' * (name_w + 40))
    for name, cnt, sample in rows:
        print(f"{name.ljust(name_w)} | {str(cnt).rjust(5)} | {', '.join(sample)}")


def parse_args():
    p = argparse.ArgumentParser(description="Seed permissions, roles and the initial admin")
    p.add_argument('--show-roles', action='store_true', help='Print role permission summary after seeding')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    p.add_argument('--create-schema', action='store_true', help='Create missing tables before seeding')
    p.add_argument('--no-admin', action='store_true', help='Skip creating the SEED_ADMIN_EMAIL account')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        if args.create_schema:
            Base.metadata.create_all(session.get_bind())
        try:
            admin_email = None if args.no_admin else app.config['SEED_ADMIN_EMAIL']
            counts = seed_all(session, admin_email, app.config['SEED_ADMIN_PASSWORD'])
            if args.dry_run:
                session.rollback()
                print(f"[DRY-RUN] (rolled back) would create: {counts}")
            else:
                session.commit()
                print(f"[DONE] created: {counts}")
            if args.show_roles:
                print('\nRole Permission Summary:')
                print_role_summary(session)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


if __name__ == '__main__':
    main()
