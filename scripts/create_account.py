"""Create an account from the command line.

Usage:
  python scripts/create_account.py --email alice@example.com --password '...'

Goes through the same hashing and duplicate checks as POST /signup.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from jwt_auth_sample.auth import AccountStore, AuthService
from jwt_auth_sample.config import load_config
from jwt_auth_sample.db import ConnectionPool, init_db
from jwt_auth_sample.errors import AuthError


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    pool = ConnectionPool(cfg.DB_DSN, minconn=1, maxconn=1)
    try:
        init_db(pool)
        service = AuthService(AccountStore(pool), cfg)
        service.sign_up(args.email, args.password)
    except AuthError as e:
        print(f"Error ({e.status_code}): {e.message}")
        return 1
    finally:
        pool.close()

    print(f"Created account: {args.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
