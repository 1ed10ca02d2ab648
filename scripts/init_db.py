import sys
from pathlib import Path

# Ensure project root is on sys.path when running as a script
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from jwt_auth_sample.config import load_config
from jwt_auth_sample.db import ConnectionPool, init_db


def main() -> None:
    cfg = load_config()
    pool = ConnectionPool(cfg.DB_DSN, minconn=1, maxconn=1)
    try:
        init_db(pool)
    finally:
        pool.close()

    print(f"DB initialized ({pool.dialect})")


if __name__ == "__main__":
    main()
