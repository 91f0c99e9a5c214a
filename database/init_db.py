import os
import sys

BASE_DIR = os.path.dirname(os.path.dirname(__file__))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from rfq_platform import create_app
from rfq_platform.db import DEFAULT_TENANT_ID, _ensure_demo_suppliers, get_db, init_db


app = create_app()


if __name__ == "__main__":
    with app.app_context():
        init_db()
        if os.environ.get("SEED_DEMO_SUPPLIERS", "0").strip().lower() in {"1", "true", "yes", "sim"}:
            db = get_db()
            tenant_id = os.environ.get("SEED_TENANT_ID", DEFAULT_TENANT_ID)
            _ensure_demo_suppliers(db, tenant_id)
            db.commit()
    print("Database initialized.")
