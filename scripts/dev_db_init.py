# scripts/dev_db_init.py
import os
import sys

# добавить корень проекта в sys.path
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from app import create_app, _seed_from_config
from extensions import db

if __name__ == "__main__":
    app = create_app("dev")
    with app.app_context():
        db.create_all()
    # департаменты и пользователи из DevConfig.DEFAULT_*
    _seed_from_config(app)
    print("DB initialized and seeded ✅")
