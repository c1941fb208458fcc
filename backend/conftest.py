"""
Pytest configuration file for backend testing.
"""
import os
import sys
from pathlib import Path

# Add the backend directory to Python path so imports work correctly
backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Tests build their own engines; keep the module-level engine off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")

# Import all models to ensure SQLAlchemy relationships work
from modules.loyalty.models import loyalty_models, rewards_models  # noqa: E402,F401
