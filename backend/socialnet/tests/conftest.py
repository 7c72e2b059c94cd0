import os
import tempfile

# Settings the app modules read at import time
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{tempfile.gettempdir()}/socialnet-test.db")
os.environ.setdefault("JWT_SECRET", "socialnet-test-secret-0123456789abcdef")
os.environ.setdefault("FRONTEND_ORIGIN", "http://localhost:3000")
