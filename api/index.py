# api/index.py - Vercel entry point; the Python runtime serves the WSGI `app`
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app import create_app  # noqa: E402

app = create_app()
