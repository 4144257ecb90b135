"""
ASGI entry point for `uvicorn server.asgi:app`.

Environment (and an optional .env file) is read once here and handed to
the app factory as an AppConfig.
"""

from dotenv import load_dotenv

load_dotenv()

from config import AppConfig  # pylint: disable=wrong-import-position
from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app(AppConfig.load_from_env())
