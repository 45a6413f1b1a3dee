from article_stream.app import create_app
from article_stream.core.environment import load_app_env
from article_stream.core.logging import setup_logging

# Set up logging configuration
setup_logging()

load_app_env()

app = create_app()
