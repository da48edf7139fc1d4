"""
AWS Lambda entrypoint for the server-rendered site.

Cold start builds the read-only site state and the FastAPI application
once; every invocation then goes through `handler(event, context)`.

Local development:
    uvicorn main:app --reload
"""

import logging

from dotenv import load_dotenv

from app.adapter import LambdaHandler
from app.config import get_adapter_settings
from webapp.app import create_app, make_error_page
from webapp.state import build_site_state

# Load environment variables
load_dotenv()

adapter_settings = get_adapter_settings()

# Lambda installs its own handler on the root logger; only set the level
logger = logging.getLogger()
logger.setLevel(adapter_settings.log_level.upper())

site_state = build_site_state()
app = create_app(site_state)

# ============================================================================
# AWS Lambda Handler
# ============================================================================

handler = LambdaHandler(app, settings=adapter_settings, error_page=make_error_page(site_state))

logger.info(
    f"Site '{site_state.settings.name}' ready "
    f"(output={site_state.settings.output_name}, assets={len(site_state.manifest)}, "
    f"streaming={'on' if handler.streaming_enabled else 'off'})"
)
