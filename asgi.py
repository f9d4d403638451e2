"""
asgi.py -- Application assembly for Registrar.

This is the ONLY file that imports from both api/ and web/. It joins the two
independent layers into a single ASGI app without coupling them to each other.
api/main.py knows nothing about web/; web/routes.py knows nothing about api/.

Both layers consult the same auth/policy.py, so a path is guarded identically
whether it is reached as a page or as a JSON endpoint.

Run with:  uvicorn asgi:app --reload
"""

from api.main import app
from web.routes import router as web_router

# Mount the web UI router after the API routers so /api/v1/... paths are
# matched first and never fall through to the generic /{kind}/... pages.
app.include_router(web_router, tags=["Web UI"])
