"""
asgi.py -- Joins the JSON API and the server-rendered pages into one app.

api/main.py builds the FastAPI app (auth provider handler, /api/users, health)
and web/routes.py holds the HTML pages. Neither imports the other; this module
is where they meet, so the pages share the API's app.state (engine, user
store, auth provider) and its middleware stack.

Serve with:  uvicorn asgi:app --reload
             python main.py serve
"""

from api.main import app
from web.routes import router as web_router

# Pages live at the root (/, /login, /register, /dashboard, /logout); the API
# keeps everything under its prefix, so the two never collide.
app.include_router(web_router, tags=["Web UI"])
