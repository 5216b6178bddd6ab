"""uvicorn entrypoint for the MentorMind chat gateway.

Run with: uvicorn main:app --reload  (from apps/api, with python/ on PYTHONPATH)

The app is built here rather than in mentormind.app so that importing
create_app in tests never reads DATABASE_URL or opens an engine.
"""

from mentormind.app import add_request_id_middleware, create_app

app = create_app()
add_request_id_middleware(app)

__all__ = ["app"]
