"""
StudioGen Backend - Application Package
=========================================

Auth, projects and AI studio image generation for the StudioGen frontend.
Imported by uvicorn (`studiogen.main:app`), Alembic and pytest.

Layers:
    ┌──────────────────────────────────────────┐
    │ routes/      HTTP: envelopes, status codes│
    ├──────────────────────────────────────────┤
    │ services/    auth, projects, generation   │ ──▶ Gemini (google-genai)
    ├──────────────────────────────────────────┤
    │ models/ + schemas/   ORM rows, API shapes │
    ├──────────────────────────────────────────┤
    │ database.py  async sessions per request   │
    └──────────────────────────────────────────┘
"""

__version__ = "1.0.0"
