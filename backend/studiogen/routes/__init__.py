# Routes package init
"""
StudioGen Backend - API Routes Package
========================================

Route Inventory:
    - auth.py:      /api/auth/*            (signup, login, Google, tokens, profile, passwords)
    - projects.py:  /api/projects/*        (projects and saved images)
    - generate.py:  /api/generate/*        (background removal, studio images, colors, credits)
    - files.py:     GET /api/files/{path}  (stored images)
    - health.py:    GET /health, /health/ready

Routes stay thin: extract request data, call a service, wrap the result in
the response envelope. Business logic lives in services.
"""
