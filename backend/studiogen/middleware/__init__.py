"""
StudioGen Backend - Middleware Package
========================================

Middleware Chain (outermost first, as registered in main.py):
    Request → [CORS] → [GZip] → [Security Headers] → [Request ID] → [Logging]
            → [Rate Limit] → Route Handler

    - CORS outermost so preflight requests and error responses carry CORS headers
    - Request ID wraps Logging: the ContextVar is set before the inner
      middleware runs, so the access log line can read it
    - Rate Limit innermost of ours: rejected requests are still logged and tagged
"""
