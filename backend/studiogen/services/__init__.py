# Services package init
"""
StudioGen Backend - Services Layer
====================================

Business logic between the routes (HTTP) and the database.

Service Inventory:
    - ImageModelService (abstract): interface for the generative model
    - GeminiService: google-genai implementation with retry and circuit breaker
    - GenerationService: credit-checked studio generation workflow
    - prompt_builder: pure prompt construction for the studio tools
    - FileService: image payload validation, storage and cleanup
    - AuthService: accounts, sessions, lockout, password flows
    - TokenService / PasswordService / GoogleTokenVerifier: auth primitives
    - ProjectService: project and project image CRUD
    - audit_service / credit_service: audit trail and credit accounting
"""
