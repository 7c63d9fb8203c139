"""
API Envelope — Package Initializer
====================================

What: Response-envelope middleware for FastAPI/Starlette services.
Why:  Every endpoint answers with the same success/error structure without
      each handler implementing it.

Architecture Note:

    ┌─────────────────────────────────────┐
    │      Middleware (ASGI plumbing)     │  ← capture, replay, delivery
    ├─────────────────────────────────────┤
    │      Services (pipeline decisions)  │  ← filter, classify, translate
    ├─────────────────────────────────────┤
    │   Schemas & Serialization (wire)    │  ← envelope models, naming policy
    ├─────────────────────────────────────┤
    │          Config (options)           │  ← pydantic-settings, read-only
    └─────────────────────────────────────┘

Quick start:
    from fastapi import FastAPI
    from apienvelope.middleware import ResponseWrapperMiddleware

    app = FastAPI()
    app.add_middleware(ResponseWrapperMiddleware)
"""

__version__ = "1.0.0"
