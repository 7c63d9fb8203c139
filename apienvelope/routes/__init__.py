# Routes package init
"""
API Envelope — Routes Package
===============================

Route Inventory:
    - health.py:  GET /health  (service health check)

Routes stay thin and return plain payloads; ResponseWrapperMiddleware puts
them in the envelope.
"""
