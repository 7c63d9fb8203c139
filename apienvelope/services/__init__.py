# Services package init
"""
API Envelope — Services Layer
===============================

What:  The decisions of the response pipeline, free of ASGI plumbing.
Why:   Each stage can be unit-tested with plain values; the middleware only
       moves bytes between them.

Service Inventory:
    - PathFilter:                wrap or bypass a request path
    - body_classifier:           shape of a buffered body, scalar coercion
    - EnvelopeBuilder:           success and status-table error envelopes
    - failures:                  closed set of failure kinds
    - ExceptionTranslator:       failures → ApiErrorResponse (plain mode)
    - ProblemDetailsTranslator:  failures and error bodies → RFC 7807
"""
