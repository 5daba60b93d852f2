"""Tribeboard — FastAPI REST API layer.

This package contains the FastAPI application, the response envelope models,
and the envelope builders.

Modules
-------
main
    Application factory, route handlers, and the ``main()`` CLI entry point.
models
    Pydantic models for the success and error envelopes.
responses
    Envelope builders that attach CORS headers to every response.
"""
