"""
HTTP backend.

- schemas.py: pydantic request/response models (camelCase on the wire)
- app.py: FastAPI app factory and the uvicorn entry point
"""
