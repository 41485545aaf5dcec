"""
Models Module - Data Models and Type Definitions
=================================================

Modules:
    event_models: Stream events sent to the browser and their SSE encoding
    api_models: Identity and persistence records shared across services
    error_models: Error codes, error envelope, status mapping
    schemas: Request/response models for the REST endpoints
"""
