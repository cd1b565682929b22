"""
Grant Portal Pydantic Schemas
Request/Response models for API endpoints.
"""
