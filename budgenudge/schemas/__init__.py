"""
Pydantic schemas for API request and response validation.

All FastAPI endpoints use explicit Pydantic models; free-form dicts are kept
to raw history rows and RPC passthroughs.
"""
