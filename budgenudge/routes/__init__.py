"""
FastAPI routers for all API endpoints.

Each module defines a router for one area (transaction rules, pacing,
recurring bills, SMS, ADF, tagging). Routes authenticate, call services,
and map results and errors to response models and HTTPExceptions.
"""
