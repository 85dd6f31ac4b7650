"""
Portfolio API package.

This package provides a FastAPI application exposing CRUD endpoints for
projects, blog posts and contact messages on top of a document store
abstraction (MongoDB in production, SQL or in-memory elsewhere).
"""
