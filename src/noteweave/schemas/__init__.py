"""Pydantic schemas for the HTTP API and job messages."""
