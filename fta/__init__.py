"""
Freshservice Ticket Analyzer (FTA)
Fetches helpdesk tickets and reports freshness, priority and response time

Packages:
- ingest: session handling, ticket fetching, script variant CLI
- analyze: local analyzer and external oracle analyzer
- api: FastAPI endpoints
- schemas: shared pydantic models
"""

__version__ = "3.1.0"
