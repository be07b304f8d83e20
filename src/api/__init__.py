"""
FastAPI mention analytics service.

Provides REST API for the aggregation engine:
- GET /projects/{project_id}/analytics/* - Overview, evolution, entities,
  topics, momentum and citation sources
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
