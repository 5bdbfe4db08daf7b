"""
ERD Canvas editor service - FastAPI app, WebSocket broadcasts and storage client.
"""
