"""HTTP routers for the FastAPI application."""
