"""Service layer and FastAPI dependencies."""
