"""HTTP layer: routes, schemas and middleware for the FastAPI app."""
