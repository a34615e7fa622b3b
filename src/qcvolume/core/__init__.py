"""Core domain: models, errors, capacity planning and job waiting."""
