"""Web boundary layer.

contracts: pydantic request/response models
services: engine calls and error-to-response mapping
controllers: FastAPI routers
"""

__all__ = [
    "contracts",
    "services",
    "controllers",
]
