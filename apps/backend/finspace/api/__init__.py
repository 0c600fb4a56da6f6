"""HTTP routers, one module per resource."""

from fastapi import FastAPI

from . import accounts, categories, recurrence, spaces, transactions


def register_routers(app: FastAPI) -> None:
    """Attach all API routes to the FastAPI application."""

    for module in (spaces, accounts, categories, transactions, recurrence):
        app.include_router(module.router, prefix="/api")
