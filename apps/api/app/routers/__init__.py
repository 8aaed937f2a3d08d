from app.routers import admin, auth, budgets, families, health, invitations

__all__ = [
    "health",
    "auth",
    "families",
    "budgets",
    "invitations",
    "admin",
]
