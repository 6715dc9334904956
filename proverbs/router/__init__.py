from fastapi import APIRouter
from . import auth
from . import ratings
router = APIRouter()

# Include Routers
router.include_router(auth.router, prefix="/auth", tags=["Auth"])
router.include_router(ratings.router, prefix="/ratings", tags=["Ratings"])


def get_router():
    return router
