from fastapi import APIRouter

from routers import greenhouse

router = APIRouter()

# include sub-routers
router.include_router(greenhouse.router)
