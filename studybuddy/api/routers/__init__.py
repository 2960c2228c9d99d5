from fastapi import APIRouter

from studybuddy.api.routers import institutions, students, system


def setup_routers() -> APIRouter:
    router = APIRouter()
    router.include_router(students.router)
    router.include_router(institutions.router)
    router.include_router(system.router)
    return router


__all__ = ["setup_routers"]
