from fastapi import APIRouter

from jobboard.api.routes import employees, employers, health, hired_employees, jobs

api_router = APIRouter()
api_router.include_router(health.router, tags=["health"])
api_router.include_router(jobs.router, prefix="/jobs", tags=["jobs"])
api_router.include_router(employers.router, prefix="/employers", tags=["employers"])
api_router.include_router(employees.router, prefix="/employees", tags=["employees"])
api_router.include_router(hired_employees.router, prefix="/hired-employees", tags=["interests"])
