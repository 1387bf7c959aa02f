"""
API v1 Router

Paths are mounted at the application root; the front end and GitHub
callbacks address them without a version prefix.
"""

from fastapi import APIRouter

from . import auth, catalog, github, projects, students, users

router = APIRouter()

router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(github.router, prefix="/github", tags=["GitHub"])
router.include_router(projects.router, prefix="/projects", tags=["Projects"])
router.include_router(users.router, prefix="/users", tags=["Users"])
router.include_router(students.router, prefix="/students", tags=["Students"])
router.include_router(catalog.roles_router, prefix="/roles", tags=["Roles"])
router.include_router(catalog.faculties_router, prefix="/faculties", tags=["Faculties"])
router.include_router(catalog.careers_router, prefix="/careers", tags=["Careers"])
router.include_router(catalog.subjects_router, prefix="/subjects", tags=["Subjects"])
