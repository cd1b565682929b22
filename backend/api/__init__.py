"""
Grant Portal API Routers
FastAPI router modules, mounted by backend.main.
"""
