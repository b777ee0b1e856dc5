"""
Engine Service Dependency.

Provides the singleton EngineService to API endpoints.
"""

from typing import Annotated

from fastapi import Depends

from houze_agents.server.services.engine import EngineService, get_engine_service

EngineServiceDep = Annotated[EngineService, Depends(get_engine_service)]
