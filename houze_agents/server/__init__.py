"""
houze_agents Server Package.

This package contains the HTTP control surface of the agent execution engine.

Subpackages:
    api: FastAPI route definitions and endpoint logic.
    core: Settings and constants.
    exception_handlers: Mapping of engine errors to HTTP responses.
    services: Engine wiring and FastAPI dependencies.
"""
