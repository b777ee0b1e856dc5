"""Constants shared by the HTTP server."""

PROJECT_NAME = "houze-agents"
API_V1_STR = "/api/v1"
