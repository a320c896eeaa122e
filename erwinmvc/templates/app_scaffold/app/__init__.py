"""{{PROJECT_NAME}} application package."""
