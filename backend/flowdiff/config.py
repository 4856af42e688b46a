"""Runtime configuration read from the environment."""

import os


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_PATH = os.getenv("DATABASE_PATH", "./data/versions.db")

# Retention bound for backups of a single workflow
MAX_VERSIONS = int(os.getenv("MAX_VERSIONS", "10"))

N8N_API_URL = os.getenv("N8N_API_URL")
N8N_API_KEY = os.getenv("N8N_API_KEY")
N8N_API_TIMEOUT = float(os.getenv("N8N_API_TIMEOUT", "30"))


def skip_workflow_validation() -> bool:
    """Whether structural validation may be bypassed before a push.

    Read on every call so tests and operators can flip it without a restart.
    """
    return _env_bool("SKIP_WORKFLOW_VALIDATION")
