"""
Central configuration for the fusion engine.

Flat-constant interface.  ``api/config.py`` reads its defaults from here,
so environment overrides (``FE_API_*``) always start from these values.

Config Status Legend
====================
Each constant is annotated with its status and the modules that read it:

  ACTIVE  Imported and used by running code.  Changing the value
          affects live behaviour.

Search for ``# STATUS:`` to locate all annotations.
"""

# ── Logging ────────────────────────────────────────────────────────────
LOG_LEVEL = "INFO"                                # STATUS: ACTIVE; api/main.py, one of "DEBUG", "INFO", "WARNING", "ERROR"
LOG_FORMAT = "structured"                         # STATUS: ACTIVE; api/main.py, "structured" or "json"

# ── Job lifecycle ──────────────────────────────────────────────────────
# Terminal jobs stay pollable for this long before eviction.
JOB_RETENTION_SECONDS = 15 * 60                   # STATUS: ACTIVE; api/jobs/store.py, api/main.py
JOB_EVICTION_INTERVAL_SECONDS = 2 * 60            # STATUS: ACTIVE; api/main.py background eviction loop
JOB_TIMEOUT_SECONDS = 300                         # STATUS: ACTIVE; api/jobs/runner.py, api/jobs/dispatch.py
MAX_CONCURRENT_JOBS_PER_OWNER = 2                 # STATUS: ACTIVE; api/jobs/dispatch.py admission control

# Execution mode: "auto" detects serverless hosts, "sync" / "async" force one.
EXECUTION_MODE = "auto"                           # STATUS: ACTIVE; api/jobs/dispatch.py

# ── Upstream image service ─────────────────────────────────────────────
UPSTREAM_RETRY_ATTEMPTS = 3                       # STATUS: ACTIVE; features/*.py via api/jobs/retry.py
UPSTREAM_RETRY_DELAY_SECONDS = 2.0                # STATUS: ACTIVE; features/*.py via api/jobs/retry.py
UPSTREAM_TIMEOUT_SECONDS = 120.0                  # STATUS: ACTIVE; api/services/image_client.py
IMAGE_OUTPUT_SIZE = "1200x900"                    # STATUS: ACTIVE; features/*.py default output size

# ── Request rate limiting ──────────────────────────────────────────────
RATE_LIMIT_REQUESTS = 10                          # STATUS: ACTIVE; api/routers/features.py per-client limit
RATE_LIMIT_WINDOW_SECONDS = 60                    # STATUS: ACTIVE; api/routers/features.py

# Batch endpoints refuse more source images than this.
MAX_BATCH_IMAGES = 10                             # STATUS: ACTIVE; api/routers/features.py


def validate_config() -> list:
    """Check config for common misconfigurations.

    Returns a list of dicts: [{"level": "WARNING"|"ERROR", "message": str}].
    Called on server startup.
    """
    import os

    issues = []

    if JOB_RETENTION_SECONDS <= 0:
        issues.append({
            "level": "ERROR",
            "message": "JOB_RETENTION_SECONDS must be positive; finished jobs would be evicted before clients can poll them.",
        })

    if JOB_EVICTION_INTERVAL_SECONDS > JOB_RETENTION_SECONDS:
        issues.append({
            "level": "WARNING",
            "message": (
                f"JOB_EVICTION_INTERVAL_SECONDS ({JOB_EVICTION_INTERVAL_SECONDS}) exceeds "
                f"JOB_RETENTION_SECONDS ({JOB_RETENTION_SECONDS}). Finished jobs will linger "
                "well past their retention window."
            ),
        })

    if MAX_CONCURRENT_JOBS_PER_OWNER < 1:
        issues.append({
            "level": "ERROR",
            "message": "MAX_CONCURRENT_JOBS_PER_OWNER must be at least 1; every request would be rejected.",
        })

    if UPSTREAM_RETRY_ATTEMPTS < 1:
        issues.append({
            "level": "ERROR",
            "message": "UPSTREAM_RETRY_ATTEMPTS must be at least 1.",
        })

    if not os.environ.get("FE_API_IMAGE_API_KEY", ""):
        issues.append({
            "level": "WARNING",
            "message": (
                "FE_API_IMAGE_API_KEY is not set. Image processors will fail against the "
                "upstream service. Set via: export FE_API_IMAGE_API_KEY=<key>"
            ),
        })

    if LOG_FORMAT not in ("structured", "json"):
        issues.append({
            "level": "WARNING",
            "message": f"LOG_FORMAT={LOG_FORMAT!r} is not recognised; falling back to structured logs.",
        })

    return issues
