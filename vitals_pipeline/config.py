import os
from dataclasses import dataclass, field
from datetime import datetime, timezone

from vitals_pipeline.logger import logger


def _truthy(v) -> bool:
    return str(v).strip().lower() in ("1", "true", "t", "yes", "y", "on")


def _optional_float(v):
    if v is None or str(v).strip() == "":
        return None
    return float(v)


# =========================
# Config knobs (env-override)
# =========================
MAX_RETRIES = int(os.getenv("MAX_RETRIES", "3") or 3)
RETRY_DELAY_SEC = float(os.getenv("RETRY_DELAY_SEC", "1.0") or 1.0)
RETRY_BACKOFF = os.getenv("RETRY_BACKOFF", "fixed").lower()  # "fixed" | "exponential"
RETRY_MAX_DELAY_SEC = float(os.getenv("RETRY_MAX_DELAY_SEC", "20") or 20)
RETRY_CLIENT_ERRORS = _truthy(os.getenv("RETRY_CLIENT_ERRORS", "true"))
SUBMIT_RETRIES = int(os.getenv("SUBMIT_RETRIES", "0") or 0)
REQUEST_TIMEOUT_SEC = _optional_float(os.getenv("REQUEST_TIMEOUT_SEC"))
PAGE_COUNT = int(os.getenv("PAGE_COUNT", "5") or 5)
PAGE_LIMIT = int(os.getenv("PAGE_LIMIT", "10") or 10)
HIGH_RISK_THRESHOLD = 4

os.environ["RUN_ID"] = os.getenv("RUN_ID", datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ"))


@dataclass
class PipelineConfig:
    """Everything a single run needs; built from the environment by `load_config()`."""

    api_key: str | None = None
    api_url: str | None = None
    post_url: str | None = None
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY_SEC
    backoff: str = RETRY_BACKOFF
    max_delay: float = RETRY_MAX_DELAY_SEC
    retry_client_errors: bool = RETRY_CLIENT_ERRORS
    submit_retries: int = SUBMIT_RETRIES
    timeout: float | None = REQUEST_TIMEOUT_SEC
    page_count: int = PAGE_COUNT
    page_limit: int = PAGE_LIMIT
    fail_fast_pages: bool = False
    dry_run_submit: bool = False
    output_csv: str | None = None
    audit_bucket: str | None = None
    audit_prefix: str = "audit_logs"
    aws_region: str = "us-east-1"
    run_id: str = field(default_factory=lambda: os.getenv("RUN_ID", "unknown"))


def load_config() -> PipelineConfig:
    """Read the environment at call time (tests monkeypatch env before calling)."""
    cfg = PipelineConfig(
        api_key=os.getenv("API_KEY"),
        api_url=os.getenv("API_URL"),
        post_url=os.getenv("POST_URL"),
        max_retries=int(os.getenv("MAX_RETRIES", str(MAX_RETRIES)) or MAX_RETRIES),
        retry_delay=float(os.getenv("RETRY_DELAY_SEC", str(RETRY_DELAY_SEC)) or RETRY_DELAY_SEC),
        backoff=os.getenv("RETRY_BACKOFF", RETRY_BACKOFF).lower(),
        max_delay=float(os.getenv("RETRY_MAX_DELAY_SEC", str(RETRY_MAX_DELAY_SEC)) or RETRY_MAX_DELAY_SEC),
        retry_client_errors=_truthy(os.getenv("RETRY_CLIENT_ERRORS", "true")),
        submit_retries=int(os.getenv("SUBMIT_RETRIES", str(SUBMIT_RETRIES)) or SUBMIT_RETRIES),
        timeout=_optional_float(os.getenv("REQUEST_TIMEOUT_SEC")),
        page_count=int(os.getenv("PAGE_COUNT", str(PAGE_COUNT)) or PAGE_COUNT),
        page_limit=int(os.getenv("PAGE_LIMIT", str(PAGE_LIMIT)) or PAGE_LIMIT),
        fail_fast_pages=_truthy(os.getenv("FAIL_FAST_PAGES", "false")),
        dry_run_submit=_truthy(os.getenv("DRY_RUN_SUBMIT", "false")),
        output_csv=os.getenv("OUTPUT_CSV") or None,
        audit_bucket=os.getenv("AUDIT_BUCKET") or None,
        audit_prefix=os.getenv("AUDIT_PREFIX", "audit_logs"),
        aws_region=os.getenv("AWS_REGION", "us-east-1"),
    )
    for name in ("max_retries", "submit_retries"):
        if getattr(cfg, name) < 0:
            raise ValueError(f"{name.upper()} must be >= 0, got {getattr(cfg, name)}")
    if cfg.backoff not in ("fixed", "exponential"):
        logger.warning("Unknown RETRY_BACKOFF=%r; using fixed delay.", cfg.backoff)
        cfg.backoff = "fixed"
    return cfg


__all__ = [
    "MAX_RETRIES",
    "RETRY_DELAY_SEC",
    "RETRY_BACKOFF",
    "RETRY_MAX_DELAY_SEC",
    "RETRY_CLIENT_ERRORS",
    "SUBMIT_RETRIES",
    "REQUEST_TIMEOUT_SEC",
    "PAGE_COUNT",
    "PAGE_LIMIT",
    "HIGH_RISK_THRESHOLD",
    "PipelineConfig",
    "load_config",
]
