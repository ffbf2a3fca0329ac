"""Pipeline driver: fetch pages -> classify records -> submit summary."""
from __future__ import annotations

import argparse
import json
import time
from datetime import datetime, timezone

import boto3
import requests

from vitals_pipeline.config import PipelineConfig, load_config
from vitals_pipeline.http_client import FetchFailure, build_headers, fetch_with_retry, post_json
from vitals_pipeline.io_s3 import log_audit_summary, write_assessments_csv
from vitals_pipeline.logger import logger
from vitals_pipeline.scoring import RiskAccumulators, classify_records


def _retry_kwargs(cfg: PipelineConfig, session, sleep) -> dict:
    return {
        "retry_delay": cfg.retry_delay,
        "backoff": cfg.backoff,
        "max_delay": cfg.max_delay,
        "retry_client_errors": cfg.retry_client_errors,
        "timeout": cfg.timeout,
        "session": session,
        "sleep": sleep,
    }


def fetch_page(cfg: PipelineConfig, page: int, session, sleep=time.sleep) -> list:
    """Return the record list of one page; a payload without a `data` list
    is reported as a FetchFailure like any other unusable page."""
    data = fetch_with_retry(
        cfg.api_url,
        headers=build_headers(cfg.api_key),
        params={"page": page, "limit": cfg.page_limit},
        max_retries=cfg.max_retries,
        **_retry_kwargs(cfg, session, sleep),
    )
    records = data.get("data") if isinstance(data, dict) else None
    if not isinstance(records, list):
        raise FetchFailure(ValueError(f"Page {page} payload has no 'data' list"), attempts=1)
    return records


def run_pipeline(cfg: PipelineConfig | None = None, session=None, sleep=time.sleep, s3_client=None) -> dict:
    cfg = cfg or load_config()
    if session is None:
        with requests.Session() as own_session:
            return run_pipeline(cfg, session=own_session, sleep=sleep, s3_client=s3_client)

    start_time = time.time()
    logger.info("Starting run_pipeline() for %d pages of %d records", cfg.page_count, cfg.page_limit)

    accumulators = RiskAccumulators()
    assessment_rows = []
    failed_pages = []
    total_records = 0

    for page in range(1, cfg.page_count + 1):
        logger.info("Fetching patient data (page %d)...", page, extra={"page": page})
        try:
            records = fetch_page(cfg, page, session, sleep)
        except FetchFailure as e:
            logger.error("Page %d failed: %s", page, e, extra={"page": page})
            if cfg.fail_fast_pages:
                raise
            failed_pages.append(page)
            continue

        page_assessments = []
        classify_records(records, accumulators, page_assessments)
        assessment_rows.extend((page, a) for a in page_assessments)
        total_records += len(records)
        logger.info("Page %d: classified %d records", page, len(page_assessments), extra={"page": page})

    counts = accumulators.counts()
    logger.info("number of high temperature patients is %d", counts["fever_patients"])
    logger.info("number of high risk patients is %d", counts["high_risk_patients"])
    logger.info("number of patients with data quality issues is %d", counts["data_quality_issues"])

    results = accumulators.to_payload()
    submission_response = None
    if cfg.dry_run_submit:
        logger.info("DRY_RUN_SUBMIT=true; skipping POST. Body below:\n%s", json.dumps(results, indent=2))
    else:
        submission_response = post_json(
            cfg.post_url,
            results,
            headers=build_headers(cfg.api_key),
            max_retries=cfg.submit_retries,
            **_retry_kwargs(cfg, session, sleep),
        )
        logger.info("Assessment Results: %s", json.dumps(submission_response))

    if cfg.output_csv:
        write_assessments_csv(assessment_rows, cfg.output_csv, s3_client=s3_client, aws_region=cfg.aws_region)

    summary = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "run_id": cfg.run_id,
        "pages_requested": cfg.page_count,
        "failed_pages": failed_pages,
        "total_records": total_records,
        "counts": counts,
        "submitted": submission_response is not None,
        "submission_response": submission_response,
        "output_path": cfg.output_csv,
        "run_duration_sec": round(time.time() - start_time, 2),
    }

    if cfg.audit_bucket:
        s3 = s3_client or boto3.client("s3", region_name=cfg.aws_region)
        audit_key = f"{cfg.audit_prefix}/{datetime.now(timezone.utc).strftime('%Y-%m-%dT%H-%M-%SZ')}_summary.json"
        log_audit_summary(s3, cfg.audit_bucket, audit_key, summary)
        logger.info(f"Audit log written to s3://{cfg.audit_bucket}/{audit_key}")

    logger.info("Script completed in %.2f seconds", time.time() - start_time)
    return summary


# ---------- CLI wrapper ----------
def _non_negative_int(value):
    n = int(value)
    if n < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {n}")
    return n


def build_parser(defaults: PipelineConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Patient vitals risk pipeline")
    parser.add_argument("--api-url", dest="api_url", default=defaults.api_url, help="Paginated patient endpoint (or set API_URL)")
    parser.add_argument("--post-url", dest="post_url", default=defaults.post_url, help="Reporting endpoint (or set POST_URL)")
    parser.add_argument("--max-retries", dest="max_retries", type=_non_negative_int, default=defaults.max_retries)
    parser.add_argument("--retry-delay", dest="retry_delay", type=float, default=defaults.retry_delay)
    parser.add_argument("--backoff", choices=["fixed", "exponential"], default=defaults.backoff)
    parser.add_argument("--pages", dest="page_count", type=int, default=defaults.page_count)
    parser.add_argument("--limit", dest="page_limit", type=int, default=defaults.page_limit)
    parser.add_argument("--fail-fast", dest="fail_fast_pages", action="store_true", default=defaults.fail_fast_pages)
    parser.add_argument("--dry-run-submit", dest="dry_run_submit", action="store_true", default=defaults.dry_run_submit)
    parser.add_argument("--output-csv", dest="output_csv", default=defaults.output_csv, help="Local path or s3://bucket/key.csv")
    return parser


def main(argv=None):
    cfg = load_config()
    args = build_parser(cfg).parse_args(argv)
    for name, value in vars(args).items():
        setattr(cfg, name, value)

    missing = [name for name, value in (("API_URL", cfg.api_url), ("POST_URL", cfg.post_url), ("API_KEY", cfg.api_key)) if not value]
    if missing:
        logger.warning("Missing configuration: %s; requests will be issued anyway.", missing)

    run_pipeline(cfg)


if __name__ == "__main__":
    main()
