"""Report artifacts: per-patient CSV and the JSON audit summary.

Both targets are optional. Local paths are written directly; `s3://`
paths go through boto3 with the same small doubling backoff the audit
upload uses.
"""
from __future__ import annotations

import json
import time
from io import StringIO

import boto3
import pandas as pd

from vitals_pipeline.logger import logger

ASSESSMENT_COLUMNS = [
    "page", "patient_id", "temp_risk", "age_risk", "blood_risk",
    "risk_score", "is_fever", "is_high_risk", "invalid_fields",
]


def parse_s3_uri(uri: str):
    if not uri.startswith("s3://"):
        raise ValueError(f"Not an s3:// URI: {uri}")
    bucket, _, key = uri[len("s3://"):].partition("/")
    if not bucket or not key:
        raise ValueError(f"S3 URI needs both bucket and key: {uri}")
    return bucket, key


def _put_with_retry(s3_client, bucket, key, body, retries, what):
    delay = 1.0
    for attempt in range(retries):
        try:
            s3_client.put_object(Bucket=bucket, Key=key, Body=body)
            return
        except Exception as e:
            if attempt == retries - 1:
                raise
            logger.warning(f"{what} failed (attempt {attempt+1}): {e}; retrying in {delay:.1f}s")
            time.sleep(delay)
            delay *= 2


def s3_put_text(s3_client, bucket, key, text, retries=3):
    body = text if isinstance(text, (bytes, bytearray)) else text.encode("utf-8")
    _put_with_retry(s3_client, bucket, key, body, retries, "S3 put")


def log_audit_summary(s3_client, bucket, key, summary, retries=3):
    payload = json.dumps(summary, indent=2).encode("utf-8")
    _put_with_retry(s3_client, bucket, key, payload, retries, "S3 audit put")


def assessments_frame(rows) -> pd.DataFrame:
    """rows: iterable of (page, RecordAssessment)."""
    records = [{"page": page, **assessment.as_row()} for page, assessment in rows]
    return pd.DataFrame(records, columns=ASSESSMENT_COLUMNS)


def write_assessments_csv(rows, path: str, s3_client=None, aws_region: str = "us-east-1") -> int:
    df = assessments_frame(rows)
    if path.startswith("s3://"):
        bucket, key = parse_s3_uri(path)
        csv_buffer = StringIO()
        df.to_csv(csv_buffer, index=False)
        s3 = s3_client or boto3.client("s3", region_name=aws_region)
        s3_put_text(s3, bucket, key, csv_buffer.getvalue())
    else:
        df.to_csv(path, index=False)
    logger.info("Wrote %d assessment rows to %s", len(df), path)
    return len(df)


__all__ = [
    "ASSESSMENT_COLUMNS",
    "parse_s3_uri",
    "s3_put_text",
    "log_audit_summary",
    "assessments_frame",
    "write_assessments_csv",
]
