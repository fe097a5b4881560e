"""
FastAPI Server for Local Development

Serves the contact form endpoint over HTTP against moto-mocked S3 and SES,
so the website form can be exercised without AWS resources.

Usage:
    python -m scripts.local_api_server
    curl -F lastname=Kis -F firstname=Éva -F images=@photo.jpg localhost:8000/api/contact
"""

import os
from contextlib import asynccontextmanager
from uuid import uuid4

# Set environment for local mode BEFORE any other imports
os.environ.setdefault(
    "CONTACT_STORAGE_CONNECTION_STRING",
    "AccessKeyId=testing;SecretAccessKey=testing",
)
os.environ.setdefault("CONTACT_TO_EMAIL", "owner@example.com")
os.environ.setdefault("CONTACT_S3_BUCKET_NAME", "uploads-local")
os.environ["CONTACT_SES_ENDPOINT_URL"] = "mock"
os.environ["CONTACT_S3_ENDPOINT_URL"] = "mock"

from moto import mock_aws

mock = mock_aws()
mock.start()

import boto3
import structlog
from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from intake.config import get_settings
from lambdas.contact_submission.handler import lambda_handler

log = structlog.get_logger()

# Clear settings cache so the local env vars take effect
get_settings.cache_clear()


class LocalContext:
    """Minimal stand-in for the Lambda context object."""

    def __init__(self) -> None:
        self.aws_request_id = f"local-{uuid4().hex[:12]}"


def setup_local_ses():
    """Verify SES sender identity for local development."""
    settings = get_settings()
    ses = boto3.client("ses", region_name=settings.aws_region)

    try:
        ses.verify_email_identity(EmailAddress=settings.ses_from_address)
        log.info("ses_identity_verified", email=settings.ses_from_address)
    except Exception as e:
        log.warning("ses_identity_setup_error", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown logic."""
    setup_local_ses()
    log.info("local_aws_resources_initialized")
    yield
    mock.stop()
    log.info("shutting_down")


app = FastAPI(
    title="Contact Intake API",
    description="Local development server for the contact form Lambda",
    lifespan=lifespan,
)

# CORS configuration
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
if os.environ.get("CORS_ORIGINS"):
    origins.extend(
        o.strip() for o in os.environ["CORS_ORIGINS"].split(",") if o.strip()
    )

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "environment": "local", "version": "0.1.0"}


@app.post("/api/contact")
async def submit_contact_form(request: Request):
    """Forward the raw request to the Lambda handler as an HTTP API event."""
    body = await request.body()
    event = {
        "version": "2.0",
        "headers": dict(request.headers),
        "requestContext": {"http": {"method": request.method, "path": "/api/contact"}},
        "body": body,
        "isBase64Encoded": False,
    }

    response = await run_in_threadpool(lambda_handler, event, LocalContext())

    return PlainTextResponse(response["body"], status_code=response["statusCode"])


@app.get("/api/uploads")
async def list_uploads():
    """List images stored in the mocked bucket."""
    settings = get_settings()
    s3 = boto3.client("s3", region_name=settings.aws_region)

    try:
        response = s3.list_objects_v2(Bucket=settings.s3_bucket_name)
    except s3.exceptions.NoSuchBucket:
        return {"bucket": settings.s3_bucket_name, "objects": []}

    return {
        "bucket": settings.s3_bucket_name,
        "objects": [
            {"key": obj["Key"], "size_bytes": obj["Size"]}
            for obj in response.get("Contents", [])
        ],
    }


if __name__ == "__main__":
    import uvicorn

    log.info("starting_local_api_server", host="0.0.0.0", port=8000)
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
