"""aws_clients.py — boto3 client factories (DynamoDB, S3, Secrets Manager).

Clients are cached on the RuntimeContext rather than in module globals; these
factories only fix the region and retry policy.
"""
from __future__ import annotations

from typing import Optional

import boto3
from botocore.config import Config

from config import AWS_REGION

__all__ = [
    "_new_ddb",
    "_new_s3",
    "_new_secretsmanager",
]


def _new_ddb(region: Optional[str] = None):
    return boto3.client(
        "dynamodb",
        region_name=region or AWS_REGION,
        config=Config(retries={"max_attempts": 5, "mode": "standard"}),
    )


def _new_s3(region: Optional[str] = None):
    return boto3.client(
        "s3",
        region_name=region or AWS_REGION,
        config=Config(retries={"max_attempts": 3, "mode": "standard"}),
    )


def _new_secretsmanager(region: Optional[str] = None):
    return boto3.client(
        "secretsmanager",
        region_name=region or AWS_REGION,
        config=Config(retries={"max_attempts": 3, "mode": "standard"}),
    )
