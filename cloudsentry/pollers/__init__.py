"""
Poller Dispatch
===============

Registry of the AWS services the resource pollers can build clients for.

Available Services
------------------
acm, applicationautoscaling, cloudformation, cloudtrail, cloudwatchlogs,
configservice, dynamodb, ec2, ecs, elbv2, guardduty, iam, kms, lambda,
rds, redshift, s3, waf, waf-regional

Adding New Services
-------------------
Add the poller name and its boto3 service name to ``POLLER_SERVICES`` in
``registry.py``, or register a custom constructor::

    from cloudsentry.pollers import DEFAULT_REGISTRY, boto3_constructor

    DEFAULT_REGISTRY.register("sqs", boto3_constructor("sqs"))
"""

from cloudsentry.pollers.registry import (
    DEFAULT_REGISTRY,
    POLLER_SERVICES,
    ClientConstructor,
    PollerRegistry,
    boto3_constructor,
    build_default_registry,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "POLLER_SERVICES",
    "ClientConstructor",
    "PollerRegistry",
    "boto3_constructor",
    "build_default_registry",
]
