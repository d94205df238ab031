"""
IAM Module
Federated roles binding Kubernetes service accounts to AWS permissions
"""

from .functions import (
    ROLE_ARN_ANNOTATION,
    SERVICE_ACCOUNT_AUDIENCE,
    build_trust_policy,
    create_federated_role,
    service_account_claims,
    service_account_role_name,
)

__all__ = [
    "ROLE_ARN_ANNOTATION",
    "SERVICE_ACCOUNT_AUDIENCE",
    "build_trust_policy",
    "create_federated_role",
    "service_account_claims",
    "service_account_role_name",
]
