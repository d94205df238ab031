"""
IAM Module Functions
Federated (IRSA) roles for Kubernetes service accounts
"""

import json
import pulumi
import pulumi_aws as aws
from typing import Any, Dict, List, Optional

from admiral.naming import PROJECT_NAME, generate_resource_name

SERVICE_ACCOUNT_AUDIENCE = "sts.amazonaws.com"
ROLE_ARN_ANNOTATION = "eks.amazonaws.com/role-arn"


def service_account_role_name(environment: str, service_account_name: str) -> str:
    """Role name for a service account: admiral-<environment>-sa-<name>"""
    return generate_resource_name(PROJECT_NAME, environment, f"sa-{service_account_name}")


def service_account_claims(namespace: str, name: str) -> Dict[str, str]:
    """
    Token claims a service account must present to assume its role

    Args:
        namespace: Service account namespace
        name: Service account name

    Returns:
        Dict of claim name to required value (subject and audience)
    """
    return {
        "sub": f"system:serviceaccount:{namespace}:{name}",
        "aud": SERVICE_ACCOUNT_AUDIENCE,
    }


def build_trust_policy(oidc_provider_arn: str, oidc_issuer_url: str,
                       claims: Dict[str, str]) -> Dict[str, Any]:
    """
    Build an AssumeRoleWithWebIdentity trust policy for the cluster OIDC provider

    Args:
        oidc_provider_arn: ARN of the IAM OIDC identity provider
        oidc_issuer_url: Cluster OIDC issuer URL
        claims: Required token claims, keyed by claim name

    Returns:
        Trust policy document
    """
    issuer = oidc_issuer_url.replace("https://", "")
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Federated": oidc_provider_arn},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {f"{issuer}:{claim}": value for claim, value in claims.items()}
            }
        }]
    }


def build_policy_document(policy_statements: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": list(policy_statements),
    }


def create_federated_role(resource_id: str,
                          role_name: str,
                          oidc_provider_arn: 'pulumi.Input[str]',
                          oidc_issuer_url: 'pulumi.Input[str]',
                          claims: Dict[str, str],
                          policy_statements: List[Dict[str, Any]],
                          tags: Dict[str, str] = None,
                          opts: Optional[pulumi.ResourceOptions] = None) -> Dict[str, Any]:
    """
    Create an IAM role assumable only through the cluster OIDC provider

    Args:
        resource_id: Pulumi resource name
        role_name: IAM role name
        oidc_provider_arn: ARN of the IAM OIDC identity provider
        oidc_issuer_url: Cluster OIDC issuer URL
        claims: Required token claims (see service_account_claims)
        policy_statements: Inline policy statements to attach
        tags: Additional tags
        opts: Pulumi resource options

    Returns:
        Dict with role resource, inline policy and outputs
    """
    tags = tags or {}

    assume_role_policy = pulumi.Output.all(oidc_provider_arn, oidc_issuer_url).apply(
        lambda args: json.dumps(build_trust_policy(args[0], args[1], claims))
    )

    role = aws.iam.Role(
        resource_id,
        name=role_name,
        assume_role_policy=assume_role_policy,
        tags={
            **tags,
            "Name": role_name,
            "Module": "iam"
        },
        opts=opts
    )

    # Statements may carry unresolved outputs (e.g. bucket ARNs)
    role_policy = None
    if policy_statements:
        role_policy = aws.iam.RolePolicy(
            f"{resource_id}-policy",
            role=role.id,
            policy=pulumi.Output.from_input(build_policy_document(policy_statements)).apply(json.dumps),
            opts=pulumi.ResourceOptions(parent=role)
        )

    return {
        "role": role,
        "role_policy": role_policy,
        "role_arn": role.arn,
        "role_name": role.name
    }
