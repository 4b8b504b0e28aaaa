"""Staging stage configuration."""

import os

staging_config = {
    "aws": {
        "account_name": "Staging",
        "account": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "region": "ap-northeast-2",
    },
    "vpc": {"name": "Staging-VPC"},
    "route53": {"enable": True, "domain": "staging.example.com", "hostname": "orders"},
    # DNS-validated certificate created in the staging hosted zone
    "acm": {"create": True, "arn": ""},
    "secrets_manager": [
        {
            "arn": "arn:aws:secretsmanager:ap-northeast-2:111122223333:secret:staging/orders-api-GhIjKl",
            "variables": {"database_url": "DATABASE_URL", "api_key": "PAYMENTS_API_KEY"},
        },
    ],
    "task": {"desired_count": 1, "cpu": 512, "memory_limit_mib": 1024, "spot": True},
    "autoscaling": {"min_capacity": 1, "max_capacity": 4, "cpu_target_utilization_percent": 75},
    "load_balancer": {"healthcheck_path": "/health"},
}
