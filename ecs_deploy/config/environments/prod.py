"""Production stage configuration."""

import os

prod_config = {
    "aws": {
        "account_name": "Production",
        "account": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "region": "ap-northeast-2",
    },
    "vpc": {"id": "vpc-0a1b2c3d4e5f67890"},
    "route53": {"enable": True, "domain": "example.com", "hostname": "orders"},
    "acm": {
        "create": False,
        "arn": "arn:aws:acm:ap-northeast-2:111122223333:certificate/5f0c6a8e-prod-orders",
    },
    "secrets_manager": [
        {
            "arn": "arn:aws:secretsmanager:ap-northeast-2:111122223333:secret:prod/orders-api-MnOpQr",
            "variables": {"database_url": "DATABASE_URL", "api_key": "PAYMENTS_API_KEY"},
        },
        {
            "arn": "arn:aws:secretsmanager:ap-northeast-2:111122223333:secret:prod/shared-sentry-StUvWx",
            "variables": {"dsn": "SENTRY_DSN"},
        },
    ],
    # Separate load balancer/listener/target group, image pushed to the private registry
    "build_strategy": "explicit",
    "task": {"desired_count": 2, "cpu": 1024, "memory_limit_mib": 2048, "spot": False},
    "autoscaling": {"min_capacity": 2, "max_capacity": 8, "cpu_target_utilization_percent": 70},
    "load_balancer": {"healthcheck_path": "/health"},
    "cloudwatch_alarm": {
        "cpu": {"alarm_threshold": 70, "evaluation_periods": 3, "datapoints_to_alarm": 2},
        "memory": {"alarm_threshold": 80, "evaluation_periods": 3, "datapoints_to_alarm": 2},
    },
    "extra_policies": [
        {
            "resources": ["arn:aws:s3:::orders-api-prod-exports/*"],
            "actions": ["s3:GetObject", "s3:PutObject"],
        },
    ],
    "custom_tags": {"key": "CostCenter", "value": "Commerce"},
}
