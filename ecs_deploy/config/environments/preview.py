"""Preview stage configuration (one deployment per revision)."""

import os

preview_config = {
    "aws": {
        "account_name": "Development",
        "account": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "region": "ap-northeast-2",
    },
    "vpc": {"name": "Development-VPC"},
    # hostname becomes orders-<revision>.preview.example.com
    "route53": {"enable": True, "domain": "preview.example.com", "hostname": "orders"},
    "acm": {"create": True, "arn": ""},
    "secrets_manager": [
        {
            "arn": "arn:aws:secretsmanager:ap-northeast-2:111122223333:secret:dev/orders-api-AbCdEf",
            "variables": {"database_url": "DATABASE_URL"},
        },
    ],
    "task": {"desired_count": 1, "cpu": 256, "memory_limit_mib": 512, "spot": True},
    "autoscaling": {"min_capacity": 1, "max_capacity": 2},
    "load_balancer": {"healthcheck_path": "/health"},
}
