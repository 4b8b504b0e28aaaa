"""Development stage configuration."""

import os

dev_config = {
    "aws": {
        "account_name": "Development",
        "account": os.environ.get("CDK_DEFAULT_ACCOUNT"),
        "region": "ap-northeast-2",
    },
    "vpc": {"name": "Development-VPC"},
    # Plain HTTP on the load balancer; no DNS record
    "route53": {"enable": False, "domain": "", "hostname": ""},
    "acm": {"create": False, "arn": ""},
    "secrets_manager": [
        {
            "arn": "arn:aws:secretsmanager:ap-northeast-2:111122223333:secret:dev/orders-api-AbCdEf",
            "variables": {"database_url": "DATABASE_URL"},
        },
    ],
    "container": {
        "environment": {"LOG_LEVEL": "DEBUG"},
    },
    "task": {"desired_count": 1, "cpu": 256, "memory_limit_mib": 512, "spot": True},
    "load_balancer": {"healthcheck_path": "/health"},
    "custom_tags": {"key": "CostCenter", "value": "Engineering"},
}
