"""Global configuration shared by every stage."""

global_config = {
    "name": "orders-api",
    "container": {
        "port": 8080,
        "image": {
            "uri": "111122223333.dkr.ecr.ap-northeast-2.amazonaws.com/orders-api",
        },
        "build_context": ".",
        "build_args": {
            "PYTHON_VERSION": "3.12",
        },
        "environment": {
            "LOG_LEVEL": "INFO",
        },
    },
}
