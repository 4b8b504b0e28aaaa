"""Compile stage configuration into an ECS Fargate deployment plan and render it with AWS CDK."""

__version__ = "0.1.0"
