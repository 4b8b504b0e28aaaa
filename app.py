#!/usr/bin/env python3
"""
ECS Deploy CDK App
Compiles the stage configuration into a deployment plan and renders it as one stack.
"""

import os

import aws_cdk as cdk

from ecs_deploy.config.environments import get_app_config
from ecs_deploy.core.compiler import build_deployment_plan
from ecs_deploy.core.lookups import DeferredLookupResolver
from ecs_deploy.stacks import EcsServiceStack

app = cdk.App()

# Stage and revision (revision is only used by the preview stage)
stage = app.node.try_get_context("stage") or os.environ.get("STAGE") or "dev"
revision = app.node.try_get_context("revision") or os.environ.get("APP_REVISION")

plan = build_deployment_plan(get_app_config(), stage, revision, lookups=DeferredLookupResolver())

# CDK environment (account/region); VPC and hosted zone lookups need both
cdk_env = cdk.Environment(
    account=plan.config.aws.account or os.environ.get("CDK_DEFAULT_ACCOUNT"),
    region=plan.config.aws.region or os.environ.get("CDK_DEFAULT_REGION"),
)

service_stack = EcsServiceStack(
    app,
    f"EcsDeploy-{stage}",
    plan=plan,
    stack_name=plan.stack_name,
    env=cdk_env,
)

cdk.Tags.of(app).add("ManagedBy", "CDK")

app.synth()
