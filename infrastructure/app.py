#!/usr/bin/env python3
"""
CDK Application for the site-lambda deployment.

Deploys the packaged site (server code + built static assets) as one Lambda
function with a public function URL.

Usage:
    SITE_ARTIFACT=../dist/site.zip cdk deploy --context env=dev
    cdk destroy --context env=dev

Environment: dev, test, or prod (default: dev)
"""

import os
from aws_cdk import App, Environment, Tags

from stacks.site_stack import SiteStack

app = App()

env_name = app.node.try_get_context("env") or os.getenv("CDK_ENV", "dev")

env_config = app.node.try_get_context("environments").get(env_name)

if not env_config:
    raise ValueError(
        f"Environment '{env_name}' not found in cdk.json. "
        "Available: dev, test, prod"
    )

account_id = os.getenv("CDK_DEFAULT_ACCOUNT") or env_config["account"]
region = os.getenv("CDK_DEFAULT_REGION") or env_config["region"]

output_name = os.getenv("SITE_OUTPUT_NAME", "site")
artifact_path = os.getenv("SITE_ARTIFACT") or os.path.join("..", "dist", f"{output_name}.zip")

if not os.path.exists(artifact_path):
    raise FileNotFoundError(
        f"Deployment artifact not found: {artifact_path}. "
        "Build it first with: site-lambda build-assets && site-lambda package --with-deps"
    )

print(f"Deploying to environment: {env_name}")
print(f"AWS Account: {account_id}")
print(f"AWS Region: {region}")
print(f"Artifact: {artifact_path}")

SiteStack(
    app,
    f"Site-{env_name}",
    env=Environment(account=account_id, region=region),
    env_name=env_name,
    env_config=env_config,
    artifact_path=artifact_path,
    output_name=output_name,
    description=f"Server-rendered site on Lambda - {env_name}",
)

Tags.of(app).add("Environment", env_name)
Tags.of(app).add("Project", "site-lambda")
Tags.of(app).add("ManagedBy", "CDK")

app.synth()
