#!/usr/bin/env python3
import aws_cdk as cdk
from infrastructure.config import build_config, build_environment
from infrastructure.pipeline_stack import PipelineStack

app = cdk.App()

# --- 設定値 (Configuration) ---
# GITHUB_OWNER / GITHUB_REPO / FRONTEND_ASSET_PATH を環境変数から読む
CONFIG = build_config()

# --- スタックの定義 ---
# CDK_DEFAULT_REGION が無ければ us-west-2
PipelineStack(app, CONFIG["stack_name"],
    config=CONFIG,
    env=build_environment(),
    description="CI/CD Pipeline Infrastructure - Frontend S3/CloudFront + Backend ECS",
)

app.synth()
