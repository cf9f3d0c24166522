import os
from typing import Mapping, Optional

import aws_cdk as cdk

# リージョン未指定時のフォールバック先
DEFAULT_REGION = "us-west-2"

DEFAULT_GITHUB_OWNER = "CodyHermon"
DEFAULT_GITHUB_REPO = "cloud-ci-cd-pipeline"


def _get(environ: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    # 空文字は未設定扱い
    value = environ.get(name)
    return value if value else default


def build_config(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Build the stack configuration from the process environment."""
    environ = os.environ if environ is None else environ

    return {
        # リソース識別子
        "stack_name": "CiCdPipelineStack",
        "bucket_prefix": "ci-cd-frontend",
        "repository_name": "ci-cd-backend",
        "cluster_name": "ci-cd-backend-cluster",
        "service_name": "ci-cd-backend-service",
        "task_family": "ci-cd-backend",
        "load_balancer_name": "ci-cd-backend-alb",

        # コンテナ設定 (Fargate)
        "container_port": 3001,
        "cpu": 256,
        "memory_limit_mib": 512,
        "desired_count": 1,
        "image_tag": "latest",
        "health_check_path": "/api/health",

        # バックエンドに渡す GitHub リポジトリ
        "github_owner": _get(environ, "GITHUB_OWNER", DEFAULT_GITHUB_OWNER),
        "github_repo": _get(environ, "GITHUB_REPO", DEFAULT_GITHUB_REPO),

        # 指定された場合のみ frontend をデプロイ時にアップロードする
        "frontend_asset_path": _get(environ, "FRONTEND_ASSET_PATH"),
    }


def build_environment(environ: Optional[Mapping[str, str]] = None) -> cdk.Environment:
    environ = os.environ if environ is None else environ
    return cdk.Environment(
        account=_get(environ, "CDK_DEFAULT_ACCOUNT"),
        region=_get(environ, "CDK_DEFAULT_REGION", DEFAULT_REGION),
    )
