import logging
import os
from collections import Counter
from typing import List, Optional

import requests
from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="CI/CD Pipeline Dashboard API")

# フロントエンドは CloudFront ドメインから呼ぶ
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Configuration ---

SERVICE_NAME = "ci-cd-backend"
GITHUB_API_URL = "https://api.github.com"
GITHUB_TIMEOUT_SECONDS = 10

DEFAULT_GITHUB_OWNER = "CodyHermon"
DEFAULT_GITHUB_REPO = "cloud-ci-cd-pipeline"


def github_repository():
    # ECS タスク定義の environment から注入される
    owner = os.environ.get("GITHUB_OWNER") or DEFAULT_GITHUB_OWNER
    repo = os.environ.get("GITHUB_REPO") or DEFAULT_GITHUB_REPO
    return owner, repo

# --- Models ---

class HealthResponse(BaseModel):
    status: str
    service: str
    environment: str

class RepositoryInfo(BaseModel):
    owner: str
    repo: str
    url: str

class WorkflowRun(BaseModel):
    id: int
    name: Optional[str] = None
    status: Optional[str] = None
    conclusion: Optional[str] = None # 実行中は None
    branch: Optional[str] = None
    commit_sha: Optional[str] = None
    event: Optional[str] = None
    html_url: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

class WorkflowRunsResponse(BaseModel):
    repository: RepositoryInfo
    runs: List[WorkflowRun]

class WorkflowSummary(BaseModel):
    repository: RepositoryInfo
    total: int
    success: int = 0
    failure: int = 0
    cancelled: int = 0
    in_progress: int = 0
    other: int = 0
    latest: Optional[WorkflowRun] = None

# --- GitHub ---

def fetch_workflow_runs(owner: str, repo: str, limit: int) -> List[WorkflowRun]:
    """Fetch the latest GitHub Actions runs for owner/repo, newest first."""
    headers = {
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": "2022-11-28",
    }
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        headers["Authorization"] = f"Bearer {token}"

    response = requests.get(
        f"{GITHUB_API_URL}/repos/{owner}/{repo}/actions/runs",
        params={"per_page": limit},
        headers=headers,
        timeout=GITHUB_TIMEOUT_SECONDS,
    )
    response.raise_for_status()

    return [to_workflow_run(item) for item in response.json().get("workflow_runs", [])]

def to_workflow_run(item: dict) -> WorkflowRun:
    return WorkflowRun(
        id=item["id"],
        name=item.get("name"),
        status=item.get("status"),
        conclusion=item.get("conclusion"),
        branch=item.get("head_branch"),
        commit_sha=item.get("head_sha"),
        event=item.get("event"),
        html_url=item.get("html_url"),
        created_at=item.get("created_at"),
        updated_at=item.get("updated_at"),
    )

def load_runs(limit: int) -> List[WorkflowRun]:
    owner, repo = github_repository()
    try:
        return fetch_workflow_runs(owner, repo, limit)
    except requests.RequestException as e:
        logger.error("GitHub request failed for %s/%s: %s", owner, repo, e)
        raise HTTPException(status_code=502, detail="Failed to fetch workflow runs from GitHub") from e

def repository_info() -> RepositoryInfo:
    owner, repo = github_repository()
    return RepositoryInfo(owner=owner, repo=repo, url=f"https://github.com/{owner}/{repo}")

# --- API Endpoints ---

@app.get("/api/health", response_model=HealthResponse)
def health():
    # ALB のヘルスチェック対象
    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        environment=os.environ.get("APP_ENV", "development"),
    )

@app.get("/api/repository", response_model=RepositoryInfo)
def repository():
    return repository_info()

@app.get("/api/workflows/runs", response_model=WorkflowRunsResponse)
def workflow_runs(limit: int = Query(10, ge=1, le=100)):
    return WorkflowRunsResponse(repository=repository_info(), runs=load_runs(limit))

@app.get("/api/workflows/summary", response_model=WorkflowSummary)
def workflow_summary(limit: int = Query(20, ge=1, le=100)):
    runs = load_runs(limit)

    counts = Counter()
    for run in runs:
        if run.conclusion is None:
            counts["in_progress"] += 1
        elif run.conclusion in ("success", "failure", "cancelled"):
            counts[run.conclusion] += 1
        else:
            counts["other"] += 1

    return WorkflowSummary(
        repository=repository_info(),
        total=len(runs),
        latest=runs[0] if runs else None,
        **counts,
    )
