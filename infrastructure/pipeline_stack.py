from aws_cdk import (
    Stack,
    Duration,
    RemovalPolicy,
    CfnOutput,
    aws_s3 as s3,
    aws_s3_deployment as s3deploy,
    aws_cloudfront as cloudfront,
    aws_cloudfront_origins as origins,
    aws_ecr as ecr,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_logs as logs,
)
from constructs import Construct


class PipelineStack(Stack):
    """Frontend (S3 + CloudFront) and backend (ECR + ECS Fargate + ALB) for the CI/CD dashboard."""

    def __init__(self, scope: Construct, construct_id: str, config: dict, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)

        container_port = config["container_port"]

        # ---------------------------------------------------------
        # 1. S3 Bucket (Frontend)
        # ---------------------------------------------------------
        # 静的ウェブサイトホスティング。公開読み取りのため ACL のみブロックする
        self.frontend_bucket = s3.Bucket(self, "FrontendBucket",
            bucket_name=f"{config['bucket_prefix']}-{self.account}-{self.region}",
            website_index_document="index.html",
            website_error_document="index.html",
            public_read_access=True,
            block_public_access=s3.BlockPublicAccess.BLOCK_ACLS_ONLY,
            removal_policy=RemovalPolicy.DESTROY, # スタック削除時にバケットも消す
            auto_delete_objects=True,             # 中身も空にする
            cors=[
                s3.CorsRule(
                    allowed_methods=[s3.HttpMethods.GET],
                    allowed_origins=["*"],
                    allowed_headers=["*"],
                )
            ],
        )

        # ---------------------------------------------------------
        # 2. CloudFront (Distribution)
        # ---------------------------------------------------------
        self.distribution = cloudfront.Distribution(self, "FrontendDistribution",
            default_behavior=cloudfront.BehaviorOptions(
                # ウェブサイトエンドポイントをオリジンにする (OAI/OAC は使わない)
                origin=origins.S3StaticWebsiteOrigin(self.frontend_bucket),
                viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
                allowed_methods=cloudfront.AllowedMethods.ALLOW_ALL,
                cached_methods=cloudfront.CachedMethods.CACHE_GET_HEAD,
            ),
            default_root_object="index.html",

            # SPA のフォールバック: 404 は index.html を 200 で返す
            error_responses=[
                cloudfront.ErrorResponse(
                    http_status=404,
                    response_http_status=200,
                    response_page_path="/index.html",
                    ttl=Duration.minutes(5),
                )
            ],
        )

        # ---------------------------------------------------------
        # 3. ECR (Backend Image Registry)
        # ---------------------------------------------------------
        self.repository = ecr.Repository(self, "BackendRepository",
            repository_name=config["repository_name"],
            removal_policy=RemovalPolicy.DESTROY,
            image_tag_mutability=ecr.TagMutability.MUTABLE, # CI が毎回 latest を上書きする
            image_scan_on_push=True,
        )

        # ---------------------------------------------------------
        # 4. VPC & ECS Cluster
        # ---------------------------------------------------------
        # 2AZ / NAT は 1 台のみ (コスト優先)
        self.vpc = ec2.Vpc(self, "PipelineVpc",
            max_azs=2,
            nat_gateways=1,
            subnet_configuration=[
                ec2.SubnetConfiguration(
                    name="Public",
                    subnet_type=ec2.SubnetType.PUBLIC,
                    cidr_mask=24,
                ),
                ec2.SubnetConfiguration(
                    name="Private",
                    subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS,
                    cidr_mask=24,
                ),
            ],
        )

        self.cluster = ecs.Cluster(self, "BackendCluster",
            vpc=self.vpc,
            cluster_name=config["cluster_name"],
            container_insights_v2=ecs.ContainerInsights.ENABLED,
        )

        # ---------------------------------------------------------
        # 5. Fargate Task & Service (Backend API)
        # ---------------------------------------------------------
        task_definition = ecs.FargateTaskDefinition(self, "BackendTask",
            memory_limit_mib=config["memory_limit_mib"],
            cpu=config["cpu"],
            family=config["task_family"],
        )

        container = task_definition.add_container("BackendContainer",
            image=ecs.ContainerImage.from_ecr_repository(self.repository, config["image_tag"]),
            environment={
                "APP_ENV": "production",
                "PORT": str(container_port),
                "GITHUB_OWNER": config["github_owner"],
                "GITHUB_REPO": config["github_repo"],
            },
            logging=ecs.LogDrivers.aws_logs(
                stream_prefix="backend-api",
                log_retention=logs.RetentionDays.ONE_WEEK,
            ),
        )

        container.add_port_mappings(
            ecs.PortMapping(
                container_port=container_port,
                protocol=ecs.Protocol.TCP,
            )
        )

        self.service = ecs.FargateService(self, "BackendService",
            cluster=self.cluster,
            task_definition=task_definition,
            desired_count=config["desired_count"],
            assign_public_ip=True,
            service_name=config["service_name"],
        )

        # ---------------------------------------------------------
        # 6. Application Load Balancer
        # ---------------------------------------------------------
        self.load_balancer = elbv2.ApplicationLoadBalancer(self, "BackendALB",
            vpc=self.vpc,
            internet_facing=True,
            load_balancer_name=config["load_balancer_name"],
        )

        # マッチしないパスは 404 を返す
        listener = self.load_balancer.add_listener("BackendListener",
            port=80,
            default_action=elbv2.ListenerAction.fixed_response(404,
                content_type="text/plain",
                message_body="Not Found",
            ),
        )

        # priority 無しで add_targets するとデフォルトアクションが置き換わるため、/api/* のルールとして登録する
        listener.add_targets("BackendTargets",
            port=container_port,
            targets=[self.service],
            priority=1,
            conditions=[elbv2.ListenerCondition.path_patterns(["/api/*"])],
            health_check=elbv2.HealthCheck(
                path=config["health_check_path"],
                interval=Duration.seconds(30),
                timeout=Duration.seconds(10),
                healthy_threshold_count=2,
                unhealthy_threshold_count=3,
                protocol=elbv2.Protocol.HTTP,
            ),
            protocol=elbv2.ApplicationProtocol.HTTP,
        )

        # /api/* は CloudFront から ALB へ (HTTPS ページから同一オリジンで API を呼ぶ)
        self.distribution.add_behavior("/api/*",
            origins.LoadBalancerV2Origin(self.load_balancer,
                protocol_policy=cloudfront.OriginProtocolPolicy.HTTP_ONLY,
            ),
            viewer_protocol_policy=cloudfront.ViewerProtocolPolicy.REDIRECT_TO_HTTPS,
            cache_policy=cloudfront.CachePolicy.CACHING_DISABLED,
            allowed_methods=cloudfront.AllowedMethods.ALLOW_ALL,
            origin_request_policy=cloudfront.OriginRequestPolicy.ALL_VIEWER_EXCEPT_HOST_HEADER,
        )

        # ---------------------------------------------------------
        # 7. S3 Deployment (Frontend Assets)
        # ---------------------------------------------------------
        # 通常は CI が S3BucketName を使って同期する。パス指定時のみ cdk deploy でアップロード
        if config.get("frontend_asset_path"):
            s3deploy.BucketDeployment(self, "DeployWebsite",
                sources=[s3deploy.Source.asset(config["frontend_asset_path"])],
                destination_bucket=self.frontend_bucket,
                distribution=self.distribution, # キャッシュ無効化のため Distribution を指定
                distribution_paths=["/*"],
            )

        # ---------------------------------------------------------
        # 8. Outputs
        # ---------------------------------------------------------
        self._export("ECRRepository", self.repository.repository_uri,
            "ECR Repository URI for backend container")
        self._export("FrontendURL", f"https://{self.distribution.distribution_domain_name}",
            "Frontend CloudFront URL - Dashboard will be available here")
        self._export("BackendURL", f"http://{self.load_balancer.load_balancer_dns_name}",
            "Backend ALB URL - API will be available here")
        self._export("S3BucketName", self.frontend_bucket.bucket_name,
            "S3 Bucket name for frontend deployment")
        self._export("ClusterName", self.cluster.cluster_name,
            "ECS Cluster name for backend deployment")
        self._export("ServiceName", self.service.service_name,
            "ECS Service name for backend deployment")

    def _export(self, name: str, value: str, description: str) -> CfnOutput:
        return CfnOutput(self, name,
            value=value,
            description=description,
            export_name=name,
        )
