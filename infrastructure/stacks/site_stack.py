"""Site stack: one Lambda function serving the site behind a function URL."""

from aws_cdk import (
    Stack,
    Duration,
    CfnOutput,
    aws_lambda as lambda_,
    aws_logs as logs,
)
from constructs import Construct
from typing import Dict, Any

from cdk_constructs import LambdaFunction


class SiteStack(Stack):
    """
    Site infrastructure stack.

    Components:
    - Site Lambda function (deployment artifact: server code + built site)
    - Public function URL
    - Parameter Store read access for site metadata
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        env_name: str,
        env_config: Dict[str, Any],
        artifact_path: str,
        output_name: str = "site",
        **kwargs
    ):
        """
        Initialize site stack.

        Args:
            scope: CDK app
            construct_id: Stack ID
            env_name: Environment name (dev/test/prod)
            env_config: Environment-specific configuration
            artifact_path: Path to the packaged deployment zip
            output_name: Artifact name the server expects (SITE_OUTPUT_NAME)
            **kwargs: Additional stack properties
        """
        super().__init__(scope, construct_id, **kwargs)

        self.env_name = env_name
        self.env_config = env_config
        parameter_prefix = env_config.get("parameter_prefix", "/site-lambda")

        self.site = LambdaFunction(
            self,
            "SiteLambda",
            code=lambda_.Code.from_asset(artifact_path),
            architecture=self._get_architecture(env_config.get("architecture", "arm64")),
            timeout=Duration.seconds(env_config["lambda_timeout"]),
            memory_size=env_config["lambda_memory"],
            environment={
                "ENVIRONMENT": env_name,
                "SITE_OUTPUT_NAME": output_name,
                "SITE_ROOT": env_config.get("site_root", "target/site"),
                "SITE_PARAMETER_PREFIX": parameter_prefix,
                "ADAPTER_LOG_LEVEL": env_config.get("log_level", "INFO"),
            },
            log_retention=self._get_log_retention(env_config["log_retention_days"]),
            description=f"Server-rendered site - {env_name}",
        )
        self.site.grant_parameter_store_read(parameter_prefix + "/")
        self.function_url = self.site.add_public_url()

        CfnOutput(
            self,
            "SiteUrl",
            value=self.function_url.url,
            description="Public invocation URL of the site",
        )
        CfnOutput(
            self,
            "SiteFunctionName",
            value=self.site.function.function_name,
            description="Site Lambda function name",
        )

    @staticmethod
    def _get_architecture(name: str) -> lambda_.Architecture:
        if name == "x86_64":
            return lambda_.Architecture.X86_64
        return lambda_.Architecture.ARM_64

    @staticmethod
    def _get_log_retention(days: int) -> logs.RetentionDays:
        """Convert integer days to RetentionDays enum."""
        retention_map = {
            1: logs.RetentionDays.ONE_DAY,
            3: logs.RetentionDays.THREE_DAYS,
            7: logs.RetentionDays.ONE_WEEK,
            14: logs.RetentionDays.TWO_WEEKS,
            30: logs.RetentionDays.ONE_MONTH,
            90: logs.RetentionDays.THREE_MONTHS,
        }
        return retention_map.get(days, logs.RetentionDays.ONE_WEEK)
