"""Lambda function construct for the server-rendered site."""

from aws_cdk import (
    Duration,
    aws_lambda as lambda_,
    aws_logs as logs,
    aws_iam as iam,
)
from constructs import Construct
from typing import Dict, Optional


class LambdaFunction(Construct):
    """
    Site Lambda function with standard configurations.

    Features:
    - CloudWatch log group with configurable retention
    - Optional public function URL (the site's invocation URL)
    - Parameter Store read access for site metadata
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        code: lambda_.Code,
        handler: str = "main.handler",
        runtime: lambda_.Runtime = lambda_.Runtime.PYTHON_3_12,
        architecture: lambda_.Architecture = lambda_.Architecture.ARM_64,
        timeout: Duration,
        memory_size: int,
        environment: Optional[Dict[str, str]] = None,
        log_retention: logs.RetentionDays = logs.RetentionDays.ONE_WEEK,
        description: Optional[str] = None,
        **kwargs
    ):
        """
        Initialize Lambda function construct.

        Args:
            scope: CDK scope
            construct_id: Construct identifier
            code: Deployment artifact (server code plus built site)
            handler: Function handler
            runtime: Lambda runtime
            architecture: Instruction set the artifact was built for
            timeout: Function timeout
            memory_size: Memory allocation in MB
            environment: Environment variables
            log_retention: CloudWatch log retention
            description: Function description
            **kwargs: Additional Lambda function properties
        """
        super().__init__(scope, construct_id)

        self.function = lambda_.Function(
            self,
            "Function",
            runtime=runtime,
            architecture=architecture,
            handler=handler,
            code=code,
            timeout=timeout,
            memory_size=memory_size,
            environment=environment or {},
            description=description,
            log_retention=log_retention,
            **kwargs
        )
        self.function_url: Optional[lambda_.FunctionUrl] = None

    def add_public_url(self) -> lambda_.FunctionUrl:
        """Expose the function through an unauthenticated function URL."""
        self.function_url = self.function.add_function_url(
            auth_type=lambda_.FunctionUrlAuthType.NONE,
        )
        return self.function_url

    def grant_parameter_store_read(self, parameter_prefix: str):
        """Grant permission to read Parameter Store parameters."""
        stack = self.function.stack
        self.function.add_to_role_policy(
            iam.PolicyStatement(
                actions=["ssm:GetParameter", "ssm:GetParameters"],
                resources=[
                    f"arn:aws:ssm:{stack.region}:{stack.account}:parameter{parameter_prefix}*"
                ],
            )
        )
