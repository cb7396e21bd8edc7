"""AWS infrastructure implementations."""

from .ec2_client import EC2Client
from .ssm_client import SSMClient
from .cloudformation_client import CloudFormationClient
from .cloudwatch_client import CloudWatchClient
from .sns_client import SNSClient
from .s3_client import S3Client
from .autoscaling_client import AutoScalingClient
from .session_manager import AWSSessionManager

__all__ = [
    'EC2Client',
    'SSMClient',
    'CloudFormationClient',
    'CloudWatchClient',
    'SNSClient',
    'S3Client',
    'AutoScalingClient',
    'AWSSessionManager'
]
