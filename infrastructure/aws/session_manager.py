"""boto3 session handling for the provisioner's run modes."""

import os
import boto3
from typing import Optional, Dict, Tuple
from datetime import datetime
from core.utils.logger import get_infrastructure_logger


RUN_MODES = ("local", "pipeline")


class AWSSessionManager:
    """Hands out boto3 sessions for the operator workstation, CI pipelines and the node.

    On the node itself ``local`` mode resolves to the instance profile through
    the default credential chain. Assumed-role sessions are shared across the
    wrappers of one process, so the CloudFormation, SSM, CloudWatch and SNS
    clients of a deploy assume the provisioning role only once.
    """

    _sessions: Dict[Tuple[str, ...], boto3.Session] = {}

    def __init__(self, region: str = "us-east-1"):
        self.region = region
        self.logger = get_infrastructure_logger(__name__)

    def get_session(
        self,
        account_id: Optional[str] = None,
        role_name: Optional[str] = None,
        run_mode: Optional[str] = "local",
        session_duration: int = 3600,
    ) -> boto3.Session:
        run_mode = run_mode or "local"
        if run_mode not in RUN_MODES:
            raise ValueError(f"Unsupported run_mode: {run_mode}. Use one of {', '.join(RUN_MODES)}")

        if run_mode == "pipeline":
            return self.get_session_from_env(region=self.region)

        if not account_id or not role_name:
            return boto3.Session(region_name=self.region)

        key = ("role", self.region, account_id, role_name)
        if key not in self._sessions:
            self._sessions[key] = self._assume_role_session(account_id, role_name, session_duration)
        return self._sessions[key]

    def _assume_role_session(
        self, account_id: str, role_name: str, session_duration: int
    ) -> boto3.Session:
        if not account_id.isdigit() or len(account_id) != 12:
            raise ValueError(f"Invalid AWS account ID: {account_id}")
        role_arn = f"arn:aws:iam::{account_id}:role/{role_name}"

        try:
            credentials = boto3.client("sts", region_name=self.region).assume_role(
                RoleArn=role_arn,
                RoleSessionName=f"near-provisioner-{datetime.utcnow().strftime('%Y%m%d-%H%M%S')}",
                DurationSeconds=session_duration,
            )["Credentials"]
        except Exception as e:
            self.logger.error(f"Failed to assume provisioning role {role_arn}: {str(e)}")
            raise RuntimeError(f"Role assumption failed: {str(e)}") from e

        self.logger.info(f"Assumed provisioning role {role_arn}")
        return boto3.Session(
            aws_access_key_id=credentials["AccessKeyId"],
            aws_secret_access_key=credentials["SecretAccessKey"],
            aws_session_token=credentials["SessionToken"],
            region_name=self.region,
        )

    @classmethod
    def get_session_from_env(cls, region: str = "us-east-1") -> boto3.Session:
        """Session from AWS_ACCESS_KEY_ID / AWS_SECRET_ACCESS_KEY / AWS_SESSION_TOKEN."""
        key = ("env", region)

        if key not in cls._sessions:
            access_key = os.getenv("AWS_ACCESS_KEY_ID")
            secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
            if not access_key or not secret_key:
                raise ValueError(
                    "Pipeline mode needs AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY in the environment"
                )

            cls._sessions[key] = boto3.Session(
                aws_access_key_id=access_key,
                aws_secret_access_key=secret_key,
                aws_session_token=os.getenv("AWS_SESSION_TOKEN"),
                region_name=region,
            )

        return cls._sessions[key]
