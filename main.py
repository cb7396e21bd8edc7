#!/usr/bin/env python3
"""
NEAR Node Provisioner - Main Entry Point

Command-line interface for deploying a NEAR node on AWS phase by phase,
bootstrapping the node itself at first boot, and watching its sync health.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Tuple

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

from core.exceptions import ProvisioningError, SignalDeliveryFailed
from core.models.bootstrap import BootstrapSettings
from core.models.config import NodeConfig
from core.models.phase import PhaseName, export_key
from core.orchestration.phase_orchestrator import PhaseOrchestrator
from core.services.alert_dispatcher import AlertDispatcher, default_rules
from core.services.config_service import ConfigService, DEFAULT_CONFIG_PATH
from core.services.health_classifier import HealthClassifier
from core.services.provisioning_agent import ProvisioningAgent
from core.services.remote_command_runner import RemoteCommandRunner
from core.utils.logger import reset_log_file, setup_logger
from infrastructure.aws.cloudformation_client import CloudFormationClient
from infrastructure.aws.cloudwatch_client import CloudWatchClient
from infrastructure.aws.sns_client import SNSClient
from infrastructure.aws.ssm_client import SSMClient


def setup_logging(level: str, log_file: Optional[str] = None, rewrite: bool = False) -> logging.Logger:
    """Route the application loggers to the console (and a file, if given)."""
    if log_file and rewrite:
        reset_log_file(log_file)
    for name in ("core", "infrastructure"):
        setup_logger(name, log_file, level)
    return setup_logger(__name__, log_file, level)


async def load_config(config_path: str) -> ConfigService:
    config_service = ConfigService()
    await config_service.load_config(config_path)
    await config_service.validate_config()
    return config_service


def aws_kwargs(config: NodeConfig) -> dict:
    return {
        "region": config.aws.region,
        "account_id": config.aws.account_id,
        "role_name": config.aws.role_name,
        "run_mode": config.aws.run_mode,
    }


def build_runner(config: NodeConfig) -> RemoteCommandRunner:
    return RemoteCommandRunner(
        SSMClient(**aws_kwargs(config)),
        poll_interval_seconds=config.health_check.poll_interval_seconds,
    )


def build_orchestrator(config: NodeConfig) -> PhaseOrchestrator:
    orchestrator = PhaseOrchestrator(state_file=config.state_file)
    orchestrator.define_default_pipeline(
        config,
        CloudFormationClient(**aws_kwargs(config)),
        build_runner(config),
    )
    return orchestrator


async def run_deploy(config: NodeConfig, phase_name: Optional[str] = None) -> bool:
    """Run every phase, or only the named one."""
    logger = logging.getLogger(__name__)
    orchestrator = build_orchestrator(config)

    try:
        if phase_name:
            outputs = await orchestrator.start(orchestrator.get_phase(phase_name))
        else:
            outputs = await orchestrator.run_all()
    except ProvisioningError as e:
        logger.error(f"Deployment stopped: {str(e)}")
        return False
    except asyncio.TimeoutError:
        logger.error("Deployment stopped: phase timed out")
        return False

    for key, value in sorted(outputs.items()):
        logger.info(f"  {key} = {value}")
    return True


async def run_retry(config: NodeConfig, phase_name: str) -> bool:
    """Reset a failed phase and run it again."""
    logger = logging.getLogger(__name__)
    orchestrator = build_orchestrator(config)
    phase = orchestrator.get_phase(phase_name)

    try:
        orchestrator.retry(phase)
        await orchestrator.start(phase)
    except ProvisioningError as e:
        logger.error(f"Retry of {phase_name} failed: {str(e)}")
        return False
    except asyncio.TimeoutError:
        logger.error(f"Retry of {phase_name} timed out")
        return False

    return True


def show_status(config: NodeConfig) -> bool:
    orchestrator = PhaseOrchestrator(state_file=config.state_file)
    orchestrator.define_default_pipeline(config, None, None)
    print(json.dumps(orchestrator.get_status(), indent=2))
    return True


async def load_bootstrap_context(
    config_path: str, env_file: Optional[str] = None
) -> Tuple[NodeConfig, BootstrapSettings, List[str]]:
    """Resolve the node config and bootstrap block without ever giving up.

    The agent must get as far as signaling, so a missing or invalid YAML file
    falls back to defaults, and an unreadable env file falls back to the
    YAML section plus environment variables. Problems are returned for
    logging once the log file is set up.
    """
    problems = []
    config_service = ConfigService()

    try:
        config = await config_service.load_config(config_path)
    except Exception as e:
        problems.append(f"Using default configuration, could not load {config_path}: {str(e)}")
        config = NodeConfig()
    else:
        problems.extend(f"Ignoring configuration error: {error}" for error in config_service.validate())

    sources = [env_file, None] if env_file else [None]
    for source in sources:
        try:
            settings = config_service.load_bootstrap_settings(source, default_region=config.aws.region)
            return config, settings, problems
        except Exception as e:
            problems.append(f"Could not read bootstrap settings from {source or 'environment'}: {str(e)}")

    return config, BootstrapSettings(region=config.aws.region), problems


async def run_bootstrap(
    config: NodeConfig, settings: BootstrapSettings, problems: Optional[List[str]] = None
) -> bool:
    """Run the on-instance bootstrap agent once."""
    logger = logging.getLogger(__name__)
    for problem in problems or []:
        logger.warning(problem)

    agent = ProvisioningAgent.create(settings, config.bootstrap, config.data_volume)

    try:
        bootstrap_run = await agent.run()
    except SignalDeliveryFailed as e:
        logger.error(str(e))
        return False

    if bootstrap_run.failed_steps:
        logger.warning(
            f"Signal sent, but these steps failed: "
            f"{', '.join(step.value for step in bootstrap_run.failed_steps)}"
        )
    return True


def resolve_instance_id(config: NodeConfig, instance_id: Optional[str]) -> Optional[str]:
    """CLI argument first, then the Infrastructure phase output."""
    if instance_id:
        return instance_id
    orchestrator = PhaseOrchestrator(state_file=config.state_file)
    orchestrator.define_default_pipeline(config, None, None)
    return orchestrator.exports().get(export_key(PhaseName.INFRASTRUCTURE.value, "InstanceId"))


def build_classifier(config: NodeConfig, instance_id: str) -> HealthClassifier:
    classifier = HealthClassifier(
        instance_id,
        build_runner(config),
        CloudWatchClient(**aws_kwargs(config)),
        config.health_check,
        config.health_check.resolve_reference_url(config.network),
    )
    classifier.subscribe(
        AlertDispatcher(
            default_rules(config.alerts),
            sns_client=SNSClient(**aws_kwargs(config)) if config.alerts.topic_arn else None,
            topic_arn=config.alerts.topic_arn,
        )
    )
    return classifier


async def run_health_check(config: NodeConfig, instance_id: Optional[str]) -> bool:
    logger = logging.getLogger(__name__)
    instance_id = resolve_instance_id(config, instance_id)
    if not instance_id:
        logger.error("No instance id given and the Infrastructure phase has not completed")
        return False

    report = await build_classifier(config, instance_id).tick()
    print(json.dumps(report.to_dict(), indent=2))
    return not report.collection_failed


async def run_monitor(
    config: NodeConfig, instance_id: Optional[str], max_ticks: Optional[int] = None
) -> bool:
    logger = logging.getLogger(__name__)
    instance_id = resolve_instance_id(config, instance_id)
    if not instance_id:
        logger.error("No instance id given and the Infrastructure phase has not completed")
        return False

    logger.info(
        f"Monitoring {instance_id} every {config.health_check.interval_seconds}s"
    )
    ticks = await build_classifier(config, instance_id).run(max_ticks)
    logger.info(f"Monitoring stopped after {ticks} ticks")
    return True


def parse_arguments() -> argparse.Namespace:
    """Parse command line arguments."""
    phase_names = [phase.value for phase in PhaseName]

    parser = argparse.ArgumentParser(
        description='NEAR Node Provisioner - phased node deployment on AWS',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Deploy every phase in order, skipping phases that already completed
  python main.py deploy

  # Run only the Install phase
  python main.py deploy --phase Install

  # Retry a failed phase
  python main.py retry --phase Install

  # On the instance, at first boot
  python main.py bootstrap --env-file /etc/near-bootstrap.env

  # Watch sync health and raise alerts
  python main.py monitor --instance-id i-0123456789abcdef0
        """
    )

    parser.add_argument(
        '--config',
        default=DEFAULT_CONFIG_PATH,
        help=f'Path to configuration file (default: {DEFAULT_CONFIG_PATH})'
    )
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Override the configured log level'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)

    deploy_parser = subparsers.add_parser('deploy', help='Run the provisioning phases')
    deploy_parser.add_argument('--phase', choices=phase_names, help='Run a single phase')

    retry_parser = subparsers.add_parser('retry', help='Retry a failed phase')
    retry_parser.add_argument('--phase', choices=phase_names, required=True)

    subparsers.add_parser('status', help='Show phase status as JSON')

    bootstrap_parser = subparsers.add_parser('bootstrap', help='Run the on-instance bootstrap agent')
    bootstrap_parser.add_argument(
        '--env-file',
        help='KEY=VALUE bootstrap settings (default: bootstrap_settings in the config plus environment)'
    )

    health_parser = subparsers.add_parser('health-check', help='Classify node health once')
    health_parser.add_argument('--instance-id', help='Node instance (default: Infrastructure output)')

    monitor_parser = subparsers.add_parser('monitor', help='Classify node health on a schedule')
    monitor_parser.add_argument('--instance-id', help='Node instance (default: Infrastructure output)')
    monitor_parser.add_argument('--max-ticks', type=int, help='Stop after this many samples')

    return parser.parse_args()


async def main() -> int:
    """Main entry point."""
    args = parse_arguments()

    try:
        if args.command == 'bootstrap':
            config, settings, problems = await load_bootstrap_context(args.config, args.env_file)
            level = args.log_level or config.log_level.value
            try:
                setup_logging(level, config.bootstrap.log_file, rewrite=True)
            except OSError as e:
                setup_logging(level)
                problems.append(f"Logging to console only, cannot open {config.bootstrap.log_file}: {str(e)}")
            success = await run_bootstrap(config, settings, problems)
            return 0 if success else 1

        config_service = await load_config(args.config)
        config = config_service.get_node_config()
        setup_logging(args.log_level or config.log_level.value)

        if args.command == 'deploy':
            success = await run_deploy(config, args.phase)
        elif args.command == 'retry':
            success = await run_retry(config, args.phase)
        elif args.command == 'status':
            success = show_status(config)
        elif args.command == 'health-check':
            success = await run_health_check(config, args.instance_id)
        elif args.command == 'monitor':
            success = await run_monitor(config, args.instance_id, args.max_ticks)
        else:
            print("No command specified. Use --help for usage information.")
            return 1

        return 0 if success else 1

    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        return 1
    except Exception as e:
        print(f"Unexpected error: {str(e)}")
        return 1


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == '__main__':
    cli()
