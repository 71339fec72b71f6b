"""
CLI interface for bosh-micro.

Commands:
    bosh-micro deployment [PATH]            set or show the deployment manifest
    bosh-micro deploy CPI_RELEASE STEMCELL  deploy the configured manifest
"""

import sys
from pathlib import Path

import click

from bosh_micro import __version__
from bosh_micro.utils import print_error, print_success, setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="bosh-micro")
@click.pass_context
def main(ctx):
    """
    bosh-micro - Bootstrap a single VM through a CPI release.

    Select a manifest with `deployment`, then run `deploy`.
    """
    from bosh_micro.config import load_config

    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config()
    except Exception as e:
        ctx.obj["config_error"] = str(e)


def _get_config(ctx):
    if "config" not in ctx.obj:
        print_error(f"Config not loaded: {ctx.obj.get('config_error', 'Unknown error')}")
        raise SystemExit(1)
    return ctx.obj["config"]


@main.command("deployment")
@click.argument("path", required=False)
@click.pass_context
def deployment(ctx, path):
    """
    Set or show the deployment manifest.

    Examples:

        bosh-micro deployment ./manifest.yml

        bosh-micro deployment
    """
    from bosh_micro.config import save_config

    config = _get_config(ctx)

    if path is None:
        if not config.deployment:
            click.echo("Deployment not set", err=True)
            raise SystemExit(1)
        click.echo(f"Current deployment is '{config.deployment}'")
        return

    manifest_path = Path(path).expanduser().resolve()
    if not manifest_path.is_file():
        print_error(f"Deployment manifest does not exist at '{manifest_path}'")
        raise SystemExit(1)

    config.deployment = str(manifest_path)
    save_config(config)
    click.echo(f"Deployment set to '{manifest_path}'")


def _build_deploy_cmd(config):
    """Wire the deploy command with its concrete collaborators."""
    from bosh_micro.agentclient.http_client import HTTPClient
    from bosh_micro.compressor import Compressor
    from bosh_micro.config import get_bosh_micro_home
    from bosh_micro.cpi.installer import new_installer
    from bosh_micro.deploy_cmd import DeployCmd
    from bosh_micro.deployment.deployer import Deployer, agent_client_factory
    from bosh_micro.deployment.manifest import Parser
    from bosh_micro.deployment.record import DeploymentRecord
    from bosh_micro.deployment.validator import DeploymentValidator
    from bosh_micro.eventlog import EventLogger
    from bosh_micro.registry.server import ServerManager
    from bosh_micro.stemcell import StemcellExtractor
    from bosh_micro.ui import UI

    home = get_bosh_micro_home()
    event_logger = EventLogger()
    http_client = HTTPClient(timeout=config.agent_timeout_seconds)

    return DeployCmd(
        ui=UI(),
        user_config=config,
        parser=Parser(),
        validator=DeploymentValidator(),
        installer_factory=lambda deployment_id: new_installer(home, deployment_id, config.cpi_timeout_seconds),
        stemcell_extractor=StemcellExtractor(Compressor()),
        deployment_record=DeploymentRecord(),
        registry_server_manager=ServerManager(),
        deployer=Deployer(
            agent_client_factory(http_client),
            event_logger,
            agent_ping_timeout=config.agent_ping_timeout_seconds,
            agent_ping_delay=config.agent_ping_delay_seconds,
        ),
        event_logger=event_logger,
    )


@main.command("deploy")
@click.argument("cpi_release", type=click.Path())
@click.argument("stemcell", type=click.Path())
@click.option("--verbose", "-v", is_flag=True, help="Also log to the console")
@click.pass_context
def deploy(ctx, cpi_release: str, stemcell: str, verbose: bool):
    """
    Deploy the configured manifest.

    CPI_RELEASE is the CPI release tarball, STEMCELL the stemcell tarball.

    Examples:

        bosh-micro deploy cpi-release.tgz stemcell.tgz
    """
    config = _get_config(ctx)
    setup_logging(
        config.get_log_file_path(),
        log_level=config.log_level,
        log_format=config.log_format,
        console_output=verbose,
    )

    cmd = _build_deploy_cmd(config)
    try:
        cmd.run(cpi_release, stemcell)
    except Exception as e:
        print_error(f"Deploy failed: {e}")
        sys.exit(1)

    print_success("Deploy complete")


if __name__ == "__main__":
    main()
