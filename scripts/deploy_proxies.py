#!/usr/bin/python3
from pathlib import Path

import click
from ape.cli import ConnectedProviderCommand, account_option, network_option

from proxy_deployment.constants import PARAMS_DIR
from proxy_deployment.params import Deployer, deploy_proxies
from proxy_deployment.types import ChecksumAddress


@click.command(cls=ConnectedProviderCommand)
@network_option(required=True)
@account_option()
@click.option(
    "--params-file",
    "-p",
    help="Filepath of the proxy parameters YAML",
    type=click.Path(dir_okay=False, exists=True, path_type=Path),
    default=PARAMS_DIR / "goerli.yml",
    show_default=True,
)
@click.option(
    "--proxy-admin-owner",
    help="Owner of the proxy admin; defaults to PROXY_ADMIN_OWNER or the deployer",
    type=ChecksumAddress(),
    required=False,
)
@click.option(
    "--verify/--no-verify",
    help="Verify implementation contracts on the block explorer",
    default=True,
)
@click.option(
    "--autosign",
    help="Sign transactions without confirmation prompts",
    is_flag=True,
)
def cli(network, account, params_file, proxy_admin_owner, verify, autosign):
    """Deploy the Pools, Privates and ValidatorsRegistry proxies."""
    deployer = Deployer.from_yaml(
        filepath=params_file,
        verify=verify,
        account=account,
        autosign=autosign,
        proxy_admin_owner=proxy_admin_owner,
    )
    deployments = deploy_proxies(deployer)
    deployer.finalize(deployments=deployments)


if __name__ == "__main__":
    cli()
