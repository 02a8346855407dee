import dataclasses

import click

from hkdvalidator.cli._ctx import CLIContext
from hkdvalidator.cli._root import cli_root
from hkdvalidator.cli.runtime import hkd_exception_manager
from hkdvalidator.cli.utils import logger
from hkdvalidator.codec import distribution_points, load_cert_from_pemder
from hkdvalidator.config import VerifierConfig
from hkdvalidator.errors import HkdVerifyError
from hkdvalidator.verifier import CertVerifier

__all__ = ['verify_hkd', 'list_dist_points']


def _merge_cli_settings(
    config: VerifierConfig, root, certs, crls, offline, fetch_leaf_crls,
    timeout,
) -> VerifierConfig:
    # command line values take precedence over the configuration file
    overrides = {}
    if root is not None:
        overrides['root'] = root
    if certs:
        overrides['certs'] = tuple(certs)
    if crls:
        overrides['crls'] = tuple(crls)
    if offline:
        overrides['offline'] = True
    if fetch_leaf_crls:
        overrides['fetch_leaf_crls'] = True
    if timeout is not None:
        overrides['per_request_timeout'] = timeout
    return dataclasses.replace(config, **overrides)


readable_file = click.Path(exists=True, dir_okay=False, readable=True)


@cli_root.command(name='verify', help='verify host key documents')
@click.argument('hkd', type=readable_file, nargs=-1, required=True)
@click.option(
    '--root',
    help='file containing the root certificate(s)',
    required=False,
    type=readable_file,
)
@click.option(
    '--cert',
    help='signing key or intermediate certificate (repeatable)',
    multiple=True,
    type=readable_file,
)
@click.option(
    '--crl',
    help='CRL file (repeatable)',
    multiple=True,
    type=readable_file,
)
@click.option(
    '--offline',
    help='do not fetch CRLs over the network',
    type=bool,
    is_flag=True,
    default=False,
)
@click.option(
    '--fetch-leaf-crls',
    help='also fetch the CRLs declared by the host key documents',
    type=bool,
    is_flag=True,
    default=False,
)
@click.option(
    '--timeout',
    help='timeout for CRL requests, in seconds',
    required=False,
    type=click.IntRange(min=1),
)
@click.pass_context
def verify_hkd(
    ctx: click.Context, hkd, root, cert, crl, offline, fetch_leaf_crls, timeout
):
    ctx_obj: CLIContext = ctx.obj
    config = _merge_cli_settings(
        ctx_obj.config or VerifierConfig(),
        root=root, certs=cert, crls=crl, offline=offline,
        fetch_leaf_crls=fetch_leaf_crls, timeout=timeout,
    )
    with hkd_exception_manager():
        if not config.certs:
            raise click.ClickException(
                "At least one signing key certificate must be specified "
                "with --cert, or in the configuration file."
            )
        verifier = CertVerifier.from_config(config)

    failures = 0
    for fname in hkd:
        # retrieval and decoding problems abort the run
        with hkd_exception_manager():
            leaf = load_cert_from_pemder(fname)
            try:
                verifier.verify(leaf)
                click.echo(f"{fname}: OK")
            except HkdVerifyError as e:
                failures += 1
                logger.debug(f"Rejected {fname}", exc_info=e)
                click.echo(f"{fname}: FAILED ({e.kind.name}) {e.failure_msg}")

    if failures:
        raise click.ClickException(
            f"{failures} of {len(hkd)} host key document(s) could not be "
            f"verified"
        )


@cli_root.command(
    name='dist-points', help='list the CRL distribution points of a certificate'
)
@click.argument('cert', type=readable_file)
def list_dist_points(cert):
    with hkd_exception_manager():
        certificate = load_cert_from_pemder(cert)
    for url in distribution_points(certificate):
        click.echo(url)
