#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""sbkeeper - signed boot image and dbx revocation maintenance tool."""

import logging
import sys
from typing import Optional

import click
import colorama
import prettytable

from sbkeeper.apps.utils import sbk_logger
from sbkeeper.apps.utils.common_cli_options import (
    sbkeeper_apps_common_options,
    sbkeeper_config_option,
    sbkeeper_output_option,
)
from sbkeeper.apps.utils.utils import SBKAppError, catch_sbk_error
from sbkeeper.crypto.keys import resolve_key_reference
from sbkeeper.exceptions import SBKNotIndexedError
from sbkeeper.image.assembler import UkiAssembler
from sbkeeper.image.pipeline import ImagePipeline, PipelineReport
from sbkeeper.revocation.dbx import FirmwareVariable
from sbkeeper.revocation.extractor import PECOFFDigestExtractor
from sbkeeper.revocation.ledger import BackupStore, RevocationLedger
from sbkeeper.settings import KeeperConfig
from sbkeeper.utils.config import Config
from sbkeeper.utils.misc import get_printable_path, write_file
from sbkeeper.utils.tools import ToolRunner

logger = logging.getLogger(__name__)


def load_settings(config: str) -> KeeperConfig:
    """Load sbkeeper settings from configuration file.

    :param config: Path to the configuration file.
    :return: Resolved settings.
    """
    return KeeperConfig.load_from_config(Config.create_from_file(config))


def _create_table(header: list[str]) -> prettytable.PrettyTable:
    table = prettytable.PrettyTable(header)
    table.align = "l"
    table.hrules = prettytable.HRuleStyle.HEADER
    table.vrules = prettytable.VRuleStyle.NONE
    return table


def _finish(report: PipelineReport, operation: str) -> None:
    summary = str(report)
    if summary:
        click.echo(summary)
    if not report.success:
        raise SBKAppError(f"{operation} finished with errors, see the log for details")


@click.group(name="sbkeeper", no_args_is_help=True)
@sbkeeper_apps_common_options
def main(log_level: int) -> None:
    """Maintain signed boot images and the UEFI dbx revocation list."""
    sbk_logger.install(level=log_level)


@main.command(name="update")
@sbkeeper_config_option()
@click.argument("names", nargs=-1)
def update(config: str, names: tuple[str, ...]) -> None:
    """Generate signed images, replacing the installed ones.

    All configured images are updated when no NAMES are given.
    """
    settings = load_settings(config)
    pipeline = ImagePipeline.from_config(settings, ToolRunner(settings.tools))
    _finish(pipeline.update(list(names) or None), "Update")


@main.command(name="remove")
@sbkeeper_config_option()
@click.argument("names", nargs=-1, required=True)
def remove(config: str, names: tuple[str, ...]) -> None:
    """Remove signed images and revoke them."""
    settings = load_settings(config)
    pipeline = ImagePipeline.from_config(settings, ToolRunner(settings.tools))
    _finish(pipeline.remove_all(list(names)), "Removal")


@main.command(name="sync")
@sbkeeper_config_option()
def sync(config: str) -> None:
    """Blacklist revoked images and unblock the installed and backup ones."""
    settings = load_settings(config)
    if not settings.revocation:
        raise SBKAppError("Revocation is disabled in configuration, nothing to synchronize")
    pipeline = ImagePipeline.from_config(settings, ToolRunner(settings.tools))
    _finish(pipeline.sync(), "Synchronization")


@main.command(name="ledger")
@sbkeeper_config_option()
def ledger_command(config: str) -> None:
    """List revoked images stored in the ledger."""
    settings = load_settings(config)
    tools = ToolRunner(settings.tools)
    ledger = RevocationLedger(settings.ledger_dir, tools)
    backups = BackupStore(settings.backup_dir)
    extractor = PECOFFDigestExtractor(tools, settings.extractor)
    backup_of = {digest: name for name, digest in backups.items().items()}

    table = _create_table(["Digest", "PE/COFF digest", "Backup of"])
    count = 0
    for entry in ledger.list():
        try:
            pecoff_digest = extractor.extract(entry)
        except SBKNotIndexedError as exc:
            logger.warning(exc.description)
            pecoff_digest = colorama.Fore.RED + "N/A" + colorama.Style.RESET_ALL
        table.add_row([entry.digest, pecoff_digest, backup_of.get(entry.digest, "")])
        count += 1
    click.echo(table)
    click.echo(f"{count} revoked image(s) in {get_printable_path(settings.ledger_dir)}")


@main.command(name="dbx")
@sbkeeper_config_option()
def dbx_command(config: str) -> None:
    """Show SHA-256 signatures in the firmware dbx variable."""
    settings = load_settings(config)
    tools = ToolRunner(settings.tools)
    variable = FirmwareVariable(tools, settings.efivars_dir)
    extractor = PECOFFDigestExtractor(tools, settings.extractor)

    revoked: dict[str, str] = {}
    for entry in RevocationLedger(settings.ledger_dir, tools).list():
        try:
            revoked[extractor.extract(entry)] = entry.digest
        except SBKNotIndexedError as exc:
            logger.warning(exc.description)

    click.echo(f"Variable: {variable.path}")
    click.echo(f"State: {variable.get_state().label}")
    table = _create_table(["List", "Signature", "Digest", "Revoked image"])
    records = variable.records()
    for record in records:
        table.add_row(
            [record.list_index, record.signature_index, record.digest, revoked.get(record.digest, "")]
        )
    click.echo(table)
    click.echo(f"{len(records)} SHA-256 signature(s) in dbx")


@main.command(name="sign-extra")
@sbkeeper_config_option()
def sign_extra(config: str) -> None:
    """Sign the extra EFI binaries in place with the DB key."""
    settings = load_settings(config)
    if not settings.extra_sign:
        click.echo("No extra binaries configured")
        return
    tools = ToolRunner(settings.tools)
    assembler = UkiAssembler(
        settings, resolve_key_reference(settings.keys_dir, settings.db_key_name), tools
    )
    failed = assembler.sign_extra()
    if failed:
        raise SBKAppError(f"Failed to sign: {', '.join(failed)}")
    click.echo(f"Signed {len(settings.extra_sign)} binary(ies)")


@main.command(name="get-template", no_args_is_help=True)
@sbkeeper_output_option(force=True)
def get_template(output: str) -> None:
    """Generate a commented configuration template."""
    write_file(KeeperConfig.get_config_template(), output)
    click.echo(f"The configuration template file has been created: {get_printable_path(output)}")


@catch_sbk_error
def safe_main() -> Optional[int]:
    """Call the main function."""
    sys.exit(main())  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    safe_main()
