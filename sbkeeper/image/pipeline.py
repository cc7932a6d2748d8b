#!/usr/bin/env python
# -*- coding: UTF-8 -*-
#
# Copyright 2025 NXP
#
# SPDX-License-Identifier: BSD-3-Clause

"""Image generation and removal with revocation.

Removing an image keeps it as the backup of its configuration, stores its
signature list in the ledger and, with revocation enabled, blacklists every
revoked image except the protected ones. Generating an image makes sure the new
image is not blacklisted.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Iterable, Optional

from typing_extensions import Self

from sbkeeper.crypto.hash import get_file_digest
from sbkeeper.crypto.keys import resolve_key_reference
from sbkeeper.exceptions import SBKConfigError, SBKError, SBKNotIndexedError, SBKValueError
from sbkeeper.image.assembler import UkiAssembler
from sbkeeper.image.kernels import ImageConfig
from sbkeeper.revocation.dbx import DbxSynchronizer, FirmwareVariable, RetryPolicy
from sbkeeper.revocation.extractor import PECOFFDigestExtractor
from sbkeeper.revocation.ledger import BackupStore, RevocationEntry, RevocationLedger
from sbkeeper.revocation.pruner import BlacklistPruner
from sbkeeper.settings import KeeperConfig
from sbkeeper.utils.tools import ToolRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SignedImage:
    """Signed image installed in the EFI system partition."""

    name: str
    path: str
    digest: str

    @classmethod
    def from_file(cls, name: str, path: str) -> Self:
        """Load image and compute its digest.

        :param name: Configuration name.
        :param path: Path to the image.
        :return: Signed image.
        """
        return cls(name=name, path=path, digest=get_file_digest(path))


@dataclass
class PipelineReport:
    """Outcome of a batch of pipeline operations."""

    generated: list[SignedImage] = field(default_factory=list)
    removed: list[SignedImage] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    failed_entries: list[str] = field(default_factory=list)
    unverified: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every operation of the batch succeeded."""
        return not (self.failed or self.failed_entries or self.unverified)

    def add_failure(self, name: str, exc: SBKError) -> None:
        """Record failure of an operation on a configuration.

        :param name: Configuration name.
        :param exc: The error.
        """
        reason = exc.description or str(exc)
        self.failed[name] = f"{self.failed[name]}; {reason}" if name in self.failed else reason

    def __str__(self) -> str:
        lines = [f"Generated: {image.name} ({image.digest})" for image in self.generated]
        lines.extend(f"Removed: {image.name} ({image.digest})" for image in self.removed)
        lines.extend(f"Failed: {name}: {reason}" for name, reason in self.failed.items())
        lines.extend(f"Not blacklisted: {digest}" for digest in self.failed_entries)
        lines.extend(f"Not verified: {digest}" for digest in self.unverified)
        return "\n".join(lines)


class ImagePipeline:
    """Generates and removes signed images, keeping dbx consistent."""

    def __init__(
        self,
        config: KeeperConfig,
        assembler: UkiAssembler,
        ledger: RevocationLedger,
        backups: BackupStore,
        synchronizer: Optional[DbxSynchronizer] = None,
        pruner: Optional[BlacklistPruner] = None,
    ) -> None:
        """Initialize the pipeline.

        :param config: sbkeeper settings.
        :param assembler: Image assembler.
        :param ledger: Revocation ledger.
        :param backups: Backup store.
        :param synchronizer: dbx synchronizer, required with revocation enabled.
        :param pruner: Blacklist pruner, required with revocation enabled.
        :raises SBKValueError: Revocation enabled without synchronizer or pruner.
        """
        if config.revocation and (synchronizer is None or pruner is None):
            raise SBKValueError("Revocation requires dbx synchronizer and blacklist pruner")
        self.config = config
        self.assembler = assembler
        self.ledger = ledger
        self.backups = backups
        self.synchronizer = synchronizer
        self.pruner = pruner
        self.image_configs = config.get_image_configs()

    @classmethod
    def from_config(cls, config: KeeperConfig, tools: Optional[ToolRunner] = None) -> Self:
        """Create pipeline and all its components from settings.

        :param config: sbkeeper settings.
        :param tools: Tool runner, created from the settings when not provided.
        :raises SBKConfigError: Key material can't be resolved.
        :return: Image pipeline.
        """
        tools = tools or ToolRunner(config.tools)
        db_key = resolve_key_reference(config.keys_dir, config.db_key_name)
        ledger = RevocationLedger(config.ledger_dir, tools)
        backups = BackupStore(config.backup_dir)
        synchronizer = None
        pruner = None
        if config.revocation:
            kek_key = resolve_key_reference(config.keys_dir, config.kek_key_name)
            synchronizer = DbxSynchronizer(
                variable=FirmwareVariable(tools, config.efivars_dir),
                key=kek_key,
                tools=tools,
                owner_guid=config.owner_guid,
                retry_policy=RetryPolicy(delay=config.retry_delay),
            )
            pruner = BlacklistPruner(
                ledger, backups, PECOFFDigestExtractor(tools, config.extractor), synchronizer
            )
        return cls(
            config=config,
            assembler=UkiAssembler(config, db_key, tools),
            ledger=ledger,
            backups=backups,
            synchronizer=synchronizer,
            pruner=pruner,
        )

    def get_image_config(self, name: str) -> ImageConfig:
        """Get image configuration by name.

        :param name: Configuration name.
        :raises SBKConfigError: Unknown configuration.
        :return: Image configuration.
        """
        if name not in self.image_configs:
            raise SBKConfigError(f"Unknown image configuration '{name}'")
        return self.image_configs[name]

    def installed_image(self, name: str) -> Optional[SignedImage]:
        """Get installed image of a configuration.

        :param name: Configuration name.
        :return: Signed image or None when not installed.
        """
        path = self.assembler.output_path(name)
        if not os.path.isfile(path):
            return None
        return SignedImage.from_file(name, path)

    def installed_images(self) -> list[SignedImage]:
        """Get all signed images present in the output directory.

        :return: Signed images ordered by name.
        """
        image_dir = self.config.image_dir
        if not os.path.isdir(image_dir):
            return []
        images = []
        suffix = self.assembler.IMAGE_SUFFIX
        for file_name in sorted(os.listdir(image_dir)):
            path = os.path.join(image_dir, file_name)
            if file_name.endswith(suffix) and os.path.isfile(path):
                images.append(SignedImage.from_file(file_name[: -len(suffix)], path))
        return images

    def backup_images(self) -> list[SignedImage]:
        """Get backup images matching their live backup records.

        :return: Signed images ordered by configuration name.
        """
        images = []
        for record in self.backups.records():
            path = self.assembler.backup_path(record.config_name)
            if not os.path.isfile(path):
                continue
            image = SignedImage.from_file(record.config_name, path)
            if image.digest != record.digest:
                logger.warning(f"Backup image {path} doesn't match the backup record, ignoring it")
                continue
            images.append(image)
        return images

    def _not_blacklisted(self, entries: Iterable[RevocationEntry]) -> list[RevocationEntry]:
        assert self.synchronizer and self.pruner
        blacklisted = {record.digest for record in self.synchronizer.variable.records()}
        pending = []
        for entry in entries:
            try:
                pecoff_digest = self.pruner.extractor.extract(entry)
            except SBKNotIndexedError as exc:
                logger.debug(f"Can't tell whether {entry.digest} is blacklisted: {exc.description}")
                pending.append(entry)
                continue
            if pecoff_digest in blacklisted:
                logger.debug(f"{entry.digest} is already blacklisted")
            else:
                pending.append(entry)
        return pending

    def _revoke(
        self, report: PipelineReport, installed: list[SignedImage], reapply: bool = False
    ) -> None:
        assert self.synchronizer and self.pruner
        digests = [image.digest for image in installed]
        protected = set(self.pruner.protected_digests(installed=digests))
        entries = [entry for entry in self.ledger.list() if entry.digest not in protected]
        if not reapply:
            entries = self._not_blacklisted(entries)
        failed = self.synchronizer.append_entries(entries)
        report.failed_entries.extend(sorted(entry.digest for entry in failed))
        image_paths = {image.digest: image.path for image in self.backup_images()}
        report.unverified.extend(self.pruner.prune(installed=digests, image_paths=image_paths))

    def remove(self, name: str, report: Optional[PipelineReport] = None) -> Optional[SignedImage]:
        """Remove installed image of a configuration.

        The removed image becomes the backup of the configuration and is kept
        next to the output path, replacing the previous backup image. Only ledger
        entries not yet in dbx are appended.

        :param name: Configuration name.
        :param report: Report collecting the outcome.
        :raises SBKError: Revocation of the image failed.
        :return: Removed image, None when there was nothing to remove.
        """
        report = report if report is not None else PipelineReport()
        image = self.installed_image(name)
        if image is None:
            logger.warning(f"No image of '{name}' is installed, nothing to remove")
            return None

        self.ledger.get_or_create(image.digest, image.path)
        self.backups.record(name, image.digest)
        backup_path = self.assembler.backup_path(name)
        os.replace(image.path, backup_path)
        logger.info(f"Moved image {image.path} to {backup_path}")
        report.removed.append(image)

        if self.config.revocation:
            self._revoke(report, installed=self.installed_images())
        return image

    def generate(self, name: str, report: Optional[PipelineReport] = None) -> SignedImage:
        """Generate signed image of a configuration.

        :param name: Configuration name.
        :param report: Report collecting the outcome.
        :raises SBKError: Assembly or signing failed.
        :return: Generated image.
        """
        report = report if report is not None else PipelineReport()
        path = self.assembler.build(self.get_image_config(name))
        image = SignedImage.from_file(name, path)
        report.generated.append(image)

        if self.config.revocation:
            assert self.pruner
            others = [other.digest for other in self.installed_images() if other.name != name]
            image_paths = {backup.digest: backup.path for backup in self.backup_images()}
            image_paths[image.digest] = image.path
            report.unverified.extend(
                self.pruner.prune(current=image.digest, installed=others, image_paths=image_paths)
            )
        return image

    def update(self, names: Optional[list[str]] = None) -> PipelineReport:
        """Replace images of the configurations with freshly generated ones.

        A new image is generated even when revocation of the old one failed, as
        long as the old image is gone. An old image that couldn't be recorded in
        the ledger is left in place.

        :param names: Configuration names, all configurations when empty.
        :return: Report of the batch.
        """
        report = PipelineReport()
        for name in names or list(self.image_configs):
            try:
                self.get_image_config(name)
                try:
                    self.remove(name, report)
                except SBKError as exc:
                    logger.error(f"Failed to remove old image of '{name}': {exc.description}")
                    report.add_failure(name, exc)
                    if os.path.isfile(self.assembler.output_path(name)):
                        continue
                self.generate(name, report)
            except SBKError as exc:
                logger.error(f"Failed to update '{name}': {exc.description}")
                report.add_failure(name, exc)
        return report

    def remove_all(self, names: list[str]) -> PipelineReport:
        """Remove images of the configurations.

        :param names: Configuration names.
        :return: Report of the batch.
        """
        report = PipelineReport()
        for name in names:
            try:
                self.remove(name, report)
            except SBKError as exc:
                logger.error(f"Failed to remove '{name}': {exc.description}")
                report.add_failure(name, exc)
        return report

    def sync(self) -> PipelineReport:
        """Bring dbx in line with the ledger without touching the images.

        Every revoked image except the installed and backup ones is appended
        again, including those dbx already holds.

        :raises SBKConfigError: Revocation is disabled.
        :return: Report of the synchronization.
        """
        if not self.config.revocation:
            raise SBKConfigError("Revocation is disabled in configuration")
        report = PipelineReport()
        self._revoke(report, installed=self.installed_images(), reapply=True)
        return report
