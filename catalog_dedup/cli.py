#!/usr/bin/env python3
"""
Catalog Dedup CLI.

Commands:
- run: cluster, merge, prune (with --target) and link media (with a media root)
- link-media: link media folders to records only
- seed-base: create/top up curated records from the mapping file
- media-coverage: report active exercises without a primary image

Every mutating command defaults to --dry-run. --apply additionally needs
CATALOG_APPLY_ENABLED=true.

Usage:
    catalog-dedup run --dry-run -v
    catalog-dedup run --apply --target 1500 --media-root ./public/exercises
    catalog-dedup link-media --media-bucket my-bucket --mapping-file mapping.json
    catalog-dedup seed-base --mapping-file mapping.json --apply
    catalog-dedup media-coverage --catalog-file export.json
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from catalog_dedup import config
from catalog_dedup.apply.gate import ApplyGateError
from catalog_dedup.catalog.store import CatalogStore, InMemoryCatalogStore
from catalog_dedup.errors import CatalogError
from catalog_dedup.report import RunReport

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


def _open_store(catalog_file: Optional[str]) -> CatalogStore:
    if catalog_file:
        return InMemoryCatalogStore.from_json_file(catalog_file)
    from catalog_dedup.catalog.firestore_store import FirestoreCatalogStore
    return FirestoreCatalogStore()


def _folder_source(media_root: Optional[str], media_bucket: Optional[str], media_prefix: str):
    if media_root and media_bucket:
        raise click.UsageError("Use either --media-root or --media-bucket, not both")
    from catalog_dedup.media.folders import GcsFolderSource, LocalFolderSource
    if media_root:
        return LocalFolderSource(media_root)
    if media_bucket:
        return GcsFolderSource(media_bucket, prefix=media_prefix)
    return None


def _load_mapping(mapping_file: Optional[str]):
    if not mapping_file:
        return None
    from catalog_dedup.media.mapping import MappingTable
    return MappingTable.from_file(mapping_file)


def _check_system_user(dry_run: bool, needs_user: bool, system_user: Optional[str]) -> None:
    if not dry_run and needs_user and not system_user:
        raise click.UsageError(
            "--system-user (or CATALOG_SYSTEM_USER_ID) is required to create media with --apply"
        )


def _persist(store: CatalogStore, dry_run: bool) -> None:
    """Write a catalog export back after an applied run."""
    if not dry_run and isinstance(store, InMemoryCatalogStore) and store.path:
        store.save_json_file()
        click.echo(f"  Catalog export updated: {store.path}")


def _echo_phases(report: RunReport, verbose: bool) -> None:
    for name, phase in report.phases.items():
        line = (
            f"  {name:<12} ok={len(phase.succeeded)} "
            f"skipped={len(phase.skipped)} failed={len(phase.failed)}"
        )
        click.echo(click.style(line, fg="red") if not phase.ok else line)
        for failure in phase.failed[:config.MAX_LISTED_ITEMS]:
            click.echo(f"    FAILED {failure['id']}: {failure['code']} {failure['message']}")
        if phase.aborted:
            click.echo(click.style(
                f"    ABORTED: {phase.aborted.get('message')} "
                f"({len(phase.unprocessed)} unprocessed)",
                fg="red",
            ))
        if verbose:
            for skip in phase.skipped[:config.MAX_LISTED_ITEMS]:
                click.echo(f"    skipped {skip['id']}: {skip['code']}")


def _echo_summary(title: str, report: RunReport, verbose: bool) -> None:
    click.echo(f"\n{'=' * 50}")
    click.echo(title)
    click.echo(f"{'=' * 50}")
    click.echo(f"  Run id:             {report.run_id}")
    click.echo(f"  Clusters found:     {report.clusters_found}")
    click.echo(f"  Records merged:     {report.records_merged}")
    click.echo(f"  Aliases added:      {report.aliases_added}")
    click.echo(f"  Records pruned:     {report.records_pruned}")
    click.echo(f"  Assets linked:      {report.assets_linked}")
    click.echo(f"  Assets unresolved:  {report.assets_unresolved}")
    click.echo(f"  Malformed inputs:   {len(report.invalid_records)}")
    click.echo("\nPhases:")
    _echo_phases(report, verbose)

    if report.dry_run:
        click.echo(click.style("\nDry-run mode: No changes applied", fg="yellow"))
        click.echo("  Run with --apply to write changes")
    elif report.ok:
        click.echo(click.style("\nAll changes applied", fg="green"))
    else:
        click.echo(click.style("\nRun finished with failures; re-run to retry them", fg="red"))


def _finish(report: RunReport, report_file: Optional[str]) -> None:
    if report_file:
        report.write_json(report_file)
    sys.exit(report.exit_code())


@click.group()
def cli():
    """Catalog Dedup CLI - Merge, prune and link the exercise catalog."""
    pass


def media_options(func):
    func = click.option("--media-prefix", default="", help="Folder prefix inside the bucket")(func)
    func = click.option("--media-bucket", help="Cloud Storage bucket of per-exercise folders")(func)
    func = click.option("--media-root", type=click.Path(exists=True, file_okay=False),
                        help="Local directory of per-exercise folders")(func)
    return func


def common_options(func):
    func = click.option("--verbose", "-v", is_flag=True, help="Verbose output")(func)
    func = click.option("--report-file", type=click.Path(dir_okay=False),
                        help="Write the run report as JSON")(func)
    func = click.option("--catalog-file", type=click.Path(exists=True, dir_okay=False),
                        help="Run against a JSON catalog export instead of Firestore")(func)
    func = click.option("--system-user", default=config.SYSTEM_USER_ID or None,
                        help="User id attributed on created media")(func)
    func = click.option("--dry-run/--apply", default=True, help="Dry-run mode (default: True)")(func)
    return func


# =============================================================================
# RUN (full pipeline)
# =============================================================================

@cli.command("run")
@common_options
@media_options
@click.option("--target", type=click.IntRange(min=1), help="Cap on active records (prune)")
@click.option("--mapping-file", type=click.Path(exists=True, dir_okay=False),
              help="External name/alias mapping JSON")
@click.option("--overwrite-images", is_flag=True, help="Replace existing primary images")
def run_cmd(dry_run, system_user, catalog_file, report_file, verbose,
            media_root, media_bucket, media_prefix, target, mapping_file, overwrite_images):
    """
    Cluster, merge, prune and link media in one pass.

    Examples:
        catalog-dedup run --dry-run -v
        catalog-dedup run --apply --target 1500 --media-root ./public/exercises
    """
    _setup_logging(verbose)
    from catalog_dedup.pipeline import DedupPipeline, PipelineOptions

    folder_source = _folder_source(media_root, media_bucket, media_prefix)
    _check_system_user(dry_run, folder_source is not None, system_user)

    try:
        store = _open_store(catalog_file)
        pipeline = DedupPipeline(store, folder_source=folder_source,
                                 mapping=_load_mapping(mapping_file))
        report = pipeline.run(PipelineOptions(
            dry_run=dry_run,
            target=target,
            overwrite_images=overwrite_images,
            system_user_id=system_user,
        ))
    except ApplyGateError as e:
        click.echo(click.style(f"Blocked: {e}", fg="red"), err=True)
        sys.exit(2)
    except CatalogError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    _persist(store, dry_run)
    _echo_summary("DEDUP SUMMARY", report, verbose)
    _finish(report, report_file)


# =============================================================================
# LINK MEDIA
# =============================================================================

@cli.command("link-media")
@common_options
@media_options
@click.option("--mapping-file", type=click.Path(exists=True, dir_okay=False),
              help="External name/alias mapping JSON")
@click.option("--overwrite-images", is_flag=True, help="Replace existing primary images")
def link_media_cmd(dry_run, system_user, catalog_file, report_file, verbose,
                   media_root, media_bucket, media_prefix, mapping_file, overwrite_images):
    """
    Link media folders to records without primary images.

    Examples:
        catalog-dedup link-media --media-root ./public/exercises --dry-run -v
        catalog-dedup link-media --media-bucket my-bucket --apply --system-user admin-1
    """
    _setup_logging(verbose)
    from catalog_dedup.pipeline import DedupPipeline, PipelineOptions

    folder_source = _folder_source(media_root, media_bucket, media_prefix)
    if folder_source is None:
        raise click.UsageError("One of --media-root or --media-bucket is required")
    _check_system_user(dry_run, True, system_user)

    try:
        store = _open_store(catalog_file)
        pipeline = DedupPipeline(store, folder_source=folder_source,
                                 mapping=_load_mapping(mapping_file))
        report = pipeline.link_media(PipelineOptions(
            dry_run=dry_run,
            overwrite_images=overwrite_images,
            system_user_id=system_user,
        ))
    except ApplyGateError as e:
        click.echo(click.style(f"Blocked: {e}", fg="red"), err=True)
        sys.exit(2)
    except CatalogError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    _persist(store, dry_run)
    _echo_summary("MEDIA LINK SUMMARY", report, verbose)
    _finish(report, report_file)


# =============================================================================
# SEED BASE EXERCISES
# =============================================================================

@cli.command("seed-base")
@common_options
@media_options
@click.option("--mapping-file", required=True, type=click.Path(exists=True, dir_okay=False),
              help="External name/alias mapping JSON")
def seed_base_cmd(dry_run, system_user, catalog_file, report_file, verbose,
                  media_root, media_bucket, media_prefix, mapping_file):
    """
    Create missing curated exercises from the mapping file.

    Existing exercises only get new aliases (and an image when they have
    none). Entries marked no_match are skipped.

    Examples:
        catalog-dedup seed-base --mapping-file mapping.json --dry-run
        catalog-dedup seed-base --mapping-file mapping.json --media-root ./public/exercises --apply
    """
    _setup_logging(verbose)
    from catalog_dedup.pipeline import DedupPipeline, PipelineOptions

    folder_source = _folder_source(media_root, media_bucket, media_prefix)
    _check_system_user(dry_run, folder_source is not None, system_user)

    try:
        store = _open_store(catalog_file)
        pipeline = DedupPipeline(store, folder_source=folder_source,
                                 mapping=_load_mapping(mapping_file))
        report, seeder = pipeline.seed_base(PipelineOptions(
            dry_run=dry_run,
            system_user_id=system_user,
        ))
    except ApplyGateError as e:
        click.echo(click.style(f"Blocked: {e}", fg="red"), err=True)
        sys.exit(2)
    except CatalogError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    _persist(store, dry_run)
    click.echo(f"\n{'=' * 50}")
    click.echo("SEED SUMMARY")
    click.echo(f"{'=' * 50}")
    click.echo(f"  Mapping entries:    {len(seeder.mapping.entries)}")
    click.echo(f"  Created:            {len(seeder.created)}")
    click.echo(f"  Updated:            {len(seeder.updated)}")
    click.echo("\nPhases:")
    _echo_phases(report, verbose)
    if dry_run:
        click.echo(click.style("\nDry-run mode: No changes applied", fg="yellow"))
        click.echo("  Run with --apply to write changes")
    _finish(report, report_file)


# =============================================================================
# MEDIA COVERAGE
# =============================================================================

@cli.command("media-coverage")
@click.option("--catalog-file", type=click.Path(exists=True, dir_okay=False),
              help="Read a JSON catalog export instead of Firestore")
@click.option("--verbose", "-v", is_flag=True, help="List every uncovered exercise")
def media_coverage_cmd(catalog_file, verbose):
    """
    Show how many active exercises have a primary image.

    Examples:
        catalog-dedup media-coverage
        catalog-dedup media-coverage --catalog-file export.json -v
    """
    _setup_logging(verbose)
    from catalog_dedup.coverage import compute_coverage

    try:
        coverage = compute_coverage(_open_store(catalog_file))
    except CatalogError as e:
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(f"\n{'=' * 50}")
    click.echo("MEDIA COVERAGE")
    click.echo(f"{'=' * 50}")
    click.echo(f"  Active exercises:   {coverage.total_active}")
    click.echo(f"  With image:         {coverage.with_image}")
    click.echo(f"  Without image:      {coverage.without_image}")
    click.echo(f"  Coverage:           {coverage.coverage_pct}%")

    limit = len(coverage.missing) if verbose else config.MAX_LISTED_ITEMS
    if coverage.missing:
        click.echo("\nMissing images:")
        for name in coverage.missing[:limit]:
            click.echo(f"  - {name}")
        if len(coverage.missing) > limit:
            click.echo(f"  ... and {len(coverage.missing) - limit} more (use -v)")


if __name__ == "__main__":
    cli()
