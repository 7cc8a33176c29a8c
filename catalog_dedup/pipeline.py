"""
Dedup Pipeline - One offline pass over the catalog.

Phases (in order):
1. cluster + plan      read-only
2. merge               Merger
3. prune               CatalogPruner, only with a target
4. link_media          AssetLinker, only with a folder source

The apply gate is enforced HERE, not by callers. Every phase reads the
snapshot taken at start; committed or projected changes are applied to it
so later phases see the merged catalog. A phase whose batch aborts stops
the pipeline; the report carries the unprocessed ids.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from catalog_dedup.apply.batching import BatchRunner
from catalog_dedup.apply.gate import require_all_gates
from catalog_dedup.apply.journal import ChangeJournal, new_run_id
from catalog_dedup.catalog.snapshot import CatalogSnapshot, load_snapshot
from catalog_dedup.catalog.store import CatalogStore
from catalog_dedup.dedup.clusterer import cluster_records
from catalog_dedup.dedup.merger import Merger
from catalog_dedup.dedup.planner import MergePlanner
from catalog_dedup.dedup.pruner import CatalogPruner
from catalog_dedup.errors import CatalogError
from catalog_dedup.media.folders import FolderSource
from catalog_dedup.media.linker import AssetLinker
from catalog_dedup.media.mapping import MappingTable
from catalog_dedup.report import PhaseResult, RunReport, log_event
from catalog_dedup.seeding import BaseExerciseSeeder

logger = logging.getLogger(__name__)


@dataclass
class PipelineOptions:
    dry_run: bool = True
    target: Optional[int] = None
    overwrite_images: bool = False
    system_user_id: Optional[str] = None
    merge: bool = True


class DedupPipeline:
    """Runs the phases against one store."""

    def __init__(
        self,
        store: CatalogStore,
        folder_source: Optional[FolderSource] = None,
        mapping: Optional[MappingTable] = None,
        runner: Optional[BatchRunner] = None,
        run_id: Optional[str] = None,
    ):
        self.store = store
        self.folder_source = folder_source
        self.mapping = mapping
        self.runner = runner or BatchRunner()
        self.run_id = run_id or new_run_id()

    def _start(self, dry_run: bool) -> Tuple[RunReport, CatalogSnapshot]:
        require_all_gates(dry_run)
        report = RunReport(run_id=self.run_id, dry_run=dry_run)
        log_event("run_started", run_id=self.run_id, mode="dry_run" if dry_run else "apply")
        snapshot = self.runner.call(load_snapshot, self.store)
        report.invalid_records = [e.to_dict() for e in snapshot.invalid]
        if self.mapping is not None:
            report.invalid_records.extend(e.to_dict() for e in self.mapping.invalid)
        return report, snapshot

    def _phase(
        self,
        report: RunReport,
        name: str,
        dry_run: bool,
        body: Callable[[ChangeJournal], PhaseResult],
    ) -> PhaseResult:
        """Run one phase, save its journal and log its outcome."""
        journal = ChangeJournal(self.run_id, name)
        try:
            result = body(journal)
        except CatalogError as e:
            logger.error("Phase %s failed: %s", name, e)
            result = PhaseResult(phase=name)
            result.add_failure(name, e.code, str(e))
            result.aborted = e.to_dict()

        if not dry_run:
            result.change_id = journal.save(
                self.store,
                result_summary=f"{len(result.succeeded)} succeeded, {len(result.failed)} failed",
            )

        report.add_phase(result)
        log_event(
            "phase_completed",
            run_id=self.run_id,
            phase=name,
            succeeded=len(result.succeeded),
            skipped=len(result.skipped),
            failed=len(result.failed),
            aborted=result.aborted is not None,
        )
        return result

    def run(self, options: PipelineOptions) -> RunReport:
        """
        Run the full pipeline.

        Raises:
            ApplyGateError: If apply mode was requested but the gate is off
        """
        dry_run = options.dry_run
        report, snapshot = self._start(dry_run)

        if options.merge:
            clusters = cluster_records(snapshot.active_records())
            report.clusters_found = len(clusters)
            plans, plan_result = MergePlanner(snapshot).plan(clusters)
            report.add_phase(plan_result)
            logger.info("Found %d clusters, %d merge plans", len(clusters), len(plans))

            merger = Merger(self.store, snapshot, dry_run=dry_run, runner=self.runner)

            def merge(journal: ChangeJournal) -> PhaseResult:
                merger.journal = journal
                return merger.run(plans)

            result = self._phase(report, "merge", dry_run, merge)
            report.records_merged = merger.records_merged
            report.aliases_added = merger.aliases_added
            if result.aborted:
                return self._finish(report)

        if options.target is not None:
            pruner = CatalogPruner(
                self.store, snapshot, options.target, dry_run=dry_run, runner=self.runner,
            )

            def prune(journal: ChangeJournal) -> PhaseResult:
                pruner.journal = journal
                return pruner.run()

            result = self._phase(report, "prune", dry_run, prune)
            report.records_pruned = pruner.records_pruned
            if result.aborted:
                return self._finish(report)

        if self.folder_source is not None:
            self._link(report, snapshot, options)

        return self._finish(report)

    def _link(self, report: RunReport, snapshot: CatalogSnapshot, options: PipelineOptions) -> None:
        linker = AssetLinker(
            self.store,
            snapshot,
            self.folder_source,
            mapping=self.mapping,
            system_user_id=options.system_user_id,
            dry_run=options.dry_run,
            overwrite=options.overwrite_images,
            runner=self.runner,
        )

        def link(journal: ChangeJournal) -> PhaseResult:
            linker.journal = journal
            return linker.run()

        self._phase(report, "link_media", options.dry_run, link)
        report.assets_linked = len(linker.linked)
        report.assets_unresolved = len(linker.unresolved)

    def link_media(self, options: PipelineOptions) -> RunReport:
        """AssetLinker phase only."""
        if self.folder_source is None:
            raise ValueError("link_media needs a folder source")
        report, snapshot = self._start(options.dry_run)
        self._link(report, snapshot, options)
        return self._finish(report)

    def seed_base(self, options: PipelineOptions) -> Tuple[RunReport, BaseExerciseSeeder]:
        """BaseExerciseSeeder only."""
        if self.mapping is None:
            raise ValueError("seed_base needs a mapping table")
        report, snapshot = self._start(options.dry_run)
        seeder = BaseExerciseSeeder(
            self.store,
            snapshot,
            self.mapping,
            folder_source=self.folder_source,
            system_user_id=options.system_user_id,
            dry_run=options.dry_run,
            runner=self.runner,
        )

        def seed(journal: ChangeJournal) -> PhaseResult:
            seeder.journal = journal
            return seeder.run()

        self._phase(report, "seed_base", options.dry_run, seed)
        return self._finish(report), seeder

    def _finish(self, report: RunReport) -> RunReport:
        log_event(
            "run_completed",
            run_id=self.run_id,
            ok=report.ok,
            clusters_found=report.clusters_found,
            records_merged=report.records_merged,
            aliases_added=report.aliases_added,
            records_pruned=report.records_pruned,
            assets_linked=report.assets_linked,
            assets_unresolved=report.assets_unresolved,
        )
        return report


__all__ = [
    "DedupPipeline",
    "PipelineOptions",
]
