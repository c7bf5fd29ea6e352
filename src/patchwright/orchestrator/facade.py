"""
ModificationOrchestrator: the request state machine.

Idle -> ScopeClassified -> {TargetedEditing | FullFileEditing |
ComponentSynthesizing} -> WrittenToDisk -> CacheUpdated -> Reported

Per-file failures are recorded and never block sibling files. Only session
setup failures (or an unrecoverable error inside a branch) fail the whole
request, and even then the change records gathered so far are flushed.
"""

import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from patchwright.logging_config import logger, session_logger
from patchwright.cache import SessionCache
from patchwright.exceptions import PatchwrightError, SessionSetupError
from patchwright.mutation import (
    ComponentSynthesizer,
    FullFileMutator,
    NodeMutator,
    NodeSelector,
    ScopeClassifier,
    write_back,
)
from patchwright.mutation.config import MODIFICATION_CONFIG
from patchwright.mutation.editing import unified_diff
from patchwright.oracle import ReasoningOracle
from patchwright.parser import ASTIndexer
from patchwright.project import build_project_summary, scan
from patchwright.sandbox import PathSandbox
from patchwright.schemas import (
    FileOutcome,
    IndexedFile,
    ModificationResult,
    ModificationScope,
    ModificationStrategy,
    NodeSelection,
    ProjectFile,
    SessionContext,
)
from .change_log import ChangeLog, get_contextual_summary
from .lifecycle import SessionLifecycle


class OrchestratorState(str, Enum):
    IDLE = "Idle"
    SCOPE_CLASSIFIED = "ScopeClassified"
    TARGETED_EDITING = "TargetedEditing"
    FULL_FILE_EDITING = "FullFileEditing"
    COMPONENT_SYNTHESIZING = "ComponentSynthesizing"
    WRITTEN_TO_DISK = "WrittenToDisk"
    CACHE_UPDATED = "CacheUpdated"
    REPORTED = "Reported"


BRANCH_STATES = {
    ModificationStrategy.TARGETED_NODES: OrchestratorState.TARGETED_EDITING,
    ModificationStrategy.FULL_FILE: OrchestratorState.FULL_FILE_EDITING,
    ModificationStrategy.COMPONENT_ADDITION: OrchestratorState.COMPONENT_SYNTHESIZING,
}


class _Run:
    """Mutable bookkeeping for one request."""

    def __init__(self, session_id: str, change_log: ChangeLog):
        self.session_id = session_id
        self.change_log = change_log
        self.log = session_logger(session_id)
        self.states: List[str] = []
        self.outcomes: List[FileOutcome] = []
        self.files_changed: List[str] = []

    def enter(self, state: OrchestratorState) -> None:
        self.states.append(state.value)
        self.log.info(f"-> {state.value}")

    def applied(self, path: str, detail: str = "") -> None:
        self.outcomes.append(FileOutcome(path=path, status="applied", detail=detail))
        if path not in self.files_changed:
            self.files_changed.append(path)

    def skipped(self, path: str, detail: str) -> None:
        self.outcomes.append(FileOutcome(path=path, status="skipped", detail=detail))

    def failed(self, path: str, detail: str) -> None:
        self.outcomes.append(FileOutcome(path=path, status="failed", detail=detail))


class ModificationOrchestrator:
    """
    Compose scope classification with one edit strategy per request.

    Collaborators are injected: the oracle, the session cache and, if
    session timeouts are wanted, a SessionLifecycle.
    """

    def __init__(
        self,
        oracle: ReasoningOracle,
        cache: SessionCache,
        config: Optional[Dict] = None,
        security_level: str = "strict",
        lifecycle: Optional[SessionLifecycle] = None,
        indexer: Optional[ASTIndexer] = None,
    ):
        self.cache = cache
        self.config = {**MODIFICATION_CONFIG, **(config or {})}
        self.security_level = security_level
        self.lifecycle = lifecycle
        self.indexer = indexer or ASTIndexer(cache=cache)
        self.classifier = ScopeClassifier(oracle, self.config)
        self.selector = NodeSelector(oracle)
        self.mutator = NodeMutator(oracle)
        self.full_file = FullFileMutator(oracle, self.config)
        self.synthesizer = ComponentSynthesizer(oracle, self.config)

    def process(
        self,
        request: str,
        session_id: str,
        working_directory: Optional[str] = None,
        conversation_context: Optional[str] = None,
    ) -> ModificationResult:
        """
        Apply one natural-language change request to a session's project.

        Args:
            request: The change request
            session_id: Session identifier
            working_directory: Project root; may be omitted once the session
                               has a stored context
            conversation_context: Extra context for the oracle

        Returns:
            ModificationResult (never raises for per-file or oracle problems)
        """
        run = _Run(session_id, ChangeLog(session_id, self.cache))
        run.enter(OrchestratorState.IDLE)

        try:
            context, sandbox, files = self._setup_session(session_id, working_directory)
        except SessionSetupError as e:
            logger.error(f"Session setup failed: {e}")
            return self._report(run, None, f"Session setup failed: {e.message}", error=str(e))

        history = self.cache.get_changes(session_id)
        oracle_context = "\n".join(filter(None, [
            conversation_context,
            get_contextual_summary(history, self.config["recent_changes_in_context"]),
        ]))

        scope = self.classifier.classify(request, files, oracle_context)
        run.enter(OrchestratorState.SCOPE_CLASSIFIED)
        run.enter(BRANCH_STATES[scope.strategy])

        try:
            if scope.strategy == ModificationStrategy.TARGETED_NODES:
                self._run_targeted(run, scope, request, sandbox, files, oracle_context)
            elif scope.strategy == ModificationStrategy.FULL_FILE:
                self._run_full_file(run, scope, request, sandbox, files)
            else:
                self._run_component(run, scope, request, sandbox, files)
        except (PatchwrightError, OSError) as e:
            logger.error(f"Unrecoverable error in {scope.strategy.value}: {e}")
            return self._report(run, scope, f"{scope.strategy.value} aborted: {e}", error=str(e))

        run.enter(OrchestratorState.WRITTEN_TO_DISK)
        self._update_cache(context, files, request, scope, run)
        run.enter(OrchestratorState.CACHE_UPDATED)

        return self._report(run, scope, scope.reasoning)

    # ------------------------------------------------------------------
    # Session setup
    # ------------------------------------------------------------------

    def _setup_session(self, session_id: str, working_directory: Optional[str]) -> Tuple[SessionContext, PathSandbox, Dict[str, ProjectFile]]:
        context = self.cache.get_context(session_id)
        directory = working_directory or (context.working_directory if context else None)
        if not directory:
            raise SessionSetupError(session_id, "no working directory for session")

        directory_path = Path(directory)
        if not directory_path.is_dir():
            raise SessionSetupError(session_id, f"working directory {directory} does not exist")
        directory = str(directory_path.resolve())

        if context is None or context.working_directory != directory:
            build_id = context.build_id if context else uuid.uuid4().hex[:12]
            context = SessionContext(session_id=session_id, build_id=build_id, working_directory=directory)
        context.touch()

        sandbox = PathSandbox(directory, self.security_level)
        if not sandbox.root.is_dir():
            raise SessionSetupError(session_id, f"sandbox root {sandbox.root} does not exist")

        files = scan(sandbox)
        if not files:
            raise SessionSetupError(session_id, f"no source files under {sandbox.root}")

        self.cache.set_context(context)
        if self.lifecycle is not None:
            self.lifecycle.start(session_id, context.build_id, directory)
        logger.info(f"Session {session_id} ready: {len(files)} files in {directory}")
        return context, sandbox, files

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def _analyze_file(self, path: str, files: Dict[str, ProjectFile], request: str,
                      context: str) -> Tuple[IndexedFile, NodeSelection]:
        indexed = self.indexer.parse(path, files)
        return indexed, self.selector.select(indexed, request, context)

    def _run_targeted(self, run: _Run, scope: ModificationScope, request: str,
                      sandbox: PathSandbox, files: Dict[str, ProjectFile], context: str) -> None:
        paths = [p for p in scope.target_files if p in files]
        analyses: Dict[str, Tuple[IndexedFile, NodeSelection]] = {}

        with ThreadPoolExecutor(max_workers=max(1, self.config["max_workers"])) as executor:
            futures = {executor.submit(self._analyze_file, path, files, request, context): path for path in paths}
            for future in as_completed(futures):
                path = futures[future]
                try:
                    analyses[path] = future.result()
                except PatchwrightError as e:
                    logger.error(f"Analysis failed for {path}: {e}")
                    run.failed(path, f"analysis failed: {e}")

        ordered = sorted(analyses.items(), key=lambda item: (-item[1][1].confidence, item[0]))
        for path, (indexed, selection) in ordered:
            if not selection.needs_change:
                run.skipped(path, selection.reasoning or "no change needed")
                continue
            if selection.confidence < self.config["relevance_threshold"]:
                run.skipped(path, f"confidence {selection.confidence} below {self.config['relevance_threshold']}")
                continue

            try:
                self._mutate_file(run, files[path], indexed, selection, request, sandbox, context)
            except PatchwrightError as e:
                logger.error(f"Mutation failed for {path}: {e}")
                run.change_log.record("modified", path, "Node update failed", success=False, details={"error": str(e)})
                run.failed(path, str(e))

    def _mutate_file(self, run: _Run, project_file: ProjectFile, indexed: IndexedFile, selection: NodeSelection,
                     request: str, sandbox: PathSandbox, context: str) -> None:
        path = project_file.relative_path
        replacements = self.mutator.generate(indexed, selection, request, context)
        if not replacements:
            run.skipped(path, "no usable replacements")
            return

        original = project_file.content
        new_content = self.mutator.apply(indexed, selection, replacements, original)
        if new_content == original:
            run.skipped(path, "replacements left the file unchanged")
            return

        write, stats = write_back(sandbox, project_file, new_content)
        details = {
            "nodes": [r.node_id for r in replacements],
            "reasoning": selection.reasoning,
            "confidence": selection.confidence,
            **stats,
        }
        if not write.success:
            run.change_log.record("modified", path, "Write rejected", success=False, details={**details, "error": write.error})
            run.failed(path, write.error or "write failed")
            return

        details["diff"] = unified_diff(path, original, new_content, max_lines=40)
        run.change_log.record("modified", path, f"{len(replacements)} node(s) updated", details=details)
        run.applied(path, f"{len(replacements)} node(s) updated")

    def _run_full_file(self, run: _Run, scope: ModificationScope, request: str,
                       sandbox: PathSandbox, files: Dict[str, ProjectFile]) -> None:
        candidates = self.full_file.select_files(request, files)
        scope.target_files = [c.file_path for c in candidates]
        targets = [files[c.file_path] for c in candidates]
        summary = build_project_summary(files)

        rewritten = self.full_file.regenerate_batch(targets, request, summary) if len(targets) > 1 else {}

        for candidate, project_file in zip(candidates, targets):
            path = project_file.relative_path
            new_content = rewritten.get(path)
            if new_content is None:
                new_content = self.full_file.regenerate(path, project_file.content, request, summary)
            if new_content is None or new_content == project_file.content:
                run.skipped(path, "no regenerated content")
                continue

            original = project_file.content
            write, stats = write_back(sandbox, project_file, new_content)
            details = {"reasoning": candidate.reasoning, "relevance": candidate.relevance_score, **stats}
            if not write.success:
                run.change_log.record("modified", path, "Write rejected", success=False, details={**details, "error": write.error})
                run.failed(path, write.error or "write failed")
                continue

            details["diff"] = unified_diff(path, original, new_content, max_lines=40)
            run.change_log.record("modified", path, "File regenerated", details=details)
            run.applied(path, "file regenerated")

    def _run_component(self, run: _Run, scope: ModificationScope, request: str,
                       sandbox: PathSandbox, files: Dict[str, ProjectFile]) -> None:
        result = self.synthesizer.synthesize(request, sandbox, files, hint_name=scope.entity_name)
        classification = result.classification
        scope.entity_name = classification.name
        scope.entity_kind = classification.kind

        if not result.success:
            target = f"{classification.kind}s/{classification.name}"
            run.change_log.record("created", target, f"Could not create {classification.kind}", success=False,
                                  details={"errors": result.errors})
            run.failed(target, "; ".join(result.errors) or "creation failed")
            return

        scope.target_files = [result.created_path]
        run.change_log.record(
            "created",
            result.created_path,
            f"Created {classification.kind} {classification.name}",
            details={
                "kind": classification.kind,
                "confidence": classification.confidence,
                "reasoning": classification.reasoning,
                "emergency_template": result.used_emergency_template,
            },
        )
        run.applied(result.created_path, f"created {classification.kind}")

        if classification.kind != "page":
            return
        if result.routed_file:
            scope.target_files.append(result.routed_file)
            run.change_log.record("updated", result.routed_file, f"Added route {result.route_path} for {classification.name}",
                                  details={"route": result.route_path})
            run.applied(result.routed_file, f"route {result.route_path} added")
        else:
            run.change_log.record("updated", result.root_file or "App", f"Route {result.route_path} not added", success=False,
                                  details={"error": result.routing_error})
            run.failed(result.root_file or "App", result.routing_error or "routing failed")

    # ------------------------------------------------------------------
    # Write-back bookkeeping and reporting
    # ------------------------------------------------------------------

    def _update_cache(self, context: SessionContext, files: Dict[str, ProjectFile], request: str,
                      scope: ModificationScope, run: _Run) -> None:
        self.cache.set_project_files(context.session_id, files)
        context.last_project_summary = build_project_summary(files)
        context.touch()
        self.cache.set_context(context)
        self.cache.set_state(context.session_id, "last_request", {
            "request": request,
            "strategy": scope.strategy.value,
            "files_changed": run.files_changed,
        })

    def _report(self, run: _Run, scope: Optional[ModificationScope], reasoning: str,
                error: Optional[str] = None) -> ModificationResult:
        unpersisted = run.change_log.flush()
        success = error is None and bool(run.files_changed)
        run.enter(OrchestratorState.REPORTED)

        counts = {status: sum(1 for o in run.outcomes if o.status == status) for status in ("applied", "skipped", "failed")}
        summary = f"{counts['applied']} applied, {counts['skipped']} skipped, {counts['failed']} failed"
        if unpersisted:
            summary += f"; {unpersisted} change record(s) not persisted"

        result = ModificationResult(
            success=success,
            session_id=run.session_id,
            files_changed=list(run.files_changed),
            strategy_used=scope.strategy if scope else None,
            reasoning=f"{reasoning} ({summary})",
            change_log=run.change_log.entries,
            file_outcomes=list(run.outcomes),
            states_visited=list(run.states),
            final_state=f"{OrchestratorState.REPORTED.value}({'success' if success else 'failed'})",
            error=error,
        )
        run.log.info(f"{result.final_state}: {summary}")
        return result
