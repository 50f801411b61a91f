"""Run driver: diff, distribute, replay references, prune, report."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from .cleaner import changerify, select_edges, unique_nodes
from .context import ContextExtractor
from .differ import BreakingRules, Differ
from .distributor import ChangeRecord, ChangeSink, TravelContext
from .document import ModelObject, SemanticDocument
from .exceptions import TraversalCancelledError
from .ledger import DedupLedger
from .models import BuildError, ChangeStatistics, Diff, DiffGroup, Edge, SemanticNode
from .report import NO_CHANGES_REPORT, OutputFormat, generate_report
from .render_config import RenderConfig
from .ruleify import transfer_rule_results
from .statistics import calculate_statistics
from .visitor import Visitor

logger = logging.getLogger(__name__)


@dataclass
class ChangeratorConfig:
    """Configuration for a distribution run."""
    strict_mode: bool = False
    queue_size: int = 256
    publish_timeout: float = 0.05
    max_replay_rounds: int = 16
    logger: Optional[logging.Logger] = None
    breaking_rules: Optional[BreakingRules] = None


class Session:
    """Per-run state: the dedup ledger, the collected results and the error channel."""

    def __init__(self):
        self.ledger = DedupLedger()
        self.changes: list[Diff] = []
        self.changed_nodes: list[SemanticNode] = []
        self.errors: queue.SimpleQueue = queue.SimpleQueue()
        self.lock = threading.Lock()


class Changerator:
    """
    Distributes the diffs between two documents onto the right document's nodes.

    Pass one walks the right document alongside the diff tree on a traversal
    thread while a consumer thread drains the change records. Records that
    reached a $ref without a node of their own are replayed, in further
    passes, from the node the reference points at.

    Usage:
        changerator = Changerator(left, right)
        changes = changerator.changerate()
        changerator.ruleify(left)
        nodes, edges = changerator.build_node_change_tree()
        markdown = changerator.generate_report()
    """

    def __init__(
        self,
        left: SemanticDocument,
        right: SemanticDocument,
        changes: Optional[DiffGroup] = None,
        config: Optional[ChangeratorConfig] = None,
    ):
        self.left = left
        self.right = right
        self.config = config or ChangeratorConfig()
        self.logger = self.config.logger or logger
        self.document_changes = changes

        self.changes: list[Diff] = []
        self.changed_nodes: list[SemanticNode] = []
        self.changed_edges: list[Edge] = []
        self.errors: list[BuildError] = []

        self.visitor = Visitor(strict_mode=self.config.strict_mode, logger=self.logger)
        self._context = ContextExtractor(right.content)
        self._cancelled = threading.Event()
        self._session: Optional[Session] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        """Abandon every pending publish; results of this run are discarded."""
        self._cancelled.set()

    def changerate(self) -> Optional[DiffGroup]:
        """
        Distribute the document diffs onto the right document.

        Returns:
            The document diff group, or None when nothing changed or the run
            was cancelled
        """
        if self.document_changes is None:
            differ = Differ(self.config.breaking_rules)
            self.document_changes = differ.diff(self.left, self.right)

        if self.document_changes is None or self.document_changes.is_empty():
            self.document_changes = None
            return None

        session = Session()
        self._session = session
        for error in self.left.errors + self.right.errors:
            session.errors.put(error)

        root_group = self.document_changes
        pending = self._run_pass(
            session,
            lambda ctx: self.visitor.visit(self.right.root, ctx.with_group(root_group)),
        )

        replayed: set[tuple] = set()
        rounds = 0
        while pending and not self.cancelled:
            batch = []
            for record in pending:
                key = (record.reference_key or record.reference_path, id(record.group))
                if key not in replayed:
                    replayed.add(key)
                    batch.append(record)
            if not batch:
                break
            rounds += 1
            if rounds > self.config.max_replay_rounds:
                self.logger.warning(
                    "reference replay stopped after %d rounds with %d records pending",
                    self.config.max_replay_rounds, len(batch),
                )
                break
            self.logger.debug("replaying %d reference records (round %d)", len(batch), rounds)
            pending = self._run_pass(session, lambda ctx, batch=batch: self._replay(batch, ctx))

        self._drain_errors(session)

        if self.cancelled:
            self.logger.info("change distribution cancelled; partial results discarded")
            self.changes = []
            self.changed_nodes = []
            return None

        self.changes = session.changes
        self.changed_nodes = unique_instances(session.changed_nodes)
        return self.document_changes

    def _run_pass(self, session: Session, traverse: Callable[[TravelContext], None]) -> list[ChangeRecord]:
        """Run one traversal against a fresh channel; returns the pending reference records."""
        sink = ChangeSink(
            maxsize=self.config.queue_size,
            publish_timeout=self.config.publish_timeout,
            cancelled=self._cancelled,
        )
        ctx = TravelContext(group=None, sink=sink)
        pending: list[ChangeRecord] = []
        failures: list[BaseException] = []

        def produce():
            try:
                traverse(ctx)
            except Exception as e:
                failures.append(e)
            finally:
                sink.close()

        def consume():
            for record in sink:
                if sink.cancelled:
                    continue
                if record.is_reference:
                    pending.append(record)
                    continue
                self._collect(session, record)

        producer = threading.Thread(target=produce, name="driftmap-traversal", daemon=True)
        consumer = threading.Thread(target=consume, name="driftmap-consumer", daemon=True)
        consumer.start()
        producer.start()
        producer.join()
        consumer.join()

        if failures:
            raise failures[0]
        return pending

    def _collect(self, session: Session, record: ChangeRecord):
        node = record.node
        if node is None:
            return
        for node_change in list(node.changes):
            for diff in node_change.group.all_changes():
                if session.ledger.admit(diff):
                    session.changes.append(diff)
        with session.lock:
            session.changed_nodes.append(node)

    def _replay(self, batch: list[ChangeRecord], ctx: TravelContext):
        for record in batch:
            targets = self._replay_targets(record)
            if not targets:
                self.logger.debug(
                    "no definition for reference %s; replay dropped",
                    record.reference or record.reference_path,
                )
                continue
            for target in targets:
                self.visitor.visit(target, ctx.with_group(record.group))

    def _replay_targets(self, record: ChangeRecord) -> list[ModelObject]:
        """
        The definition a pending reference points at, by (document, pointer).
        Only a local reference falls back to the fragment-only node id.
        """
        definition = self.right.definition(record.reference_key)
        if definition is not None:
            return [definition]
        if not record.is_local:
            return []
        nodes = self.right.find_nodes(record.reference_path)
        return [node.instance for node in nodes if node.instance is not None]

    def _drain_errors(self, session: Session):
        while True:
            try:
                error = session.errors.get_nowait()
            except queue.Empty:
                break
            self.errors.append(error)
            self.logger.warning("build error at %s: %s", error.path or "$", error.message)

    def ruleify(self, left: Optional[SemanticDocument] = None) -> int:
        """Copy rule results from the left document onto the changed nodes."""
        return transfer_rule_results(left or self.left, self.changed_nodes)

    def build_node_change_tree(self, root: Optional[SemanticNode] = None) -> tuple[list[SemanticNode], list[Edge]]:
        """
        Prune the right document's tree down to the changed nodes.

        Returns:
            (changed nodes, deepest first; edges connecting them to their parents)
        """
        root = root or self.right.root_node
        if root is None or self.cancelled:
            return [], []

        collected: list[SemanticNode] = []
        changerify([root], collected)
        nodes = unique_nodes(collected)
        edges = select_edges(nodes, self.right.edges)

        self.changed_nodes = nodes
        self.changed_edges = edges
        return nodes, edges

    def calculate_statistics(self) -> ChangeStatistics:
        if self.cancelled:
            return ChangeStatistics()
        return calculate_statistics(self.changes)

    def extract_context(self, line_number: int) -> str:
        return self._context.extract(line_number)

    def clear_context_cache(self):
        self._context.clear()

    def generate_report(
        self,
        output_format: OutputFormat = OutputFormat.MARKDOWN,
        config: Optional[RenderConfig] = None,
    ) -> str:
        """
        Render the report for this run.

        Raises:
            TraversalCancelledError: If the run was cancelled
        """
        if self.cancelled:
            raise TraversalCancelledError("report")
        if self.document_changes is None:
            return NO_CHANGES_REPORT
        return generate_report(
            self.document_changes,
            self.right,
            self.right.content,
            output_format=output_format,
            config=config,
            deduplicated=self.changes,
        )


def unique_instances(nodes: list[SemanticNode]) -> list[SemanticNode]:
    """Nodes in first-seen order, each object once."""
    seen: set[int] = set()
    unique = []
    for node in nodes:
        if id(node) not in seen:
            seen.add(id(node))
            unique.append(node)
    return unique
