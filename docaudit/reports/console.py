"""Rich terminal output."""

from __future__ import annotations

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from ..models import AuditReport, Finding, FindingKind, Severity
from ..plan import UpdatePlan
from ..verify import VerificationResult

SEVERITY_STYLES = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}

KIND_TITLES = {
    FindingKind.BROKEN_LINK: "Broken links",
    FindingKind.BROKEN_ANCHOR: "Broken anchors",
    FindingKind.DUPLICATE: "Duplicate passages",
    FindingKind.STALE: "Stale documents",
    FindingKind.ORPHAN: "Orphaned documents",
}


class ConsoleReporter:
    """Prints reports, plans and verification results to the terminal."""

    def __init__(
        self,
        console: Console | None = None,
        errors_only: bool = False,
        verbose: bool = False,
    ) -> None:
        self.console = console or Console()
        self.errors_only = errors_only
        self.verbose = verbose

    def _visible(self, findings: list[Finding]) -> list[Finding]:
        if self.errors_only:
            return [f for f in findings if f.severity == Severity.ERROR]
        return findings

    def _findings_table(self, kind: FindingKind, findings: list[Finding]) -> Table:
        table = Table(title=f"{KIND_TITLES[kind]} ({len(findings)})", title_justify="left")
        table.add_column("Location", style="bold", no_wrap=True)
        table.add_column("Severity")
        table.add_column("Message")
        for finding in findings:
            style = SEVERITY_STYLES[finding.severity]
            table.add_row(
                escape(finding.location),
                f"[{style}]{finding.severity.value}[/{style}]",
                escape(finding.message),
            )
        return table

    def report(self, report: AuditReport) -> None:
        scope = report.scope
        header = f"[bold]docaudit[/bold] {scope.mode} scan of {escape(report.project_root)}"
        if scope.reference:
            header += f" since {scope.reference}"
        self.console.print(header)
        if scope.reason:
            self.console.print(f"[dim]{escape(scope.reason)}[/dim]")

        findings = report.sorted_findings()
        for kind in FindingKind:
            visible = self._visible([f for f in findings if f.kind == kind])
            if visible:
                self.console.print(self._findings_table(kind, visible))

        if self.verbose and report.clusters:
            for cluster in report.clusters:
                lines = [
                    f"{'*' if p == cluster.authoritative else ' '} {p.location}: {p.excerpt}"
                    for p in cluster.passages
                ]
                self.console.print(
                    Panel(
                        escape("\n".join(lines)),
                        title=f"Cluster {cluster.cluster_id} ({cluster.similarity:.0%} similar)",
                        title_align="left",
                    )
                )

        self.report_summary(report)

    def report_summary(self, report: AuditReport) -> None:
        summary = (
            f"Documents indexed: {report.documents_indexed}  "
            f"In scope: {len(report.scope.documents)}\n"
            f"[bold red]Errors: {report.error_count}[/bold red]  "
            f"[yellow]Warnings: {report.warning_count}[/yellow]  "
            f"[cyan]Info: {report.info_count}[/cyan]"
        )
        style = "red" if report.error_count else "green"
        self.console.print(Panel(summary, title="Summary", border_style=style))

    def report_plan(self, plan: UpdatePlan) -> None:
        self.console.print(Markdown(plan.to_markdown()))

    def report_verification(self, result: VerificationResult, strict: bool = False) -> None:
        if result.new:
            self.console.print(self._diff_table("New findings", result.new))
        if result.resolved and not self.errors_only:
            self.console.print(self._diff_table("Resolved findings", result.resolved))

        passed = result.passed(strict)
        status = "[green]PASSED[/green]" if passed else "[bold red]FAILED[/bold red]"
        self.console.print(
            Panel(
                f"{status}  new: {len(result.new)}  resolved: {len(result.resolved)}  "
                f"unchanged: {len(result.unchanged)}",
                title="Verification",
                border_style="green" if passed else "red",
            )
        )

    def _diff_table(self, title: str, findings: list[Finding]) -> Table:
        table = Table(title=f"{title} ({len(findings)})", title_justify="left")
        table.add_column("Kind")
        table.add_column("Location", style="bold", no_wrap=True)
        table.add_column("Message")
        for finding in findings:
            table.add_row(finding.kind.value, escape(finding.location), escape(finding.message))
        return table

    def report_pruned(self, paths: list[str], applied: bool) -> None:
        if not paths:
            self.console.print("[green]No orphaned documents to prune.[/green]")
            return
        verb = "Deleted" if applied else "Would delete"
        for path in paths:
            self.console.print(f"{verb} {escape(path)}")
        if not applied:
            self.console.print("[dim]Dry run; pass --apply to delete these files.[/dim]")
