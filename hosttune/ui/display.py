"""
ResultDisplay - Formats results for output.

Generates:
- Markdown reports
- JSON exports
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..protocol.records import RunSummary, utc_now
from ..protocol.artifacts import ArtifactResult, PersistencePlan


class ResultDisplay:
    """
    Formats and exports run results.
    """

    def generate_report(
        self,
        summary: Optional[RunSummary] = None,
        plan: Optional[PersistencePlan] = None,
        results: Optional[List[ArtifactResult]] = None,
    ) -> str:
        """
        Generate markdown report.

        Returns:
            Report text
        """
        lines = []

        # Header
        lines.append("# hosttune Report")
        lines.append("")
        lines.append(f"**Generated:** {utc_now()}")
        lines.append("")

        if summary is not None:
            lines.append("## Run Summary")
            lines.append("")
            lines.append(f"- **Mode:** {summary.mode}{' (dry run)' if summary.dry_run else ''}")
            lines.append(f"- **Started:** {summary.started_at}")
            lines.append(f"- **Finished:** {summary.finished_at}")
            for outcome, count in summary.counts().items():
                if count:
                    lines.append(f"- **{outcome}:** {count}")
            lines.append("")

            lines.append("| Parameter | Outcome | Before | Requested | After | Detail |")
            lines.append("|-----------|---------|--------|-----------|-------|--------|")
            for r in summary.records:
                lines.append(
                    f"| {r.parameter_id} | {r.outcome.value} | {r.observed_before or '-'} | "
                    f"{r.requested_value or '-'} | {r.observed_after or '-'} | {r.detail} |"
                )
            lines.append("")

            failures = summary.failures
            if failures:
                lines.append(f"## Needs Attention ({len(failures)})")
                lines.append("")
                for r in failures:
                    lines.append(f"- `{r.parameter_id}`: **{r.outcome.value}** {r.detail}".rstrip())
                lines.append("")

            if summary.warnings:
                lines.append("## Warnings")
                lines.append("")
                for warning in summary.warnings:
                    lines.append(f"- {warning}")
                lines.append("")

        if plan is not None:
            lines.append("## Persistence Plan")
            lines.append("")
            for artifact in plan.artifacts:
                lines.append(f"### {artifact.id}: `{artifact.path}`")
                lines.append("")
                lines.append("```")
                lines.append(artifact.content.rstrip())
                lines.append("```")
                lines.append("")
            if plan.no_mechanism:
                lines.append("### Will Not Survive Reboot")
                lines.append("")
                for marker in plan.no_mechanism:
                    lines.append(f"- `{marker.parameter_id}`: {marker.reason}")
                lines.append("")
            if plan.natively_durable:
                lines.append("### Already Durable")
                lines.append("")
                for marker in plan.natively_durable:
                    lines.append(f"- `{marker.parameter_id}`: {marker.reason}")
                lines.append("")

        if results:
            lines.append("## Artifacts")
            lines.append("")
            for result in results:
                line = f"- `{result.artifact_id}` ({result.path}): {result.status.value}"
                if result.detail:
                    line += f" - {result.detail}"
                lines.append(line)
                for warning in result.warnings:
                    lines.append(f"  - warning: {warning}")
            lines.append("")

        return "\n".join(lines)

    def to_dict(
        self,
        summary: Optional[RunSummary] = None,
        plan: Optional[PersistencePlan] = None,
        results: Optional[List[ArtifactResult]] = None,
    ) -> Dict[str, Any]:
        """JSON-ready combination of whatever the command produced."""
        data: Dict[str, Any] = {"generated_at": utc_now()}
        if summary is not None:
            data["summary"] = summary.to_dict()
        if plan is not None:
            data["plan"] = plan.to_dict()
        if results is not None:
            data["artifacts"] = [r.to_dict() for r in results]
        return data

    def write_report(
        self,
        path: Union[str, Path],
        summary: Optional[RunSummary] = None,
        plan: Optional[PersistencePlan] = None,
        results: Optional[List[ArtifactResult]] = None,
    ) -> Path:
        """
        Write a report; format is chosen by suffix (.json, otherwise Markdown).

        Returns:
            Path to generated report
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)

        if target.suffix.lower() == ".json":
            target.write_text(json.dumps(self.to_dict(summary, plan, results), indent=2))
        else:
            target.write_text(self.generate_report(summary, plan, results))

        return target
