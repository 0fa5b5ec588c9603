"""
Console reporter: plain-text progress lines and the end-of-run summary.
"""

from gauntlet.gates.result import ERROR, FAIL, NOT_RUN, PASS, GateResult

_LABELS = {PASS: "PASS", FAIL: "FAIL", ERROR: "ERROR", NOT_RUN: "NOT RUN"}


def _seconds(ms: int) -> str:
    return f"{ms / 1000:.1f}s"


class ConsoleReporter:
    def __init__(self, out=print):
        self.out = out

    def on_job_start(self, job) -> None:
        self.out(f"[START] {job.id}")

    def on_job_complete(self, job, result: GateResult) -> None:
        label = _LABELS.get(result.status, result.status.upper())
        line = f"[{label}] {job.id} ({_seconds(result.duration_ms)})"
        if result.status != PASS and result.message:
            line += f" - {result.message}"
        self.out(line)

    def print_summary(self, results: list[GateResult], log_dir, headline: str | None = None) -> None:
        """Per-job outcome, slot details for failed reviews, then totals."""
        self.out("")
        self.out("Gauntlet summary")
        self.out("-" * 60)
        for result in results:
            label = _LABELS.get(result.status, result.status.upper())
            self.out(f"  {label:<8} {result.job_id}  {result.message}")
            if result.status == PASS:
                continue
            for sub in result.sub_results:
                detail = f"{sub.name_suffix} {sub.status}: {sub.message}"
                if sub.error_count:
                    detail += f" [{sub.error_count} open]"
                self.out(f"             {detail}")
                if sub.log_path and sub.status != PASS:
                    self.out(f"             see {sub.log_path}")
            if not result.sub_results:
                for path in result.log_paths:
                    self.out(f"             see {path}")

        skipped = [item for r in results for item in r.skipped]
        if skipped:
            self.out("")
            self.out(f"Skipped issues ({len(skipped)}):")
            for item in skipped:
                note = f" ({item.result})" if item.result else ""
                self.out(f"  {item.file}:{item.line} - {item.issue}{note}")

        passed = sum(1 for r in results if r.status == PASS)
        self.out("")
        if headline:
            self.out(headline)
        self.out(f"{passed}/{len(results)} gates passed. Logs: {log_dir}")
