# -*- coding: utf-8 -*-

import logging
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Optional

from ..utils.misc import write_json
from .models import BulkRunResult


def get_batch_summary_dict(index, batch, result_set):
    """
    Generate a summary dictionary for one batch of a run.

    Args:
        index (int): Submission index of the batch.
        batch (Batch): Latest known state of the batch.
        result_set (ResultSet | None): Collected results, if any.

    Returns:
        dict: The formatted summary dictionary.
    """
    summary = {
        "index": index,
        "batch_id": batch.id,
        "state": batch.state.value,
        "records": batch.record_count,
        "collected": result_set is not None,
    }
    if batch.state_message:
        summary["state_message"] = batch.state_message
    if result_set is None:
        return summary

    error_counter = Counter(
        r.status_code or r.error_message for r in result_set if not r.success
    )
    summary.update({
        "succeeded": len(result_set.succeeded),
        "created": sum(1 for r in result_set if r.created),
        "failed": len(result_set.failed),
        "errors": dict(error_counter.most_common()),
    })
    return summary


def get_run_summary_dict(result: BulkRunResult):
    """
    Generate a summary dictionary for a whole run.

    Returns:
        dict: Job info, record totals and one entry per batch.
    """
    batch_summaries = [
        get_batch_summary_dict(i, batch, result.result_sets[i])
        for i, batch in enumerate(result.batches)
    ]
    collected = [s for s in batch_summaries if s["collected"]]
    summary = {
        "job_id": result.job.id,
        "object": result.job.object_type,
        "operation": result.job.operation.value,
        "job_state": result.job.state.value,
        "generated_at": datetime.now().isoformat(),
        "batches": {
            "total": len(batch_summaries),
            "collected": len(collected),
            "failed": len(result.failures),
            "pending": len(result.pending_indices),
        },
        "records": {
            "total": sum(s["records"] for s in batch_summaries),
            "succeeded": sum(s["succeeded"] for s in collected),
            "created": sum(s["created"] for s in collected),
            "failed": sum(s["failed"] for s in collected),
        },
        "batch_summaries": batch_summaries,
        "batch_failures": [
            {"index": f.index, "error": f"{type(f.error).__name__}: {f.error}"}
            for f in result.failures
        ],
    }
    if result.interruption is not None:
        summary["interruption"] = f"{type(result.interruption).__name__}: {result.interruption}"
    return summary


def _pct(part, total):
    return (part / total * 100) if total else 0


def save_run_summary(
    result: BulkRunResult,
    summary_path: Optional[str] = None,
    return_as: Optional[str] = None,
    save_dict: bool = False
):
    """
    Generate a summary text for a run and optionally save it.

    Args:
        result (BulkRunResult): The run to summarize.
        summary_path (str): Path to save the summary text. If None, nothing is written.
        return_as (str, optional): If 'dict', returns the summary as a dictionary;
            if 'print', prints the summary to console; if 'text', returns the text.
        save_dict (bool): If True, saves the summary dictionary as a JSON file
            alongside the summary text.

    Returns:
        dict or str or None: According to return_as.
    """
    summary_dict = get_run_summary_dict(result)
    records = summary_dict["records"]
    batches = summary_dict["batches"]

    summary_lines = [
        f"Job ID       : {summary_dict['job_id']}",
        f"Object       : {summary_dict['object']}",
        f"Operation    : {summary_dict['operation']}",
        f"Job state    : {summary_dict['job_state']}",
        f"Generated at : {summary_dict['generated_at']}",
        "",
        "=== Batches ===",
        f"Total     : {batches['total']}",
        f"Collected : {batches['collected']}",
        f"Failed    : {batches['failed']}",
        f"Pending   : {batches['pending']}",
        "",
        "=== Records ===",
        f"Total     : {records['total']:,}",
        f"Succeeded : {records['succeeded']:,} ({_pct(records['succeeded'], records['total']):.2f}%)",
        f"Created   : {records['created']:,} ({_pct(records['created'], records['total']):.2f}%)",
        f"Failed    : {records['failed']:,} ({_pct(records['failed'], records['total']):.2f}%)",
        "",
        "=== Per Batch ===",
    ]
    for s in summary_dict["batch_summaries"]:
        line = f"[{s['index']}] {s['batch_id']} {s['state']:<13} records={s['records']}"
        if s["collected"]:
            line += f" succeeded={s['succeeded']} created={s['created']} failed={s['failed']}"
        else:
            line += " (not collected)"
        summary_lines.append(line)
        for error, count in s.get("errors", {}).items():
            summary_lines.append(f"    - {error}: {count}")

    if summary_dict["batch_failures"]:
        summary_lines.append("")
        summary_lines.append("=== Batch Failures ===")
        for failure in summary_dict["batch_failures"]:
            summary_lines.append(f"- [{failure['index']}] {failure['error']}")

    if summary_dict.get("interruption"):
        summary_lines.append("")
        summary_lines.append(f"Interrupted: {summary_dict['interruption']}")

    summary = "\n".join(summary_lines)

    if summary_path is not None:
        summary_path = Path(summary_path)
        with open(summary_path, "w", encoding="utf-8") as f:
            f.write(summary)
        logging.info(f"Run summary saved to {summary_path}")
        if save_dict:
            write_json(summary_dict, summary_path.with_suffix(".json"))

    if return_as == "dict":
        return summary_dict
    if return_as == "text":
        return summary
    if return_as == "print":
        print(summary)
    return None
