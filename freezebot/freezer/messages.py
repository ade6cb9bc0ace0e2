"""User-facing text: check-run output and acknowledgement comments (Markdown)."""

from datetime import datetime

from pydantic import BaseModel

from freezebot.models import FreezeRecord, FreezeStatus, UnlockedPr

NO_REASON = "No reason provided"
NO_END = "No end time set"
ALL_BRANCHES = "all branches"


class CheckRunOutput(BaseModel):
    """Title / summary / details of one check run."""

    title: str
    summary: str
    text: str | None = None


def format_time(value: datetime | None, default: str = "-") -> str:
    if value is None:
        return default
    return value.strftime("%Y-%m-%d %H:%M:%S UTC")


def branch_scope(freeze: FreezeRecord) -> str:
    return f"branch `{freeze.branch}`" if freeze.branch else ALL_BRANCHES


def frozen_output(freeze: FreezeRecord) -> CheckRunOutput:
    """Failing check: names author, window, reason and branch scope."""
    start = format_time(freeze.started_at)
    end = format_time(freeze.expires_at, NO_END)
    reason = freeze.reason or NO_REASON
    scope = branch_scope(freeze)
    return CheckRunOutput(
        title=f"Repository is frozen by {freeze.initiated_by}",
        summary=(
            f"This repository is currently under a freeze restriction ({scope}) "
            f"from {start} until {end}. Reason: {reason}"
        ),
        text=(
            "**Repository Freeze Details**\n\n"
            f"- **Author**: {freeze.initiated_by}\n"
            f"- **Start**: {start}\n"
            f"- **End**: {end}\n"
            f"- **Scope**: {scope}\n"
            f"- **Reason**: {reason}\n\n"
            "This PR cannot be merged while the repository is frozen. "
            "Please wait for the freeze to end or contact the freeze author."
        ),
    )


def not_frozen_output() -> CheckRunOutput:
    return CheckRunOutput(
        title="Repository is not frozen",
        summary="This repository is currently not under any freeze restrictions",
        text="PRs can be merged normally.",
    )


def branch_not_frozen_output(freeze: FreezeRecord, base_branch: str) -> CheckRunOutput:
    return CheckRunOutput(
        title="Branch is not frozen",
        summary=(
            f"The active freeze only applies to branch `{freeze.branch}`; "
            f"this pull request targets `{base_branch}`."
        ),
        text="PRs can be merged normally.",
    )


def unlocked_output(freeze: FreezeRecord, unlock: UnlockedPr) -> CheckRunOutput:
    return CheckRunOutput(
        title="Pull request unlocked during freeze",
        summary=(
            f"The repository is frozen by {freeze.initiated_by}, but this pull request "
            f"was unlocked by {unlock.unlocked_by} at {format_time(unlock.unlocked_at)}."
        ),
        text="This PR may be merged despite the active freeze.",
    )


# --------------------------------------------------------------------------- #
# Comments                                                                     #
# --------------------------------------------------------------------------- #


def freeze_success(freeze: FreezeRecord) -> str:
    return (
        "## ❄️ Repository Frozen\n\n"
        f"🔒 **Repository `{freeze.repository}` has been frozen** ({branch_scope(freeze)})\n\n"
        f"- **Until**: {format_time(freeze.expires_at, NO_END)}\n"
        f"- **Reason**: {freeze.reason or NO_REASON}\n\n"
        "> 🚨 **Important**: Pull requests are blocked until the freeze is lifted.\n\n"
        "*Use `/unfreeze` to lift the freeze when ready.*"
    )


def freeze_scheduled(freeze: FreezeRecord) -> str:
    return (
        "## ⏰ Freeze Scheduled\n\n"
        f"🗓️ **Repository `{freeze.repository}` will be frozen** ({branch_scope(freeze)})\n\n"
        f"- **Start**: {format_time(freeze.started_at)}\n"
        f"- **End**: {format_time(freeze.expires_at, NO_END)}\n"
        f"- **Reason**: {freeze.reason or NO_REASON}\n"
    )


def freeze_error(error: str) -> str:
    return (
        "## ❌ Freeze Failed\n\n"
        "🚫 **Failed to freeze repository**\n\n"
        f"```\n{error}\n```\n\n"
        "*Please check your permissions and try again.*"
    )


def unfreeze_success(repository: str) -> str:
    return (
        "## 🌞 Repository Unfrozen\n\n"
        f"✅ **Repository `{repository}` has been unfrozen**\n\n"
        "> 🎉 **All systems go**: Pull requests are now allowed.\n\n"
        "*The freeze has been successfully lifted.*"
    )


def unfreeze_error(error: str) -> str:
    return (
        "## ❌ Unfreeze Failed\n\n"
        "🚫 **Failed to unfreeze repository**\n\n"
        f"```\n{error}\n```\n\n"
        "*Please check your permissions and try again.*"
    )


def unlock_success(repository: str, pr_number: int, actor: str) -> str:
    return (
        "## 🔓 Pull Request Unlocked\n\n"
        f"✅ **PR #{pr_number} in `{repository}` was unlocked by {actor}**\n\n"
        "*It may be merged during the current freeze. The override is cleared when the freeze ends.*"
    )


def unlock_error(error: str) -> str:
    return (
        "## ❌ Unlock Failed\n\n"
        "🚫 **Failed to unlock pull request**\n\n"
        f"```\n{error}\n```\n\n"
        "*Unlocks only apply while a freeze is in force.*"
    )


_STATUS_LABELS = {
    FreezeStatus.ACTIVE: "🔒 Active",
    FreezeStatus.SCHEDULED: "⏰ Scheduled",
    FreezeStatus.EXPIRED: "⌛ Expired",
    FreezeStatus.ENDED: "🌞 Ended",
}


def format_status_table(repository: str, records: list[FreezeRecord]) -> str:
    """Markdown table of a repository's current and upcoming freezes."""
    table = f"## 📊 Freeze Status for `{repository}`\n\n"
    if not records:
        return table + "🌞 No active or scheduled freezes.\n"
    table += "| Status | Start | End | Branch | Author | Reason |\n"
    table += "|--------|-------|-----|--------|--------|--------|\n"
    for r in records:
        table += (
            f"| {_STATUS_LABELS[r.status]} | {format_time(r.started_at)} | {format_time(r.expires_at)} "
            f"| {r.branch or ALL_BRANCHES} | {r.initiated_by} | {r.reason or '-'} |\n"
        )
    return table
