"""Terminal UI for resolving extra files and empty directories."""

from __future__ import annotations

from typing import Any, Callable

import questionary

from rsscripter.cli.common.output import out
from rsscripter.core.reconcile import Decision, DriftItem, DriftKind, Resolution

Ask = Callable[..., Any]

_APPLY_TO_ALL = "apply-to-all"

_TITLES = {
    Decision.KEEP: "Keep",
    Decision.DELETE: "Delete",
    Decision.IGNORE: "Ignore (remember in IgnoreFiles.txt)",
}


def _noun(kind: DriftKind) -> str:
    return "extra files" if kind == DriftKind.EXTRA_FILE else "empty directories"


def decision_choices(*, include_apply_to_all: bool) -> list[questionary.Choice]:
    choices = [questionary.Choice(title=title, value=decision) for decision, title in _TITLES.items()]
    if include_apply_to_all:
        choices.append(questionary.Choice(title="Apply to all remaining...", value=_APPLY_TO_ALL))
    return choices


class InteractivePolicy:
    """
    Asks the user what to do with each item.

    Choosing "Apply to all remaining..." asks a second question whose
    answer is reused for every remaining item of the same kind. A
    cancelled prompt keeps the item.
    """

    def __init__(self, ask: Ask | None = None) -> None:
        self._ask = ask or out.select_one

    def decide(self, item: DriftItem) -> Resolution:
        label = "Extra file" if item.kind == DriftKind.EXTRA_FILE else "Empty directory"
        answer = self._ask(
            f"{label}: {item.path}",
            decision_choices(include_apply_to_all=True),
            destructive=True,
        )
        if answer == _APPLY_TO_ALL:
            answer = self._ask(
                f"What should happen to all remaining {_noun(item.kind)}?",
                decision_choices(include_apply_to_all=False),
                destructive=True,
            )
            return Resolution(_as_decision(answer), apply_to_all=answer is not None)
        return Resolution(_as_decision(answer))


def _as_decision(answer: Any) -> Decision:
    if answer is None:
        return Decision.KEEP
    return Decision(answer)
