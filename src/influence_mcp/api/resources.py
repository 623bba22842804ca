"""Static markdown resources advertised over ``resources/list``."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class Resource:
    uri: str
    name: str
    description: str
    text: str
    mime_type: str = "text/markdown"

    def describe(self) -> dict[str, str]:
        return {
            "uri": self.uri,
            "name": self.name,
            "description": self.description,
            "mimeType": self.mime_type,
        }

    def contents(self) -> dict[str, str]:
        return {"uri": self.uri, "mimeType": self.mime_type, "text": self.text}


_RUNBOOK = """\
# Legislator influence report runbook

Inputs: `legislator_id` (resolve from a name with `resolve_legislator_by_name`),
`session_id`, `days_before` / `days_after` (default 100 each), optional themes.

1. **Window.** `session_window(p_session_id, p_days_before, p_days_after)`
   gives `from_date` and `to_date`. State this window in the final report.
2. **Recipients.** `recipient_entity_ids_for_legislator(p_legislator_id)`.
   Stop and say so if no recipient entities come back.
3. **Donors.** `search_donor_totals_window` with the recipient ids, session and
   window, no vector, `p_limit` 200. Keep non-individual donors, and
   individuals whose occupation or employer points at lobbying, consulting,
   government affairs, law, real estate or a PAC, or who gave 1000 or more.
   Group the survivors into 5-10 themes and ask which to explore.
4. **Bills.** For each chosen theme, call `search` with `query_text` set to a
   short theme phrase and `filters` `{types: ["bill"], legislator_id,
   session_id}`, or call `search_bills_for_legislator` directly.
5. **Detail.** `fetch` a bill hit (text, votes and rollup in one call).
6. **Stakeholders.** `search` with `filters.types = ["rts"]` for positions
   registered on the theme.
7. **Synthesis.** Tie donor themes to bills and votes using language of
   alignment and timing only. Never claim causation.
"""

RESOURCES: tuple[Resource, ...] = (
    Resource(
        uri="influence-report-runbook",
        name="Legislator Influence Report Runbook",
        description=(
            "Step-by-step template for correlating donor themes around a session "
            "window with a legislator's votes."
        ),
        text=_RUNBOOK,
    ),
)


def find_resource(uri: str) -> Resource | None:
    for resource in RESOURCES:
        if resource.uri == uri:
            return resource
    return None
