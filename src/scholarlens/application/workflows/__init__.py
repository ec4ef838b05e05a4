from scholarlens.application.workflows.research_search import (
    ResearchSearchWorkflow,
    SearchOutcome,
)

__all__ = ["ResearchSearchWorkflow", "SearchOutcome"]
