"""Rules workflow engine.

Business rules are registered per verb tense (``willCreate``,
``doingCreate``, ``didCreate``, ...) and resolved, for each request, into a
tree of tasks with prerequisite sub-workflows:
- rule lookup with wildcards, membership and priorities
- concurrent prerequisites with data transformations
- success / fail completion dispatch
- time-bounded caching of built workflows
"""

__version__ = "0.1.0"

from rules_engine.config import EngineSettings
from rules_engine.engine import RulesEngine
from rules_engine.workflow.model import DataResult, Prerequisite, RawResult, Rule, Task, Workflow

__all__ = [
    "__version__",
    "DataResult",
    "EngineSettings",
    "Prerequisite",
    "RawResult",
    "Rule",
    "RulesEngine",
    "Task",
    "Workflow",
]
