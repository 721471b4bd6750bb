"""Rule resolution and workflow execution.

- ``rule_index``: find the rules matching a context
- ``context``: derive the context a nested step runs in
- ``builder``: expand a verb into a workflow tree
- ``executor``: run a workflow tree
- ``stack``: per-run annotations of a workflow tree
- ``serialization``: tree and JSON renderings for debugging

Import from the submodules directly; this package keeps no imports of its
own so that ``rules_engine.logging`` can use the serialization helpers.
"""

__all__: list[str] = []
