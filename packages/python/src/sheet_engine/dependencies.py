"""Which cells a formula reads, and the order in which a grid's formulas resolve.

Dependencies are found by scanning the formula text, so malformed formulas
still report the references they contain.
"""

import logging
from collections import deque
from typing import Iterable, Mapping

from sheet_engine.grid import Grid
from sheet_engine.interpreter import FormulaEvaluator
from sheet_engine.resolver import iter_references
from sheet_engine.types import CYCLE, FormulaValue, is_formula


def get_dependencies(formula: object) -> set[str]:
    """Ids of every cell the formula references, ranges expanded."""
    if not isinstance(formula, str):
        return set()
    return {address.id() for address in iter_references(formula)}


class DependencyGraph:
    """Tracks which formulas depend on which cells.

    forward:  formula cell -> cells it reads
    reverse:  cell         -> formula cells that read it
    """

    def __init__(self, formulas: Mapping[str, str]):
        self.forward: dict[str, set[str]] = {}
        self.reverse: dict[str, set[str]] = {}

        for key, formula in formulas.items():
            refs = get_dependencies(formula)
            self.forward[key] = refs
            for ref in refs:
                self.reverse.setdefault(ref, set()).add(key)

    @classmethod
    def from_grid(cls, grid: Grid) -> "DependencyGraph":
        return cls(
            {
                address.id(): value
                for address, value in grid.items()
                if is_formula(value)
            }
        )

    def dependents(self, cell: str) -> set[str]:
        """Formula cells reading the cell directly."""
        return set(self.reverse.get(cell, ()))

    def affected(self, changed: Iterable[str]) -> list[str]:
        """Formula cells that need recomputing after the changed cells, in order.

        Walks reverse edges breadth-first from the changed cells.
        """
        affected: set[str] = set()
        queue: deque[str] = deque()

        for cell in changed:
            for dep in self.reverse.get(cell, ()):
                if dep not in affected:
                    affected.add(dep)
                    queue.append(dep)

        while queue:
            cell = queue.popleft()
            for dep in self.reverse.get(cell, ()):
                if dep not in affected:
                    affected.add(dep)
                    queue.append(dep)

        return self.order(affected)

    def order(self, keys: Iterable[str] | None = None) -> list[str]:
        """Kahn's algorithm on a subset of formula cells (all of them by default).

        Cells that cannot be ordered because they sit on or behind a cycle are
        appended at the end, sorted by id.
        """
        keys = set(self.forward) if keys is None else set(keys)
        if not keys:
            return []

        # An edge ref -> dep exists when dep reads ref and both are in keys
        in_degree: dict[str, int] = {k: 0 for k in keys}
        adj: dict[str, list[str]] = {k: [] for k in keys}
        for k in keys:
            for ref in self.forward.get(k, ()):
                if ref in keys:
                    adj[ref].append(k)
                    in_degree[k] += 1

        queue = deque(sorted(k for k in keys if in_degree[k] == 0))
        result: list[str] = []
        while queue:
            node = queue.popleft()
            result.append(node)
            for neighbor in adj[node]:
                in_degree[neighbor] -= 1
                if in_degree[neighbor] == 0:
                    queue.append(neighbor)

        if len(result) < len(keys):
            ordered = set(result)
            result.extend(sorted(k for k in keys if k not in ordered))
        return result

    def find_cycles(self) -> set[str]:
        """Every formula cell lying on a reference cycle (self-references included)."""
        # Iterative Tarjan: each strongly connected component with more than one
        # cell, or a cell reading itself, is a cycle
        index: dict[str, int] = {}
        lowlink: dict[str, int] = {}
        on_stack: set[str] = set()
        stack: list[str] = []
        cycles: set[str] = set()
        counter = 0

        for root in sorted(self.forward):
            if root in index:
                continue
            work: list[tuple[str, Iterable[str]]] = []
            index[root] = lowlink[root] = counter
            counter += 1
            stack.append(root)
            on_stack.add(root)
            work.append((root, iter(sorted(self.forward[root]))))

            while work:
                node, children = work[-1]
                advanced = False
                for child in children:
                    if child not in self.forward:
                        continue
                    if child not in index:
                        index[child] = lowlink[child] = counter
                        counter += 1
                        stack.append(child)
                        on_stack.add(child)
                        work.append((child, iter(sorted(self.forward[child]))))
                        advanced = True
                        break
                    if child in on_stack:
                        lowlink[node] = min(lowlink[node], index[child])
                if advanced:
                    continue

                work.pop()
                if work:
                    parent = work[-1][0]
                    lowlink[parent] = min(lowlink[parent], lowlink[node])

                if lowlink[node] == index[node]:
                    component: list[str] = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    if len(component) > 1 or node in self.forward[node]:
                        cycles.update(component)

        return cycles


def resolve_grid(
    grid: Grid, evaluator: FormulaEvaluator | None = None
) -> dict[str, FormulaValue]:
    """Evaluation context for a whole grid: cell id -> resolved value.

    Literal cells keep their raw value. Formula cells are evaluated once each,
    after every formula they read. Cells on a reference cycle are not
    evaluated and read as "#CYCLE!".
    """
    evaluator = evaluator if evaluator is not None else FormulaEvaluator()

    context: dict[str, FormulaValue] = {}
    formulas: dict[str, str] = {}
    for address, value in grid.items():
        if is_formula(value):
            formulas[address.id()] = value  # type: ignore[assignment]
        else:
            context[address.id()] = value

    graph = DependencyGraph(formulas)
    cycles = graph.find_cycles()
    if cycles:
        logging.warning("Circular references between %s", ", ".join(sorted(cycles)))
    for key in cycles:
        context[key] = CYCLE

    for key in graph.order(set(formulas) - cycles):
        context[key] = evaluator.evaluate(formulas[key], context)  # type: ignore[arg-type]
    return context
