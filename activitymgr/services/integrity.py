"""
Task forest consistency checks using NetworkX.

Builds a DiGraph parent -> child from the positional paths and reports
every broken structural rule as a human-readable problem.
"""

from collections import defaultdict

import networkx as nx
from sqlmodel import Session

from activitymgr.models import Task
from activitymgr.repositories import ContributionRepository, TaskRepository
from activitymgr.services.task_path import TaskPath


def build_task_graph(tasks: list[Task]) -> nx.DiGraph:
    """
    Build a NetworkX DiGraph from the stored tasks.

    Returns a graph where:
    - Nodes are full paths (the task is stored in the `task` attribute)
    - Edges go from parent -> child
    Tasks whose parent is missing become orphan nodes flagged `orphan=True`.
    """
    graph = nx.DiGraph()
    for task in tasks:
        graph.add_node(task.full_path, task=task)

    for task in tasks:
        if task.path == "":
            continue
        if task.path in graph:
            graph.add_edge(task.path, task.full_path)
        else:
            graph.nodes[task.full_path]["orphan"] = True
    return graph


def check_model_integrity(session: Session) -> list[str]:
    """Return the list of problems found (empty when the forest is sound)."""
    tasks = TaskRepository(session).find_all()
    contributions = ContributionRepository(session)
    problems: list[str] = []

    for task in tasks:
        try:
            TaskPath(task.path)
        except ValueError as e:
            problems.append(f"Task {task.id}: invalid path '{task.path}' ({e})")

    graph = build_task_graph(tasks)
    for _, data in graph.nodes(data=True):
        if data.get("orphan"):
            problems.append(f"Task {data['task'].id}: parent '{data['task'].path}' does not exist")
    if graph.number_of_nodes() and not nx.is_forest(graph):
        problems.append("Task hierarchy is not a forest")

    siblings: dict[str, list[Task]] = defaultdict(list)
    for task in tasks:
        siblings[task.path].append(task)
    for path, group in siblings.items():
        numbers = sorted(task.number for task in group)
        if numbers != list(range(1, len(group) + 1)):
            problems.append(f"Path '{path}': sibling numbers {numbers} are not dense")
        codes = [task.code for task in group]
        if len(set(codes)) != len(codes):
            problems.append(f"Path '{path}': duplicate sibling codes")

    for node in graph.nodes:
        if graph.out_degree(node) == 0:
            continue
        task = graph.nodes[node]["task"]
        if task.budget or task.initially_consumed or task.todo:
            problems.append(f"Task {task.id} ('{task.code}') has sub tasks and non null figures")
        count = contributions.count(task_id=task.id)
        if count:
            problems.append(f"Task {task.id} ('{task.code}') has sub tasks and {count} contribution(s)")

    return problems
